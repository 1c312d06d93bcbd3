"""
pagekeeper demo host: saves a small page from a real Chromium editor surface.

Run:
    python demo/run_demo.py [save_dir]

The script loads an editor shell whose canvas iframe renders two blocks,
fires three saves in quick succession (one runs immediately, the other two
merge into one trailing save), then an autosave, and prints what landed in
the save directory.
"""

from __future__ import annotations

import asyncio
import sys
import tempfile
from pathlib import Path

from playwright.async_api import async_playwright

# Allow running from repo root without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from pagekeeper import BuilderProps, FileSaveSink, SaveOrchestrator, ScreenshotCapturer, default_registry
from pagekeeper.logging import configure_logging

# 1x1 red pixel, so the canvas has an image to proxy without network access
_PIXEL = (
    "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8DwHwAFBQIAX8jx0gAAAABJRU5ErkJggg=="
)

_CANVAS_HTML = f"""
<html><body style="margin:0;font-family:sans-serif">
  <nav style="padding:12px;background:#222;color:#fff">Acme</nav>
  <section style="padding:24px">
    <h1>Launch in</h1>
    <img src="{_PIXEL}" width="40" height="40">
  </section>
</body></html>
"""

_EDITOR_HTML = """
<html><body>
  <div id="top-bar">editor chrome</div>
  <iframe id="canvas-iframe" style="width:800px;height:400px;border:0"></iframe>
</body></html>
"""

BLOCKS = [
    {"_id": "nav1", "_type": "Navbar", "logoText": "Acme", "logoText-fr": "Acme"},
    {"_id": "cd1", "_type": "Countdown", "completionMessage": "Time's up!"},
]


def register_blocks() -> None:
    default_registry.register("Navbar", i18n_props=["logoText"])
    default_registry.register("Countdown", i18n_props=["completionMessage"])


def export_html(blocks: list[dict], theme: dict) -> str:
    return "".join(f'<div data-block-id="{b["_id"]}"></div>' for b in blocks)


async def main(save_dir: str) -> None:
    configure_logging("DEBUG")
    register_blocks()

    sink = FileSaveSink("home", save_dir=save_dir)
    statuses: list[str] = []

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=True)
        page = await browser.new_page(viewport={"width": 1024, "height": 600})
        await page.set_content(_EDITOR_HTML)
        await page.eval_on_selector(
            "#canvas-iframe", "(el, html) => { el.srcdoc = html; }", _CANVAS_HTML
        )
        await page.wait_for_timeout(300)

        props = BuilderProps(
            on_save=sink,
            get_page_data=lambda: {"blocks": BLOCKS},
            export_html=export_html,
            on_save_state_change=statuses.append,
            get_theme=lambda: {"primary": "#222"},
            selected_lang="fr",
            fallback_lang="en",
        )
        saver = SaveOrchestrator(props, capturer=ScreenshotCapturer(page), throttle_wait=1.0)

        first = saver.save_page(False)
        second = saver.save_page(False)
        third = saver.save_page(True)
        await asyncio.gather(first, second, third)
        await saver.save_page_async()

        await browser.close()

    print(f"\nStatus transitions: {' -> '.join(statuses)}")
    print(f"Saved to: {sink.page_path}")
    for entry in sink.history():
        print(
            f"  {entry['saved_at']}  auto_save={entry['auto_save']!s:<5}  "
            f"need_translations={entry['need_translations']!s:<5}  "
            f"screenshot={entry['has_screenshot']}"
        )


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else tempfile.mkdtemp(prefix="pagekeeper_")
    asyncio.run(main(target))
