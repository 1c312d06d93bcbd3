"""
Live browser tests for the capture pipeline.

Run with:
    pytest tests/test_integration_live.py -m integration -v -s

Excluded from the default run because they need a Playwright-controlled
Chromium. No network access is needed: every URL is served by page.route.

The editor shell at https://editor.test/ embeds the canvas iframe, which
holds three images:
  - /pixel.png            same origin, loads: converted and restored
  - /missing.png          404: naturalWidth 0, never touched
  - https://cdn.other/... cross origin without CORS: canvas is tainted,
                          the image is logged and skipped
"""

from __future__ import annotations

import base64
import io
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from PIL import Image
from playwright.async_api import Browser, Page, Route, async_playwright

from pagekeeper import BuilderProps, FileSaveSink, SaveOrchestrator, ScreenshotCapturer
from pagekeeper.capture.image_proxy import ImageProxyConverter

pytestmark = pytest.mark.integration


def _png(color=(200, 30, 30)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(out, format="PNG")
    return out.getvalue()


_SHELL_HTML = """<html><body>
<iframe id="canvas-iframe" src="/canvas.html" style="width:400px;height:300px;border:0"></iframe>
</body></html>"""

_CANVAS_HTML = """<html><body style="margin:0">
<img id="ok" src="/pixel.png">
<img id="broken" src="/missing.png">
<img id="foreign" src="https://cdn.other/pixel.png">
</body></html>"""

_PAGES = {
    "https://editor.test/": ("text/html", _SHELL_HTML.encode()),
    "https://editor.test/canvas.html": ("text/html", _CANVAS_HTML.encode()),
    "https://editor.test/pixel.png": ("image/png", _png()),
    "https://cdn.other/pixel.png": ("image/png", _png((30, 30, 200))),
}


async def _serve(route: Route) -> None:
    hit = _PAGES.get(route.request.url)
    if hit is None:
        await route.fulfill(status=404, body="not found")
        return
    content_type, body = hit
    await route.fulfill(status=200, content_type=content_type, body=body)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def browser() -> AsyncGenerator[Browser, None]:
    async with async_playwright() as pw:
        b = await pw.chromium.launch(
            headless=True,
            args=["--no-sandbox", "--disable-dev-shm-usage"],
        )
        yield b
        await b.close()


@pytest_asyncio.fixture
async def page(browser: Browser) -> AsyncGenerator[Page, None]:
    ctx = await browser.new_context(viewport={"width": 800, "height": 600})
    pg = await ctx.new_page()
    await pg.route("**/*", _serve)
    await pg.goto("https://editor.test/")
    yield pg
    await ctx.close()


async def _srcs(page: Page) -> dict[str, str]:
    frame = page.frame_locator("#canvas-iframe")
    result = {}
    for img_id in ("ok", "broken", "foreign"):
        result[img_id] = await frame.locator(f"#{img_id}").get_attribute("src")
    return result


async def _canvas_frame(page: Page):
    handle = await page.query_selector("#canvas-iframe")
    return await handle.content_frame()


# ─────────────────────────────────────────────────────────────────────────────
# Tests
# ─────────────────────────────────────────────────────────────────────────────


async def test_proxy_converts_only_loaded_same_origin_images(page: Page):
    frame = await _canvas_frame(page)
    converter = ImageProxyConverter()

    backup = await converter.proxy(frame)

    assert len(backup) == 1
    assert list(backup.values()) == ["/pixel.png"]
    srcs = await _srcs(page)
    assert srcs["ok"].startswith("data:image/png")
    assert srcs["broken"] == "/missing.png"
    assert srcs["foreign"] == "https://cdn.other/pixel.png"

    assert await converter.restore(frame, backup) == 1
    ok_src = await frame.evaluate("() => document.getElementById('ok').getAttribute('src')")
    assert ok_src == "/pixel.png"
    marked = await frame.evaluate("() => document.querySelectorAll('img[data-pk-proxy-id]').length")
    assert marked == 0


async def test_capture_returns_png_and_restores_sources(page: Page):
    before = await _srcs(page)

    uri = await ScreenshotCapturer(page).capture()

    assert uri is not None and uri.startswith("data:image/png;base64,")
    img = Image.open(io.BytesIO(base64.b64decode(uri.split(",", 1)[1])))
    assert img.mode == "RGB"
    assert img.size[0] > 0
    assert await _srcs(page) == before


async def test_capture_without_surface_returns_none(page: Page):
    await page.set_content("<html><body><p>no canvas here</p></body></html>")
    assert await ScreenshotCapturer(page).capture() is None


async def test_save_end_to_end(page: Page, tmp_path):
    sink = FileSaveSink("home", save_dir=str(tmp_path))
    statuses: list[str] = []
    props = BuilderProps(
        on_save=sink,
        get_page_data=lambda: {"blocks": [{"_id": "a", "_type": "Box"}, {"_id": "b", "_type": "Box"}]},
        export_html=lambda blocks, theme: "<div></div>" * len(blocks),
        on_save_state_change=statuses.append,
    )
    saver = SaveOrchestrator(props, capturer=ScreenshotCapturer(page), throttle_wait=0.2)

    assert await saver.save_page(False) is True

    doc = sink.load()
    assert [b["_id"] for b in doc["blocks"]] == ["a", "b"]
    assert sink.screenshot_path.exists()
    assert statuses == ["SAVING", "SAVED"]
