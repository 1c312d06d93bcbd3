"""Screenshot of the editor's canvas surface, best effort."""

from __future__ import annotations

import asyncio
import base64
import io

import structlog
from PIL import Image
from playwright.async_api import ElementHandle, Frame, Page

from pagekeeper.capture.image_proxy import ImageProxyConverter

logger = structlog.get_logger(__name__)

# id of the iframe that renders the page being edited
CANVAS_SURFACE_ID = "canvas-iframe"

DEFAULT_SETTLE_DELAY = 0.1
BACKGROUND_COLOR = (255, 255, 255)


def flatten_png(png_bytes: bytes, background: tuple[int, int, int] = BACKGROUND_COLOR) -> bytes:
    """Composite a PNG onto an opaque background so transparency never survives."""
    with Image.open(io.BytesIO(png_bytes)) as img:
        rgba = img.convert("RGBA")
        canvas = Image.new("RGBA", rgba.size, background + (255,))
        canvas.alpha_composite(rgba)
        out = io.BytesIO()
        canvas.convert("RGB").save(out, format="PNG")
    return out.getvalue()


def to_data_uri(png_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("utf-8")


class ScreenshotCapturer:
    """
    Renders the canvas iframe's body to a PNG data URI.

    Images are proxied to inline data before rendering and restored
    afterwards whatever happens. capture() never raises: a missing surface
    or any failure yields None.
    """

    def __init__(
        self,
        page: Page,
        *,
        surface_id: str = CANVAS_SURFACE_ID,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        proxy: ImageProxyConverter | None = None,
    ) -> None:
        self._page = page
        self._surface_id = surface_id
        self._settle_delay = settle_delay
        self._proxy = proxy or ImageProxyConverter()
        self.log = logger.bind(component="screenshot", surface_id=surface_id)

    async def capture(self) -> str | None:
        try:
            located = await self._locate_surface()
            if located is None:
                self.log.debug("Canvas surface not found")
                return None
            frame, body = located

            backup = await self._proxy.proxy(frame)
            try:
                # Let the swapped sources paint before rendering
                await asyncio.sleep(self._settle_delay)
                png_bytes = await self._render(body)
            finally:
                await self._proxy.restore(frame, backup)

            # Pillow decode/encode is CPU-bound; keep the event loop free
            flat = await asyncio.to_thread(flatten_png, png_bytes)
            return to_data_uri(flat)
        except Exception as e:
            self.log.warning("Failed to capture canvas screenshot", error=str(e))
            return None

    async def _locate_surface(self) -> tuple[Frame, ElementHandle] | None:
        iframe = await self._page.query_selector(f"#{self._surface_id}")
        if iframe is None:
            return None
        frame = await iframe.content_frame()
        if frame is None:
            return None
        body = await frame.query_selector("body")
        if body is None:
            return None
        return frame, body

    async def _render(self, body: ElementHandle) -> bytes:
        return await body.screenshot(type="png", omit_background=False)
