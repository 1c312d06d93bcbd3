"""Swap loaded images to inline PNG data so the canvas surface can be rasterised across origins."""

from __future__ import annotations

import uuid

import structlog
from playwright.async_api import Frame

from pagekeeper.core.types import ImageSourceBackup

logger = structlog.get_logger(__name__)

PROXY_ATTR = "data-pk-proxy-id"

_PROXY_IMAGES_JS = """([attr, prefix]) => {
    const converted = {};
    const failed = [];
    let seq = 0;

    for (const img of Array.from(document.body.querySelectorAll('img'))) {
        if (!img.src || img.src.startsWith('data:')) continue;
        if (!img.complete || img.naturalWidth === 0) continue;

        try {
            const canvas = document.createElement('canvas');
            canvas.width = img.naturalWidth;
            canvas.height = img.naturalHeight;
            const ctx = canvas.getContext('2d');
            if (!ctx) continue;
            ctx.drawImage(img, 0, 0);
            // Throws SecurityError on a tainted (cross-origin) canvas
            const dataUrl = canvas.toDataURL('image/png');
            const id = prefix + (seq++);
            converted[id] = img.getAttribute('src');
            img.setAttribute(attr, id);
            img.src = dataUrl;
        } catch (e) {
            failed.push({ src: img.src, error: String(e && e.message || e) });
        }
    }
    return { converted, failed };
}"""

_RESTORE_IMAGES_JS = """([attr, originals]) => {
    let restored = 0;
    for (const img of Array.from(document.querySelectorAll('img[' + attr + ']'))) {
        const id = img.getAttribute(attr);
        if (!(id in originals)) continue;
        img.src = originals[id];
        img.removeAttribute(attr);
        restored++;
    }
    return restored;
}"""


class ImageProxyConverter:
    """
    proxy() and restore() are an acquire/release pair: callers must run
    restore() on every exit path once proxy() has returned.

    Broken, pending and already-inline images are left untouched. An image
    whose canvas export fails is logged and skipped.
    """

    def __init__(self) -> None:
        self.log = logger.bind(component="image_proxy")

    async def proxy(self, frame: Frame) -> ImageSourceBackup:
        # Per-capture prefix so a stale marker from an earlier capture never matches
        prefix = f"pk-{uuid.uuid4().hex[:8]}-"
        raw = await frame.evaluate(_PROXY_IMAGES_JS, [PROXY_ATTR, prefix]) or {}

        for failure in raw.get("failed", []):
            self.log.warning(
                "Could not convert image to inline data",
                src=failure.get("src", ""),
                error=failure.get("error", ""),
            )

        backup = ImageSourceBackup(raw.get("converted") or {})
        self.log.debug("Images proxied", converted=len(backup), failed=len(raw.get("failed", [])))
        return backup

    async def restore(self, frame: Frame, backup: ImageSourceBackup) -> int:
        if not backup:
            return 0
        restored = await frame.evaluate(_RESTORE_IMAGES_JS, [PROXY_ATTR, backup.to_dict()])
        if restored != len(backup):
            self.log.warning("Some proxied images were not restored", expected=len(backup), restored=restored)
        return restored
