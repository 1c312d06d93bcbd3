"""SaveOrchestrator: turns the in-memory block tree into one call to the host save sink."""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable

import structlog

from pagekeeper.capture.screenshot import DEFAULT_SETTLE_DELAY, ScreenshotCapturer
from pagekeeper.core.state import SaveStateMachine
from pagekeeper.core.throttle import TrailingThrottle
from pagekeeper.core.types import BlockRecord, BuilderProps, PageData, PageSnapshot, SaveStatus, StateListener
from pagekeeper.i18n.auditor import TranslationAuditor

logger = structlog.get_logger(__name__)

# At most one throttled save starts per window (seconds)
DEFAULT_THROTTLE_WAIT = 3.0

SAVE_PERMISSION = "save_page"


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class SaveOrchestrator:
    """
    Sits between the editor UI and the host's save sink.

    Usage:
        saver = SaveOrchestrator(props, capturer=ScreenshotCapturer(page))
        await saver.save_page(False)       # throttled, with HTML export
        await saver.save_page_async()      # autosave path, no HTML export
    """

    def __init__(
        self,
        props: BuilderProps,
        *,
        capturer: ScreenshotCapturer | None = None,
        auditor: TranslationAuditor | None = None,
        state: SaveStateMachine | None = None,
        throttle_wait: float = DEFAULT_THROTTLE_WAIT,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ) -> None:
        self._props = props
        self._capturer = capturer
        self._auditor = auditor or TranslationAuditor()
        self._state = state or SaveStateMachine(on_change=props.on_save_state_change)
        self._settle_delay = settle_delay
        self._throttled: TrailingThrottle[bool] = TrailingThrottle(self._begin_save, throttle_wait)
        self.log = logger.bind(component="save_orchestrator")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status(self) -> SaveStatus:
        return self._state.status

    @property
    def state(self) -> SaveStateMachine:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._state.subscribe(listener)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def save_page(self, auto_save: bool = False) -> asyncio.Future:
        """
        Throttled save. Resolves to True once the save that covers this call
        has completed; calls made inside the throttle window resolve with the
        single trailing save they were merged into.

        Must be called from a running event loop.
        """
        return self._throttled(auto_save)

    async def save_page_async(self) -> bool | None:
        """Unthrottled autosave without HTML export. No-op unless permitted and the page is loaded."""
        if not self._props.has_permission(SAVE_PERMISSION) or not self._props.is_page_loaded():
            return None
        self._state.start_saving()
        return await self._save(auto_save=True, export_html=False)

    async def need_translations(self) -> bool:
        """Audit the current block tree for the selected language."""
        if not self._audits_language():
            return False
        page_data = PageData.coerce(await _resolve(self._props.get_page_data()))
        return self._translations_missing(page_data.blocks)

    async def upload_image(self, file: Any) -> str | None:
        if self._props.on_image_upload is None:
            return None
        return await self._props.on_image_upload(file)

    def close(self) -> None:
        """Drop a pending trailing save."""
        self._throttled.cancel()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _begin_save(self, auto_save: bool):
        # Synchronous part: status flips before any await
        self._state.start_saving()
        return self._save(auto_save=auto_save, export_html=True)

    async def _save(self, *, auto_save: bool, export_html: bool) -> bool:
        t0 = time.monotonic()
        try:
            page_data = PageData.coerce(await _resolve(self._props.get_page_data()))
            blocks = page_data.blocks
            theme = self._props.get_theme()

            if export_html:
                dom_elements, screenshot = await self._export_and_capture(blocks, theme)
            else:
                dom_elements, screenshot = None, await self._capture()

            snapshot = PageSnapshot(
                auto_save=auto_save,
                blocks=tuple(blocks),
                theme=theme,
                need_translations=self._translations_missing(blocks),
                dom_elements=dom_elements,
                screenshot=screenshot,
                include_dom=export_html,
            )
            await self._props.on_save(snapshot.to_payload())
        except BaseException as e:
            # Failed or cancelled: nothing was persisted, the page is still dirty
            self.log.warning("Save failed", auto_save=auto_save, error=repr(e))
            self._state.mark_unsaved()
            raise

        # Keep "saving" visible even for fast sinks
        await asyncio.sleep(self._settle_delay)
        self._state.finish_saving()

        self.log.info(
            "Page saved",
            auto_save=auto_save,
            blocks=len(snapshot.blocks),
            has_screenshot=snapshot.screenshot is not None,
            need_translations=snapshot.need_translations,
            latency_ms=round((time.monotonic() - t0) * 1000, 1),
        )
        return True

    def _audits_language(self) -> bool:
        selected = self._props.selected_lang
        return bool(selected) and selected != self._props.fallback_lang

    def _translations_missing(self, blocks: list[BlockRecord]) -> bool:
        if not self._audits_language():
            return False
        return self._auditor.has_missing_translations(blocks, self._props.selected_lang)

    async def _export_and_capture(self, blocks: list[BlockRecord], theme: Any) -> tuple[Any, str | None]:
        capture = asyncio.ensure_future(self._capture())
        try:
            dom_elements = await self._export_html(blocks, theme)
        except BaseException:
            # The capture's own finally restores the image sources
            capture.cancel()
            await asyncio.gather(capture, return_exceptions=True)
            raise
        return dom_elements, await capture

    async def _export_html(self, blocks: list[BlockRecord], theme: Any) -> Any:
        if self._props.export_html is None:
            return None
        return await _resolve(self._props.export_html(blocks, theme))

    async def _capture(self) -> str | None:
        if self._capturer is None:
            return None
        return await self._capturer.capture()
