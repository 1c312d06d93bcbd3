"""Shared types and dataclasses for pagekeeper."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Mapping

BlockRecord = dict[str, Any]

# Keys the block-tree collaborator uses on every record
TYPE_KEY = "_type"
ID_KEY = "_id"


class SaveStatus(str, Enum):
    SAVED = "SAVED"
    SAVING = "SAVING"
    UNSAVED = "UNSAVED"  # block tree changed since the last save


@dataclass
class PageData:
    """Current state of the block tree as read by the save pipeline."""

    blocks: list[BlockRecord] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, raw: PageData | Mapping[str, Any] | None) -> PageData:
        """Accept either a PageData or the ``{"blocks": [...], ...}`` mapping hosts pass around."""
        if raw is None:
            return cls()
        if isinstance(raw, PageData):
            return raw
        extra = {k: v for k, v in raw.items() if k != "blocks"}
        return cls(blocks=list(raw.get("blocks") or []), extra=extra)


@dataclass(frozen=True)
class PageSnapshot:
    """One save attempt's payload. Built once, handed to the sink, then dropped."""

    auto_save: bool
    blocks: tuple[BlockRecord, ...]
    theme: Any
    need_translations: bool
    dom_elements: Any = None
    screenshot: str | None = None  # data:image/png;base64,...
    include_dom: bool = True  # False when the entry point skipped HTML export

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "autoSave": self.auto_save,
            "blocks": list(self.blocks),
            "theme": self.theme,
            "needTranslations": self.need_translations,
            "screenshot": self.screenshot,
        }
        if self.include_dom:
            payload["domElements"] = self.dom_elements
        return payload


class ImageSourceBackup(Mapping[str, str]):
    """
    Original ``src`` of every image swapped during one screenshot capture,
    keyed by the proxy id written on the element as ``data-pk-proxy-id``.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})

    def __getitem__(self, proxy_id: str) -> str:
        return self._entries[proxy_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ImageSourceBackup({len(self._entries)} images)"

    def to_dict(self) -> dict[str, str]:
        return dict(self._entries)


SaveSink = Callable[[dict[str, Any]], Awaitable[None]]
StateListener = Callable[[str], None]


def _noop(*_args: Any, **_kwargs: Any) -> None:
    return None


def _always(*_args: Any, **_kwargs: Any) -> bool:
    return True


@dataclass
class BuilderProps:
    """
    Collaborators supplied by the embedding application.

    ``get_page_data`` and ``export_html`` may be plain functions or return
    awaitables; ``on_save`` and ``on_image_upload`` must be async.
    """

    on_save: SaveSink
    get_page_data: Callable[[], Any]
    export_html: Callable[[list[BlockRecord], Any], Any] | None = None
    on_save_state_change: StateListener = _noop
    on_image_upload: Callable[[Any], Awaitable[str]] | None = None
    has_permission: Callable[[str], bool] = _always
    is_page_loaded: Callable[[], bool] = _always
    get_theme: Callable[[], Any] = dict
    selected_lang: str = ""
    fallback_lang: str = "en"
