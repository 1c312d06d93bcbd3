"""Filesystem save sink used by the demo host."""

from __future__ import annotations

import asyncio
import base64
import datetime
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

_DEFAULT_SAVE_DIR = os.path.join(os.path.expanduser("~"), ".pagekeeper_saves")
_DATA_URI_PREFIX = "data:image/png;base64,"

# Sinks sharing a directory share index.json
_DIR_LOCKS: dict[str, threading.Lock] = {}
_DIR_LOCKS_GUARD = threading.Lock()


def _dir_lock(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _DIR_LOCKS_GUARD:
        return _DIR_LOCKS.setdefault(key, threading.Lock())


def _atomic_write(path: Path, data: bytes) -> None:
    """Write to a sibling temp file, then swap it in so readers never see a partial file."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


class FileSaveSink:
    """
    Persists save payloads for one page.

    Directory layout::

        {save_dir}/
            index.json            # one entry per save, newest last
            {page_id}.json        # latest blocks, theme, flags and HTML
            {page_id}.png         # latest screenshot, when one was captured
    """

    def __init__(self, page_id: str, save_dir: str | None = None) -> None:
        self.page_id = page_id
        self._dir = Path(save_dir or _DEFAULT_SAVE_DIR)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._dir_lock = _dir_lock(self._dir)
        self.log = logger.bind(component="file_sink", page_id=page_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def _index_path(self) -> Path:
        return self._dir / "index.json"

    @property
    def page_path(self) -> Path:
        return self._dir / f"{self.page_id}.json"

    @property
    def screenshot_path(self) -> Path:
        return self._dir / f"{self.page_id}.png"

    def _load_index(self) -> list[dict]:
        try:
            with open(self._index_path, encoding="utf-8") as f:
                return json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return []

    def _save_index(self, index: list[dict]) -> None:
        _atomic_write(self._index_path, json.dumps(index, indent=2).encode("utf-8"))

    @staticmethod
    def _decode_screenshot(data_uri: str) -> bytes | None:
        if not data_uri.startswith(_DATA_URI_PREFIX):
            return None
        return base64.b64decode(data_uri[len(_DATA_URI_PREFIX):])

    def _write(self, payload: dict[str, Any]) -> dict:
        document = {
            "page_id": self.page_id,
            "blocks": payload.get("blocks", []),
            "theme": payload.get("theme"),
            "needTranslations": payload.get("needTranslations", False),
            "autoSave": payload.get("autoSave", False),
        }
        if "domElements" in payload:
            document["domElements"] = payload["domElements"]
        _atomic_write(self.page_path, json.dumps(document, indent=2, default=str).encode("utf-8"))

        screenshot = payload.get("screenshot")
        png = self._decode_screenshot(screenshot) if screenshot else None
        if png is not None:
            _atomic_write(self.screenshot_path, png)

        entry = {
            "page_id": self.page_id,
            "saved_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "auto_save": bool(payload.get("autoSave", False)),
            "need_translations": bool(payload.get("needTranslations", False)),
            "has_screenshot": png is not None,
            "block_count": len(document["blocks"]),
        }
        with self._dir_lock:
            index = self._load_index()
            index.append(entry)
            self._save_index(index)
        return entry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def __call__(self, payload: dict[str, Any]) -> None:
        async with self._lock:
            entry = await asyncio.to_thread(self._write, payload)
        self.log.info("Save written", path=str(self.page_path), has_screenshot=entry["has_screenshot"])

    def load(self) -> dict | None:
        """Latest saved document for this page, or None."""
        if not self.page_path.exists():
            return None
        try:
            return json.loads(self.page_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return None

    def history(self) -> list[dict]:
        return [e for e in self._load_index() if e.get("page_id") == self.page_id]
