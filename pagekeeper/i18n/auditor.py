"""Translation audit: does any block lack a value for the active language?"""

from __future__ import annotations

from typing import Any, Iterable

import structlog

from pagekeeper.core.types import TYPE_KEY, BlockRecord
from pagekeeper.i18n.registry import BlockRegistry, default_registry

logger = structlog.get_logger(__name__)

# Composite blocks that point at another page's tree; never audited
PARTIAL_BLOCK_TYPE = "PartialBlock"


def translated_key(prop: str, lang: str) -> str:
    return f"{prop}-{lang}"


def _untranslated(block: BlockRecord, props: Iterable[str], lang: str) -> list[str]:
    return [p for p in props if not block.get(translated_key(p, lang))]


def has_missing_translations(
    blocks: Iterable[BlockRecord],
    lang: str,
    *,
    registry: BlockRegistry = default_registry,
) -> bool:
    """True as soon as one audited block has one localizable prop without a ``<prop>-<lang>`` value."""
    if not lang:
        return False

    for block in blocks:
        block_type = block.get(TYPE_KEY) if block else None
        if not block_type or block_type == PARTIAL_BLOCK_TYPE:
            continue
        try:
            props = registry.i18n_props(block_type)
        except Exception as e:
            logger.warning("Block definition lookup failed", block_type=block_type, error=str(e))
            continue
        if any(not block.get(translated_key(p, lang)) for p in props):
            return True
    return False


class TranslationAuditor:
    """Registry-bound wrapper around has_missing_translations."""

    def __init__(self, registry: BlockRegistry | None = None) -> None:
        self._registry = registry if registry is not None else default_registry

    @property
    def registry(self) -> BlockRegistry:
        return self._registry

    def has_missing_translations(self, blocks: Iterable[BlockRecord], lang: str) -> bool:
        return has_missing_translations(blocks, lang, registry=self._registry)

    def missing_fields(self, block: BlockRecord, lang: str) -> list[str]:
        """Localizable props of ``block`` with no value for ``lang`` (empty for unaudited blocks)."""
        block_type: Any = block.get(TYPE_KEY)
        if not lang or not block_type or block_type == PARTIAL_BLOCK_TYPE:
            return []
        return _untranslated(block, self._registry.i18n_props(block_type), lang)
