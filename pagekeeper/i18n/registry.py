"""Block registry: localizable-field capability table keyed by block type."""

from __future__ import annotations

from typing import Iterable


class BlockRegistry:
    """
    Populated at startup by whatever registers block types.
    Lookups are total: an unknown type has no localizable fields.
    """

    def __init__(self) -> None:
        # block type → localizable prop names
        self._i18n_props: dict[str, tuple[str, ...]] = {}

    def register(self, block_type: str, *, i18n_props: Iterable[str] = ()) -> None:
        self._i18n_props[block_type] = tuple(i18n_props)

    def unregister(self, block_type: str) -> None:
        self._i18n_props.pop(block_type, None)

    def i18n_props(self, block_type: str) -> tuple[str, ...]:
        return self._i18n_props.get(block_type, ())

    def is_registered(self, block_type: str) -> bool:
        return block_type in self._i18n_props

    def __contains__(self, block_type: object) -> bool:
        return block_type in self._i18n_props

    def __len__(self) -> int:
        return len(self._i18n_props)

    def clear(self) -> None:
        self._i18n_props.clear()


default_registry = BlockRegistry()
