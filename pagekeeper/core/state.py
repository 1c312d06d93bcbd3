"""Save-status register with host notification and subscriptions."""

from __future__ import annotations

from typing import Callable

import structlog

from pagekeeper.core.types import SaveStatus, StateListener, _noop

logger = structlog.get_logger(__name__)


class SaveStateMachine:
    """
    Holds the single current SaveStatus.

    The orchestrator is the only writer of SAVING/SAVED; the block-tree
    collaborator calls mark_unsaved() when the tree changes. Every transition
    is pushed to the host notifier first, then to subscribers.
    """

    def __init__(
        self,
        *,
        on_change: StateListener = _noop,
        initial: SaveStatus = SaveStatus.SAVED,
    ) -> None:
        self._status = initial
        self._on_change = on_change
        self._listeners: list[StateListener] = []
        self.log = logger.bind(component="save_state")

    @property
    def status(self) -> SaveStatus:
        return self._status

    def start_saving(self) -> None:
        self._set(SaveStatus.SAVING)

    def finish_saving(self) -> None:
        self._set(SaveStatus.SAVED)

    def mark_unsaved(self) -> None:
        self._set(SaveStatus.UNSAVED)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a read-only listener. Returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, status: SaveStatus) -> None:
        previous = self._status
        self._status = status
        self.log.debug("Save status changed", previous=previous.value, status=status.value)

        # Host notifier errors belong to the host
        self._on_change(status.value)

        for listener in list(self._listeners):
            try:
                listener(status.value)
            except Exception as e:
                self.log.warning("Save status listener failed", error=str(e))
