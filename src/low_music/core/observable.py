"""Listener registry used by the stores and the player to publish changes.

Listeners are called synchronously, in subscription order, as
``listener(event, payload)``.
"""

import threading
from typing import Any, Callable

from loguru import logger

Listener = Callable[[str, Any], None]


class Observable:
    """Mixin holding a list of listeners and emitting named events."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._listeners_lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it again."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, payload: Any = None) -> None:
        """Call every listener; a failing listener is logged and skipped."""
        with self._listeners_lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event, payload)
            except Exception:
                logger.exception(f"Listener failed while handling '{event}'")
