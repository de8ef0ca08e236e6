"""
Observer lists used in place of UI property bindings.

Each component exposes one Event per thing that can happen to it; the
coordinator and any presentation layer subscribe with add_listener().
"""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class Event:
    """A list of listeners invoked synchronously, in subscription order."""

    def __init__(self, name: str = ""):
        self.name = name
        self._listeners: list[Callable[..., Any]] = []

    def add_listener(self, listener: Callable[..., Any]) -> None:
        if not callable(listener):
            raise ValueError("Listener must be callable")
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[..., Any]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)

    def emit(self, *args: Any, **kwargs: Any) -> None:
        # Listener failures are logged, never propagated
        for listener in list(self._listeners):
            try:
                listener(*args, **kwargs)
            except Exception:
                logger.exception("Error in %s listener", self.name or "event")
