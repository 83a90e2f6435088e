"""
Lifecycle notifications.
A one way observation channel: listeners are called synchronously, in the
order they were registered, after the operation they report on has finished.
"""
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
import logging

logger = logging.getLogger(__name__)

EVENTS = ("ready", "afterCreate", "afterUpdate", "afterDelete")

@dataclass
class Notification():
    event: str
    table: str|None = field(default=None)
    payload: dict[str, Any] = field(default_factory=dict)

Listener = Callable[[Notification], Any]

class Listeners():
    """Registration list of listeners per event."""
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {e: [] for e in EVENTS}

    def __len__(self) -> int:
        return sum(len(v) for v in self._listeners.values())

    @staticmethod
    def _check(event: str) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown event '{event}', expected one of {EVENTS}")

    def add(self, event: str, listener: Listener) -> Listener:
        """Register a listener, returned so this can be used as a decorator."""
        self._check(event)
        if not callable(listener):
            raise TypeError(f"Listener for {event} is not callable: {listener!r}")
        self._listeners[event].append(listener)
        return listener

    def remove(self, event: str, listener: Listener) -> bool:
        self._check(event)
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            return False
        return True

    def emit(self, event: str, table: str|None = None, **payload: Any) -> Notification:
        self._check(event)
        notification = Notification(event, table, payload)
        logger.debug("%s %s", event, table or "")
        for listener in list(self._listeners[event]):
            listener(notification)
        return notification
