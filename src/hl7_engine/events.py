# src/hl7_engine/events.py
"""
Event channels for interface notifications.

Each interface exposes three channels: message (a Message was received or
delivered), status (lifecycle and connection changes) and error
(recoverable or terminal failures). Handlers run synchronously on the
interface's own thread, in subscription order.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Generic, List, TypeVar

LOG = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class InterfaceStatusEvent:
    """A status change reported by an interface."""

    interface: str
    text: str
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return self.text


class EventChannel(Generic[T]):
    """
    A list of handlers called with each emitted payload.

    A handler that raises is logged and skipped; it never breaks the loop
    that emitted the event.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._handlers: List[Callable[[T], None]] = []

    def subscribe(self, handler: Callable[[T], None]) -> Callable[[T], None]:
        """Register ``handler``; returns it so this can be used as a decorator."""
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")
        with self._lock:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Callable[[T], None]) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

    def emit(self, payload: T) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                LOG.exception("%s event handler %r failed", self.name or "event", handler)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)
