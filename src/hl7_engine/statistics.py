# src/hl7_engine/statistics.py
"""
Interface statistics.

Counters are written from an interface's own loop and read concurrently by
monitoring code, so every access goes through one lock. The lock is never
held across I/O.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Dict, Optional

ALL_MESSAGE_TYPES = "ALL"


class InterfaceStatistics:
    """Success/failure counts, last activity and uptime for one interface."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._successes: Dict[str, int] = {}
        self._failures: Dict[str, int] = {}
        self.started_at = datetime.now()
        self._last_message_at: Optional[datetime] = None

    @property
    def last_message_at(self) -> Optional[datetime]:
        with self._lock:
            return self._last_message_at

    @property
    def uptime(self) -> timedelta:
        return datetime.now() - self.started_at

    def add_success(self, message_type: str) -> None:
        with self._lock:
            self._last_message_at = datetime.now()
            self._successes[message_type] = self._successes.get(message_type, 0) + 1

    def add_failure(self, message_type: str = ALL_MESSAGE_TYPES) -> None:
        with self._lock:
            self._last_message_at = datetime.now()
            self._failures[message_type] = self._failures.get(message_type, 0) + 1

    def successes(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._successes)

    def failures(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._failures)

    def messages_received(self) -> int:
        with self._lock:
            return sum(self._successes.values())

    def failure_count(self) -> int:
        with self._lock:
            return sum(self._failures.values())

    def has_received_message(self, window: timedelta) -> bool:
        """
        Return True unless the last recorded message is older than ``window``.

        An interface that has not recorded anything yet counts as receiving.
        """
        with self._lock:
            last = self._last_message_at
        if last is None:
            return True
        return datetime.now() - last <= window

    def merge(self, other: "InterfaceStatistics") -> None:
        """Add the counts of ``other`` into this collector."""
        successes, failures = other.successes(), other.failures()
        with self._lock:
            for key, count in successes.items():
                self._successes[key] = self._successes.get(key, 0) + count
            for key, count in failures.items():
                self._failures[key] = self._failures.get(key, 0) + count

    def clear(self) -> None:
        with self._lock:
            self._successes.clear()
            self._failures.clear()

    def __repr__(self) -> str:
        return (
            f"<InterfaceStatistics received={self.messages_received()} "
            f"failures={self.failure_count()}>"
        )
