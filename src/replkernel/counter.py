"""Execution counter shared by all requests on one connection."""

from __future__ import annotations

import threading


class ExecutionCounter:
    """Monotonic counter with atomic fetch-and-increment.

    Reading :attr:`current` never takes the allocation lock.
    """

    def __init__(self, start: int = 1) -> None:
        self._next = start
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        return self._next

    def allocate(self) -> int:
        with self._lock:
            value = self._next
            self._next = value + 1
            return value
