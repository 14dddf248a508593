"""Write-once value that several threads can peek at or wait on."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class OneShot(Generic[T]):
    """
    A value published exactly once and readable any number of times.

    Readers never consume the value: ``is_set()`` and ``peek()`` return
    immediately, ``wait()`` blocks until the value is published.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._value: T | None = None

    def set(self, value: T) -> None:
        """Publish the value and wake all waiters.

        Raises:
            RuntimeError: If a value was already published.
        """
        with self._lock:
            if self._event.is_set():
                raise RuntimeError("OneShot value already set")
            self._value = value
            self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def peek(self) -> T | None:
        """Return the value if published, else None, without blocking."""
        if self._event.is_set():
            return self._value
        return None

    def wait(self, timeout: float | None = None) -> T | None:
        """Block until the value is published.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever.

        Returns:
            The published value, or None if the timeout elapsed first.
        """
        if self._event.wait(timeout):
            return self._value
        return None
