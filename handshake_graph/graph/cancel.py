"""Cancellation token shared between a traversal and its batch workers."""
from __future__ import annotations

import threading
import time
from typing import Optional

from handshake_graph.errors import TraversalCancelled, TraversalTimeout


class CancelToken:
    """Explicit cancel signal plus an optional monotonic deadline."""

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout_seconds if timeout_seconds is not None else None

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise TraversalCancelled("Traversal cancelled")
        if self.expired():
            raise TraversalTimeout("Traversal deadline exceeded")
