"""Per-unit cancellation tokens.

Each translation unit gets its own token, threaded explicitly through the
matcher, resolver and synthesizer. Cancelling one token never affects any
other unit; there is no process-wide flag.
"""

from __future__ import annotations

import threading
import time

from transmute.errors import TranslationCancelled


class CancellationToken:
    """A cancel flag plus an optional monotonic deadline."""

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def bounded(self, timeout: float) -> float:
        """``timeout`` clipped to what is left before the deadline."""
        left = self.remaining()
        return timeout if left is None else min(timeout, left)

    def raise_if_cancelled(self, unit_name: str) -> None:
        if self.cancelled:
            raise TranslationCancelled(unit_name)
