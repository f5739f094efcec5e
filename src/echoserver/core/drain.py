"""
=============================================================================
DRAIN TRACKER
=============================================================================

Counts stream connection handlers that are still running, so the accept
loop can wait for them before it releases the listening socket.

    accept() ──► tracker.add() ──► spawn handler thread
                                         │
                                         ▼
                                   echo the request
                                         │
                                         ▼
                                   tracker.done()   (always, in finally)

    shutdown ──► tracker.wait()  blocks until count == 0
             ──► listener.close()

All three operations share one threading.Condition, so a done() can never
slip between the count check and the wait.

The shutdown path calls wait() with no timeout: a handler that never
finishes stalls shutdown forever. connection_timeout bounds silent clients.
=============================================================================
"""

import threading
from typing import Optional


class DrainTracker:
    """Thread-safe counter of in-flight handlers with a blocking wait-for-zero."""

    def __init__(self):
        self._count = 0
        self._condition = threading.Condition()

    @property
    def active(self) -> int:
        """Current number of in-flight handlers."""
        with self._condition:
            return self._count

    def add(self, n: int = 1):
        """Register n new handlers. Called by the loop before spawning."""
        if n < 0:
            raise ValueError("n must be >= 0")
        with self._condition:
            self._count += n

    def done(self):
        """
        Release one handler slot and wake waiters when the count hits zero.

        Raises:
            ValueError: If called more times than add().
        """
        with self._condition:
            if self._count == 0:
                raise ValueError("DrainTracker.done() called with no active handlers")
            self._count -= 1
            if self._count == 0:
                self._condition.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no handlers are active.

        Args:
            timeout: Seconds to wait. None waits forever.

        Returns:
            True if the count reached zero, False on timeout.
        """
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout)

    def __repr__(self) -> str:
        return f"<DrainTracker active={self.active}>"
