"""
=============================================================================
THE CANCELLABLE POLLING LOOP
=============================================================================

Every service in this package spends its life inside one of these loops.
The loop turns a blocking "wait for the next unit of work" call into one
that can be interrupted by a CancellationToken.

=============================================================================
THE PROBLEM
=============================================================================

The obvious shutdown is "close the socket from another thread":

    Thread A:  sock.accept()  ◄── blocked in the kernel
    Thread B:  sock.close()   ◄── shutdown request

What happens next depends on the platform. Thread A may stay blocked,
may wake with EBADF, or may end up accepting on a descriptor number that
has since been reused by an unrelated file. None of these is a clean
shutdown.

The fix is to never let two threads touch the socket: the SAME thread
that accepts is the one that eventually closes, and it only blocks for
a bounded time between checks of the token.

=============================================================================
LOOP INVARIANT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   while not token.is_cancelled():            ◄── 1. check first     │
    │       │                                                              │
    │       ├──► select([sock, token], poll_interval)                     │
    │       │       │                                                      │
    │       │       ├── nothing ready   → deadline exceeded, loop         │
    │       │       └── token ready     → loop (exits at the check)       │
    │       │                                                              │
    │       ├──► _poll_once()   accept() / recvfrom()                     │
    │       │       │                                                      │
    │       │       ├── socket.timeout → deadline exceeded, loop          │
    │       │       ├── OSError        → log, loop                        │
    │       │       └── work           → _dispatch(work), loop            │
    │       │                                                              │
    │   _shutdown()          ◄── drain (stream) / nothing (packet)        │
    │   close socket, set done                                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The token's file descriptor sits in the same selector as the socket, so a
cancellation wakes the loop at once instead of after up to one poll
interval. The poll interval still bounds every wait, and the socket carries
the same value as its timeout, so even a spurious readiness cannot turn
into an unbounded accept().

=============================================================================
"""

import logging
import selectors
import socket
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from .cancellation import CancellationToken


logger = logging.getLogger(__name__)


class LoopState(Enum):
    """
    Loop lifecycle.

    Stream:  RUNNING → DRAINING → CLOSED
    Packet:  RUNNING → CLOSED
    """
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


class PollingLoop(ABC):
    """
    Base class for the accept and receive loops.

    Subclasses implement:
        _poll_once()    one blocking I/O call, returns a unit of work
        _dispatch(work) handle that unit of work
        _shutdown()     specialization-specific shutdown, before close

    The loop owns its socket: it is the only code that ever calls
    accept()/recvfrom() or close() on it.
    """

    # Name of the blocking operation, used in log lines
    operation = "poll"

    def __init__(
        self,
        sock: socket.socket,
        token: CancellationToken,
        poll_interval: float,
        selector_factory: Optional[Callable[[], selectors.BaseSelector]] = None,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")

        self._socket = sock
        self.token = token
        self.poll_interval = poll_interval
        self._selector_factory = selector_factory or selectors.DefaultSelector

        # Every blocking call on the socket runs under this deadline
        self._socket.settimeout(poll_interval)

        # getsockname() fails once the socket is closed, so capture it now
        self.address = self._socket.getsockname()

        self.state = LoopState.RUNNING
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def name(self) -> str:
        return f"{type(self).__name__}({self.address[0]}:{self.address[1]})"

    @property
    def is_done(self) -> bool:
        """True once the socket is closed and the loop has returned."""
        return self._done.is_set()

    # =========================================================================
    # SPECIALIZATION HOOKS
    # =========================================================================

    @abstractmethod
    def _poll_once(self) -> Any:
        """Perform the blocking call once. May raise socket.timeout/OSError."""

    @abstractmethod
    def _dispatch(self, work: Any):
        """Handle one unit of work returned by _poll_once()."""

    def _shutdown(self):
        """Runs after the loop exits and before the socket is closed."""

    # =========================================================================
    # THE LOOP
    # =========================================================================

    def run(self):
        """
        Run the loop in the calling thread until the token is cancelled.

        Blocks. On return the socket is closed and the completion event
        is set.
        """
        logger.info(f"{self.name} polling every {self.poll_interval}s")

        try:
            self._loop()
        finally:
            # Drain before close even if the loop itself failed
            try:
                self._shutdown()
            finally:
                self._close()

    def _loop(self):
        with self._selector_factory() as selector:
            selector.register(self._socket, selectors.EVENT_READ)
            selector.register(self.token, selectors.EVENT_READ)

            while not self.token.is_cancelled():
                if not selector.select(self.poll_interval):
                    logger.debug(f"{self.name} {self.operation} deadline exceeded")
                    continue

                # The token may be what woke us; never take new work then
                if self.token.is_cancelled():
                    break

                try:
                    work = self._poll_once()
                except socket.timeout:
                    logger.debug(f"{self.name} {self.operation} deadline exceeded")
                    continue
                except OSError as e:
                    logger.error(f"{self.name} {self.operation} failed: {e}")
                    continue

                self._dispatch(work)

        logger.info(f"{self.name} cancellation observed, stopping")

    def _close(self):
        try:
            self._socket.close()
        except OSError as e:
            logger.warning(f"{self.name} close failed: {e}")
        self.state = LoopState.CLOSED
        self._done.set()
        logger.info(f"{self.name} closed")

    # =========================================================================
    # BACKGROUND EXECUTION
    # =========================================================================

    def start(self) -> threading.Thread:
        """Run the loop in a background thread and return the thread."""
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")

        self._thread = threading.Thread(
            target=self.run,
            name=f"{type(self).__name__}-{self.address[1]}",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the completion signal.

        Returns:
            True if the loop finished, False on timeout.
        """
        return self._done.wait(timeout)
