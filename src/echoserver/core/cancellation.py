"""
=============================================================================
CANCELLATION: FROM OS SIGNAL TO SHUTDOWN REQUEST
=============================================================================

This module turns an operating-system termination request into a single
shutdown signal that every loop in the process can observe.

=============================================================================
TWO PIECES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Ctrl+C / docker stop / kill                                        │
    │          │                                                           │
    │          ▼                                                           │
    │   ┌──────────────────────┐                                           │
    │   │  CancellationSource  │   signal handler (main thread only)      │
    │   └──────────┬───────────┘                                           │
    │              │ token.cancel()                                        │
    │              ▼                                                       │
    │   ┌──────────────────────┐                                           │
    │   │  CancellationToken   │   LIVE ──────► CANCELLED  (one way)      │
    │   └──────────┬───────────┘                                           │
    │              │                                                       │
    │      ┌───────┴────────┐                                              │
    │      ▼                ▼                                              │
    │  is_cancelled()    fileno()  ◄── readable once cancelled            │
    │  (flag check)      (wakes a selector immediately)                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The flag is a threading.Event. The file descriptor is one end of a
socketpair: cancel() writes a byte into the other end and nobody ever
reads it back, so once cancelled the descriptor stays readable forever.
Any number of loops can register it in their selectors.

=============================================================================
SIGNALS RECAP
=============================================================================

SIGINT (2):   Ctrl+C in a terminal
SIGTERM (15): docker stop, systemd stop, kill <pid>

Python runs signal handlers in the MAIN thread, between bytecodes. The
handler below only flips the token; all real shutdown work happens in the
loop that observes it.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Iterable, Optional


logger = logging.getLogger(__name__)


DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """
    One-shot, multi-reader shutdown signal.

    The token starts LIVE and transitions exactly once to CANCELLED.
    There is no reset.

    Usage:
        token = CancellationToken()

        # Any thread:
        if token.is_cancelled():
            ...

        # Selector integration:
        selector.register(token, selectors.EVENT_READ)
    """

    def __init__(self):
        self._event = threading.Event()
        # Taken once, by the winning cancel(), and never released. The
        # non-blocking acquire is atomic, so a signal handler interrupting
        # cancel() on the main thread sees it taken instead of re-entering.
        self._winner = threading.Lock()

        # Wakeup pair: cancel() writes to _wakeup_writer, selectors watch
        # _wakeup_reader. Never drained.
        self._wakeup_reader, self._wakeup_writer = socket.socketpair()
        self._wakeup_reader.setblocking(False)
        self._wakeup_writer.setblocking(False)

    def cancel(self) -> bool:
        """
        Trigger cancellation.

        Safe to call from any thread and from a signal handler.

        Returns:
            True if this call performed the LIVE -> CANCELLED transition,
            False if the token was already cancelled.
        """
        if not self._winner.acquire(blocking=False):
            return False
        self._event.set()

        try:
            self._wakeup_writer.send(b"\x00")
        except OSError as e:
            # The flag is already set; selectors fall back to the poll interval.
            logger.debug(f"Cancellation wakeup write failed: {e}")
        return True

    def is_cancelled(self) -> bool:
        """Check whether cancellation has been requested."""
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or until timeout. Returns is_cancelled()."""
        return self._event.wait(timeout)

    def fileno(self) -> int:
        """Descriptor that becomes readable once the token is cancelled."""
        return self._wakeup_reader.fileno()

    def close(self):
        """Release the wakeup socketpair."""
        for sock in (self._wakeup_reader, self._wakeup_writer):
            try:
                sock.close()
            except OSError:
                pass

    def __repr__(self) -> str:
        state = "cancelled" if self.is_cancelled() else "live"
        return f"<CancellationToken {state}>"


class CancellationSource:
    """
    Bridges SIGINT/SIGTERM into a CancellationToken.

    The first signal cancels the token. Later signals are no-ops because
    the token cannot be triggered twice.

    Original handlers are saved on install() and put back on restore().

    Usage:
        token = CancellationToken()
        with CancellationSource(token):
            loop.run()
    """

    def __init__(
        self,
        token: CancellationToken,
        signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
    ):
        self.token = token
        self.signals = tuple(signals)
        self._original_handlers: dict = {}

    @property
    def installed(self) -> bool:
        return bool(self._original_handlers)

    def _handle_signal(self, signum, frame):
        signal_name = signal.Signals(signum).name
        if self.token.cancel():
            logger.info(f"Received {signal_name}, cancelling")
        else:
            logger.debug(f"Received {signal_name}, already cancelled")

    def install(self) -> "CancellationSource":
        """
        Register the signal handlers.

        Raises:
            ValueError: If called from a thread other than the main thread
                        (a restriction of the signal module).
        """
        if self.installed:
            return self

        for sig in self.signals:
            self._original_handlers[sig] = signal.signal(sig, self._handle_signal)
        return self

    def restore(self):
        """Restore the handlers that were active before install()."""
        for sig, handler in self._original_handlers.items():
            # None means the previous handler was not installed from Python
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        self._original_handlers.clear()

    def __enter__(self) -> "CancellationSource":
        return self.install()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.restore()
        return False
