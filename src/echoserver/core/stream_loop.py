"""
=============================================================================
STREAM ACCEPT LOOP (TCP)
=============================================================================

PollingLoop over a listening socket. Each accepted connection gets its
own handler thread; the DrainTracker counts those threads so shutdown can
wait for them.

=============================================================================
SHUTDOWN SEQUENCE
=============================================================================

    RUNNING ───── token cancelled ─────► DRAINING ── tracker == 0 ──► CLOSED
       │                                     │                          │
       │ accept() + spawn handler            │ no accept() any more     │ listener
       │ tracker.add() per connection        │ in-flight echoes finish  │ closed,
       │                                     │                          │ done set

Connections still sitting in the kernel backlog when cancellation is
observed are never accepted. Closing the listener resets them, and the
client sees a reset or its own timeout.

=============================================================================
THREAD-PER-CONNECTION
=============================================================================

There is no cap on the number of handler threads. Each echo is a single
read and a single write, so handlers are short-lived.

=============================================================================
"""

import logging
import socket
import threading
from typing import Any, Callable, Optional

from .cancellation import CancellationToken
from .connection import Connection
from .drain import DrainTracker
from .polling_loop import LoopState, PollingLoop
from ..handlers.echo import echo_stream


logger = logging.getLogger(__name__)


StreamHandler = Callable[[Connection], Any]


class StreamAcceptLoop(PollingLoop):
    """
    Accept loop with connection draining.

    Usage:
        token = CancellationToken()
        listener = create_stream_listener("0.0.0.0", 5005)
        loop = StreamAcceptLoop(listener, token)
        loop.start()
        ...
        token.cancel()
        loop.wait()     # returns after all in-flight echoes complete
    """

    operation = "accept"

    def __init__(
        self,
        listener: socket.socket,
        token: CancellationToken,
        handler: StreamHandler = echo_stream,
        drain: Optional[DrainTracker] = None,
        poll_interval: float = 2.0,
        buffer_size: int = 128,
        connection_timeout: Optional[float] = None,
        linger_timeout: float = 0.5,
        **kwargs,
    ):
        super().__init__(listener, token, poll_interval, **kwargs)
        self.handler = handler
        self.drain = drain or DrainTracker()
        self.buffer_size = buffer_size
        self.connection_timeout = connection_timeout
        self.linger_timeout = linger_timeout

    def _poll_once(self) -> Connection:
        client_socket, client_address = self._socket.accept()

        try:
            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.buffer_size,
                timeout=self.connection_timeout,
                linger_timeout=self.linger_timeout,
            )
        except Exception:
            # Not yet owned by a handler
            client_socket.close()
            raise
        logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}:{conn.client_port}")
        return conn

    def _dispatch(self, conn: Connection):
        # Count the handler before it exists so wait() can never miss it
        self.drain.add()

        thread = threading.Thread(
            target=self._serve,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError as e:
            # Could not start a thread; this connection is dropped
            logger.error(f"[{conn.id}] Failed to start handler: {e}")
            conn.close()
            self.drain.done()

    def _serve(self, conn: Connection):
        """Handler thread body. Closes the connection and releases the slot once."""
        try:
            with conn:
                self.handler(conn)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
        finally:
            self.drain.done()

    def _shutdown(self):
        self.state = LoopState.DRAINING
        active = self.drain.active
        if active:
            logger.info(f"{self.name} draining {active} active connection(s)")
        self.drain.wait()
        logger.info(f"{self.name} drained")
