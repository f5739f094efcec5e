"""
=============================================================================
PACKET RECEIVE LOOP (UDP)
=============================================================================

PollingLoop over a datagram socket. UDP has no connections, so there is
nothing to hand off: each datagram is echoed inline, in the loop thread,
before the next poll.

    RUNNING ───── token cancelled ─────► CLOSED

No drain phase. By the time the loop checks the token again, the reply
to the previous datagram has already been sent (or failed and been
logged). Datagrams arriving after that are never read.

Datagrams are served strictly one at a time; the kernel's receive buffer
is the only queue.

=============================================================================
"""

import logging
import socket
from typing import Any, Callable, Tuple

from .cancellation import CancellationToken
from .polling_loop import PollingLoop
from ..handlers.echo import echo_datagram


logger = logging.getLogger(__name__)


DatagramHandler = Callable[[socket.socket, bytes, tuple], Any]


class PacketReceiveLoop(PollingLoop):
    """Receive loop that replies to each datagram before polling again."""

    operation = "recv"

    def __init__(
        self,
        sock: socket.socket,
        token: CancellationToken,
        handler: DatagramHandler = echo_datagram,
        poll_interval: float = 5.0,
        buffer_size: int = 4096,
        **kwargs,
    ):
        super().__init__(sock, token, poll_interval, **kwargs)
        self.handler = handler
        self.buffer_size = buffer_size

    def _poll_once(self) -> Tuple[bytes, tuple]:
        return self._socket.recvfrom(self.buffer_size)

    def _dispatch(self, work: Tuple[bytes, tuple]):
        data, address = work
        logger.debug(f"{self.name} received {len(data)} bytes from {address[0]}:{address[1]}")
        try:
            self.handler(self._socket, data, address)
        except Exception as e:
            logger.exception(f"{self.name} handler error for {address[0]}:{address[1]}: {e}")
