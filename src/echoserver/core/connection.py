"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket. A Connection is owned by exactly one
handler thread for its whole life and is closed exactly once when that
handler exits, whatever the outcome.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

The echo service has no framing. One recv() returns whatever the kernel
has buffered, up to buffer_size bytes:

    Client sends:   send("hello")
    Server reads:   recv(128) → "hello"       (usual case)
                    recv(128) → "hel"         (possible, TCP may split)

Whatever one read returns is what gets echoed. Bytes beyond the first
read are never looked at.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► WRITING ──────┐
     │             │                │          │
     │             ▼                ▼          ▼
     └─────────► CLOSING ◄─────────────────────┘
                    │
                    ▼
                  CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"              # Just accepted
    READING = "reading"      # Waiting for the request bytes
    WRITING = "writing"      # Sending the echo back
    CLOSING = "closing"      # Close sequence in progress
    CLOSED = "closed"        # Socket released


@dataclass
class Connection:
    """
    Represents an accepted client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique identifier for log lines.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        buffer_size: Maximum bytes taken from a single read.
        timeout: Socket timeout for reads/writes. None blocks indefinitely.
        linger_timeout: How long close() waits for the client's FIN.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 128
    timeout: Optional[float] = None
    linger_timeout: float = 0.5

    def __post_init__(self):
        # Accepted sockets inherit the listener's poll timeout on some
        # platforms; reset to our own policy.
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # I/O
    # =========================================================================

    def read_once(self) -> bytes:
        """
        Read a single chunk of at most buffer_size bytes.

        Returns:
            The bytes read. Empty bytes mean the client closed its side
            before sending anything.

        Raises:
            OSError: On socket errors, including socket.timeout.
        """
        self.state = ConnectionState.READING
        return self.socket.recv(self.buffer_size)

    def send(self, data: bytes):
        """
        Send all of data.

        sendall() loops internally until every byte is written, so the
        echo goes out as one logical write.

        Raises:
            OSError: If the client went away.
        """
        self.state = ConnectionState.WRITING
        self.socket.sendall(data)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully. Idempotent.

        1. shutdown(SHUT_WR): send FIN, the client's read-until-EOF returns
        2. drain: discard anything the client sent beyond the first read,
           for at most linger_timeout in total, so close() does not turn
           into an RST that could discard the echo still in flight
        3. close(): release the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        # One deadline for the whole drain, however long the client keeps writing
        deadline = time.monotonic() + self.linger_timeout
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                if not self.socket.recv(1024):
                    break
        except OSError:
            pass  # Includes socket.timeout

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
