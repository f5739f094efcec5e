"""
=============================================================================
ECHO HANDLERS
=============================================================================

The payload logic of both services. Connection lifetime and shutdown
are handled by the loops that call these.

    STREAM:  read once (≤ 128 bytes) ──► write the same bytes back
    PACKET:  datagram in (≤ 4096 bytes) ──► same datagram back to sender

Neither handler retries. I/O errors are logged and end the exchange.
Neither handler closes anything: the stream loop closes the Connection,
and the packet socket belongs to the packet loop.

=============================================================================
"""

import logging
import socket

from ..core.connection import Connection


logger = logging.getLogger(__name__)


def echo_stream(conn: Connection):
    """
    Echo one request on a stream connection.

    Reads at most conn.buffer_size bytes once and writes back exactly
    the bytes read.
    """
    peer = f"{conn.client_ip}:{conn.client_port}"

    try:
        data = conn.read_once()
    except OSError as e:
        logger.warning(f"[{conn.id}] Failed to read from {peer}: {e}")
        return

    if not data:
        logger.debug(f"[{conn.id}] {peer} closed before sending")
        return

    try:
        conn.send(data)
    except OSError as e:
        logger.warning(f"[{conn.id}] Failed to write to {peer}: {e}")
        return

    logger.debug(f"[{conn.id}] Echoed {len(data)} bytes to {peer}")


def echo_datagram(sock: socket.socket, data: bytes, address: tuple) -> bool:
    """
    Send data back to the address it came from.

    Returns:
        True if the reply was sent, False if sendto() failed.
    """
    try:
        sock.sendto(data, address)
    except OSError as e:
        logger.warning(f"Failed to write {len(data)} bytes to {address[0]}:{address[1]}: {e}")
        return False

    logger.debug(f"Echoed {len(data)} bytes to {address[0]}:{address[1]}")
    return True
