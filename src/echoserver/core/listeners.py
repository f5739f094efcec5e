"""
=============================================================================
SOCKET FACTORIES
=============================================================================

Creates the two sockets the services listen on.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    TCP (stream)                      UDP (packet)
    ────────────                      ────────────
    socket(AF_INET, SOCK_STREAM)      socket(AF_INET, SOCK_DGRAM)
    setsockopt(SO_REUSEADDR)          bind(host, port)
    bind(host, port)
    listen(backlog)

Both come back in blocking mode. The polling loop that takes ownership
sets its poll interval as the socket timeout.

Bind failures (address in use, permission denied, unknown host) are
startup errors: logged here and re-raised, never retried.

=============================================================================
"""

import logging
import socket


logger = logging.getLogger(__name__)


def create_stream_listener(
    host: str,
    port: int,
    backlog: int = 128,
) -> socket.socket:
    """
    Create, bind and start a TCP listening socket.

    Args:
        host: Address to bind to. "0.0.0.0" listens on all interfaces.
        port: Port to bind to. 0 lets the OS pick one.
        backlog: Pending-connection queue length.

    Returns:
        The listening socket.

    Raises:
        OSError: If the address cannot be resolved or bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

    # SO_REUSEADDR: restart immediately instead of waiting out TIME_WAIT
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

    try:
        sock.bind((host, port))
        sock.listen(backlog)
    except OSError as e:
        logger.error(f"Failed to listen on tcp {host}:{port}: {e}")
        sock.close()
        raise

    return sock


def create_packet_socket(
    host: str,
    port: int,
) -> socket.socket:
    """
    Create and bind a UDP socket.

    Raises:
        OSError: If the address cannot be resolved or bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    try:
        sock.bind((host, port))
    except OSError as e:
        logger.error(f"Failed to listen on udp {host}:{port}: {e}")
        sock.close()
        raise

    return sock
