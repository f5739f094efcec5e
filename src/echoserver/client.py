"""
Minimal echo clients.

Dial, write one payload, read one response. Each client owns its own
timeout; none of the server's shutdown machinery applies here.
"""

import socket


def tcp_echo(host: str, port: int, payload: bytes, timeout: float = 1.0) -> bytes:
    """
    Send payload over TCP and return everything the server sends back.

    Reads until the server closes its side, which the echo server does
    right after writing the echo.

    Raises:
        OSError: On connect/send/recv failure, including socket.timeout.
    """
    with socket.create_connection((host, port), timeout=timeout) as sock:
        sock.sendall(payload)

        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)


def udp_echo(
    host: str,
    port: int,
    payload: bytes,
    timeout: float = 2.0,
    buffer_size: int = 128,
) -> bytes:
    """
    Send one datagram and return the first datagram received in reply.

    Raises:
        OSError: On send/recv failure, including socket.timeout when no
                 reply arrives in time.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.settimeout(timeout)
        sock.connect((host, port))
        sock.send(payload)
        return sock.recv(buffer_size)
