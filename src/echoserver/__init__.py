"""
=============================================================================
ECHOSERVER - TCP and UDP Echo Services With Graceful Shutdown
=============================================================================

Two echo services built on raw Python sockets, and how they stop.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    GRACEFUL SHUTDOWN                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. CANCELLABLE BLOCKING I/O                                       │
    │      - accept()/recvfrom() never block longer than a poll interval │
    │      - a cancellation descriptor wakes the wait immediately        │
    │      - the socket is closed only by the thread that polls it       │
    │                                                                      │
    │   2. CONNECTION DRAINING (TCP)                                      │
    │      - one thread per accepted connection                           │
    │      - in-flight echoes finish before the listener closes          │
    │      - nothing new is accepted once shutdown is observed           │
    │                                                                      │
    │   3. IMMEDIATE STOP (UDP)                                           │
    │      - datagrams are echoed inline, so there is nothing to drain   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    echoserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m echoserver)
    ├── server.py            # EchoServer controller
    ├── config.py            # ServerConfig dataclass
    ├── client.py            # tcp_echo / udp_echo
    ├── core/
    │   ├── cancellation.py  # CancellationToken, CancellationSource
    │   ├── drain.py         # DrainTracker
    │   ├── connection.py    # Connection wrapper
    │   ├── listeners.py     # Socket factories
    │   ├── polling_loop.py  # PollingLoop base class
    │   ├── stream_loop.py   # StreamAcceptLoop (TCP)
    │   └── packet_loop.py   # PacketReceiveLoop (UDP)
    └── handlers/
        └── echo.py          # echo_stream / echo_datagram

=============================================================================
QUICK START
=============================================================================

    from echoserver import EchoServer, ServerConfig

    EchoServer(ServerConfig(port=5005), transport="tcp").run()

    # elsewhere
    from echoserver.client import tcp_echo
    tcp_echo("127.0.0.1", 5005, b"hello")   # b"hello"

=============================================================================
"""

__version__ = "1.0.0"

from .server import EchoServer
from .config import ServerConfig

__all__ = ["EchoServer", "ServerConfig", "__version__"]
