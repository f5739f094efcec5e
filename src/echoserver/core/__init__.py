"""
=============================================================================
CORE SHUTDOWN MACHINERY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      CANCELLATION SOURCE                            │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • SIGINT / SIGTERM handler                                         │
    │  • Flips the CancellationToken exactly once                        │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ token.cancel()
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                        POLLING LOOP                                 │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Waits for work at most one poll interval at a time              │
    │  • Checks the token between waits                                  │
    │  • The only code that touches (and closes) its socket              │
    │                                                                      │
    │    StreamAcceptLoop                 PacketReceiveLoop               │
    │    accept → thread per conn         recvfrom → reply inline         │
    │    drain, then close                close                           │
    └─────────────────────────────────────────────────────────────────────┘
                    │
                    │ add() / done() / wait()
                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                        DRAIN TRACKER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Counts in-flight stream handlers                                 │
    │  • Listener closes only once the count is zero                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .cancellation import CancellationToken, CancellationSource
from .connection import Connection, ConnectionState
from .drain import DrainTracker
from .listeners import create_stream_listener, create_packet_socket
from .polling_loop import PollingLoop, LoopState
from .stream_loop import StreamAcceptLoop
from .packet_loop import PacketReceiveLoop

__all__ = [
    "CancellationToken",     # One-shot shutdown signal
    "CancellationSource",    # SIGINT/SIGTERM → token
    "Connection",            # Accepted client socket
    "ConnectionState",
    "DrainTracker",          # In-flight handler counter
    "create_stream_listener",
    "create_packet_socket",
    "PollingLoop",           # Shared cancellable loop
    "LoopState",
    "StreamAcceptLoop",      # TCP accept loop with drain
    "PacketReceiveLoop",     # UDP receive loop
]
