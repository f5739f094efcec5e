"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for both echo services.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m echoserver tcp --port 6000                      │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── ECHO_PORT=6000 python -m echoserver tcp                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip().lower() in ("", "none"):
        return None
    return float(value)


@dataclass
class ServerConfig:
    """
    Configuration for the echo services.

    Both services bind the same port by default; they use different
    transports so they can run side by side.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Address to bind to. "0.0.0.0" is every interface."""

    port: int = 5005
    """Port to bind to. 0 lets the OS pick a free port (tests)."""

    backlog: int = 128
    """TCP pending-connection queue length."""

    # ─────────────────────────────────────────────────────────────────────
    # BUFFERS
    # ─────────────────────────────────────────────────────────────────────

    stream_buffer_size: int = 128
    """Bytes taken from the single read of a stream request."""

    packet_buffer_size: int = 4096
    """Largest datagram echoed; longer datagrams are truncated by the OS."""

    # ─────────────────────────────────────────────────────────────────────
    # SHUTDOWN BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    stream_poll_interval: float = 2.0
    """Longest single accept() wait, in seconds."""

    packet_poll_interval: float = 5.0
    """Longest single recvfrom() wait, in seconds."""

    connection_timeout: Optional[float] = None
    """
    Socket timeout for each accepted connection.
    None = no timeout: a silent client holds its handler, and therefore
    the drain, forever.
    """

    linger_timeout: float = 0.5
    """How long closing a connection waits for the client's FIN."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        ECHO_HOST                   Bind address (default: 0.0.0.0)
        ECHO_PORT                   Bind port (default: 5005)
        ECHO_BACKLOG                TCP backlog (default: 128)
        ECHO_STREAM_POLL_INTERVAL   Accept poll interval (default: 2)
        ECHO_PACKET_POLL_INTERVAL   Receive poll interval (default: 5)
        ECHO_CONNECTION_TIMEOUT     Per-connection timeout (default: none)
        ECHO_LOG_LEVEL              Logging level (default: INFO)
        """
        return cls(
            host=os.getenv("ECHO_HOST", "0.0.0.0"),
            port=int(os.getenv("ECHO_PORT", "5005")),
            backlog=int(os.getenv("ECHO_BACKLOG", "128")),
            stream_poll_interval=float(os.getenv("ECHO_STREAM_POLL_INTERVAL", "2")),
            packet_poll_interval=float(os.getenv("ECHO_PACKET_POLL_INTERVAL", "5")),
            connection_timeout=_optional_float(os.getenv("ECHO_CONNECTION_TIMEOUT")),
            log_level=os.getenv("ECHO_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called at startup so a bad value fails immediately, before any
        socket is bound.

        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.stream_buffer_size < 1 or self.packet_buffer_size < 1:
            raise ValueError("buffer sizes must be >= 1")

        if self.stream_poll_interval <= 0 or self.packet_poll_interval <= 0:
            raise ValueError("poll intervals must be > 0")

        if self.connection_timeout is not None and self.connection_timeout <= 0:
            raise ValueError("connection_timeout must be > 0")

        if self.linger_timeout < 0:
            raise ValueError("linger_timeout must be >= 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
