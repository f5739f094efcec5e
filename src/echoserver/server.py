"""
=============================================================================
ECHO SERVER
=============================================================================

Top-level controller that ties the pieces together for one transport.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         EchoServer.run()                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Configure logging                                              │
    │   2. Install SIGINT/SIGTERM → CancellationToken                     │
    │   3. Bind socket           ◄── failure here is fatal, re-raised     │
    │   4. Start the loop thread (StreamAcceptLoop / PacketReceiveLoop)   │
    │   5. Main thread blocks on the loop's completion signal             │
    │   6. Restore signal handlers, return                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The main thread never touches the socket. It only waits, and it waits in
short slices so signal handlers get a chance to run on every platform.

=============================================================================
"""

import logging
from typing import Optional

from .config import ServerConfig
from .core import (
    CancellationToken,
    CancellationSource,
    PollingLoop,
    StreamAcceptLoop,
    PacketReceiveLoop,
    create_stream_listener,
    create_packet_socket,
)


logger = logging.getLogger(__name__)


TRANSPORTS = ("tcp", "udp")


class EchoServer:
    """
    Echo service over TCP or UDP with graceful shutdown.

    Usage:
        server = EchoServer(ServerConfig(port=5005), transport="tcp")
        server.run()    # blocks until SIGINT/SIGTERM

    From another thread (tests, embedding):
        server.run(install_signals=False)
        ...
        server.shutdown()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        transport: str = "tcp",
        token: Optional[CancellationToken] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        if transport not in TRANSPORTS:
            raise ValueError(f"Unknown transport: {transport!r}. Expected one of {TRANSPORTS}")

        self.transport = transport
        self.token = token or CancellationToken()
        self._loop: Optional[PollingLoop] = None

    @property
    def loop(self) -> Optional[PollingLoop]:
        return self._loop

    @property
    def address(self) -> Optional[tuple]:
        """Bound (host, port), or None before bind()."""
        return self._loop.address if self._loop else None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self) -> PollingLoop:
        """
        Create the socket and the loop that will own it.

        Raises:
            OSError: If the address cannot be bound.
        """
        if self._loop is not None:
            return self._loop

        config = self.config
        if self.transport == "tcp":
            listener = create_stream_listener(config.host, config.port, config.backlog)
            self._loop = StreamAcceptLoop(
                listener,
                self.token,
                poll_interval=config.stream_poll_interval,
                buffer_size=config.stream_buffer_size,
                connection_timeout=config.connection_timeout,
                linger_timeout=config.linger_timeout,
            )
        else:
            sock = create_packet_socket(config.host, config.port)
            self._loop = PacketReceiveLoop(
                sock,
                self.token,
                poll_interval=config.packet_poll_interval,
                buffer_size=config.packet_buffer_size,
            )
        return self._loop

    def run(self, install_signals: bool = True):
        """
        Serve until the token is cancelled (blocking).

        Args:
            install_signals: Bridge SIGINT/SIGTERM into the token. Must be
                             False when run() is called off the main thread.
        """
        self._setup_logging()

        # Nothing is bound yet if install() fails
        source = CancellationSource(self.token)
        if install_signals:
            source.install()

        try:
            loop = self.bind()
            loop.start()
            host, port = loop.address
            logger.info(f"Echo server listening on {self.transport} {host}:{port}")

            while not loop.wait(timeout=0.5):
                pass

            logger.info("Echo server exiting")
        finally:
            source.restore()

    def shutdown(self):
        """Request shutdown. Idempotent."""
        if self.token.cancel():
            logger.info("Shutdown requested")

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("echoserver").setLevel(level)
