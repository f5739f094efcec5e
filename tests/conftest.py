"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Callable, Generator, List
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from echoserver import EchoServer, ServerConfig
from echoserver.core import (
    CancellationToken,
    StreamAcceptLoop,
    PacketReceiveLoop,
    create_stream_listener,
    create_packet_socket,
)


# Short enough to keep the suite fast, long enough to be meaningful
POLL_INTERVAL = 0.1


@pytest.fixture
def token() -> Generator[CancellationToken, None, None]:
    """A fresh cancellation token, closed after the test."""
    tok = CancellationToken()
    yield tok
    tok.close()


@pytest.fixture
def config() -> ServerConfig:
    """Test configuration: loopback, OS-assigned port, fast polling."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        stream_poll_interval=POLL_INTERVAL,
        packet_poll_interval=POLL_INTERVAL,
        linger_timeout=0.1,
        log_level="DEBUG",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def make_stream_loop(token: CancellationToken) -> Generator[Callable[..., StreamAcceptLoop], None, None]:
    """
    Factory for running StreamAcceptLoops on ephemeral loopback ports.

    Loops are cancelled and awaited on teardown.
    """
    loops: List[StreamAcceptLoop] = []

    def factory(loop_class=StreamAcceptLoop, **kwargs) -> StreamAcceptLoop:
        kwargs.setdefault("poll_interval", POLL_INTERVAL)
        kwargs.setdefault("linger_timeout", 0.1)
        listener = create_stream_listener("127.0.0.1", 0)
        loop = loop_class(listener, token, **kwargs)
        loop.start()
        loops.append(loop)
        return loop

    yield factory

    token.cancel()
    for loop in loops:
        loop.wait(timeout=5.0)


@pytest.fixture
def make_packet_loop(token: CancellationToken) -> Generator[Callable[..., PacketReceiveLoop], None, None]:
    """Factory for running PacketReceiveLoops on ephemeral loopback ports."""
    loops: List[PacketReceiveLoop] = []

    def factory(loop_class=PacketReceiveLoop, **kwargs) -> PacketReceiveLoop:
        kwargs.setdefault("poll_interval", POLL_INTERVAL)
        sock = create_packet_socket("127.0.0.1", 0)
        loop = loop_class(sock, token, **kwargs)
        loop.start()
        loops.append(loop)
        return loop

    yield factory

    token.cancel()
    for loop in loops:
        loop.wait(timeout=5.0)


class BackgroundServer:
    """Runs an EchoServer in a background thread (no signal handlers)."""

    def __init__(self, server: EchoServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        # Bind in the test thread so the port is known before run()
        self.server.bind()
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"install_signals": False},
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> bool:
        """Request shutdown and wait. Returns True if the thread exited."""
        self.server.shutdown()
        if self._thread:
            self._thread.join(timeout=timeout)
            return not self._thread.is_alive()
        return True


@pytest.fixture
def background_server(config: ServerConfig) -> Generator[Callable[[str], BackgroundServer], None, None]:
    """Factory for EchoServers running in background threads."""
    servers: List[BackgroundServer] = []

    def factory(transport: str) -> BackgroundServer:
        bg = BackgroundServer(EchoServer(config, transport=transport))
        bg.start()
        servers.append(bg)
        return bg

    yield factory

    for bg in servers:
        bg.stop()
        bg.server.token.close()
