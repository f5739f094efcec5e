"""
Integration tests for the EchoServer controller.
"""

import os
import signal
import socket
import sys
import threading
import time

import pytest

from echoserver import EchoServer, ServerConfig
from echoserver.client import tcp_echo, udp_echo
from echoserver.core import LoopState, StreamAcceptLoop, PacketReceiveLoop


class TestEchoServer:
    """Tests for EchoServer in a background thread."""

    def test_tcp_service(self, background_server):
        """Test serving TCP echoes and shutting down cleanly."""
        bg = background_server("tcp")
        assert isinstance(bg.server.loop, StreamAcceptLoop)

        assert tcp_echo("127.0.0.1", bg.port, b"hello") == b"hello"

        assert bg.stop() is True
        assert bg.server.loop.state == LoopState.CLOSED

    def test_udp_service(self, background_server):
        """Test serving UDP echoes and shutting down cleanly."""
        bg = background_server("udp")
        assert isinstance(bg.server.loop, PacketReceiveLoop)

        assert udp_echo("127.0.0.1", bg.port, b"hello") == b"hello"

        assert bg.stop() is True
        assert bg.server.loop.state == LoopState.CLOSED

    def test_uses_configured_buffers(self, config: ServerConfig):
        """Test that bind() wires config values into the loop."""
        config.stream_buffer_size = 64
        config.connection_timeout = 3.0
        server = EchoServer(config, transport="tcp")
        loop = server.bind()

        try:
            assert server.bind() is loop
            assert loop.buffer_size == 64
            assert loop.connection_timeout == 3.0
            assert loop.poll_interval == config.stream_poll_interval
        finally:
            server.shutdown()
            loop.run()

        assert loop.is_done

    def test_shutdown_is_idempotent(self, config: ServerConfig):
        """Test that shutdown() can be called repeatedly."""
        server = EchoServer(config)
        server.shutdown()
        server.shutdown()
        assert server.token.is_cancelled()
        server.token.close()

    def test_address_before_bind(self, config: ServerConfig):
        """Test that address is None until the socket exists."""
        server = EchoServer(config)
        assert server.address is None
        assert server.loop is None
        server.token.close()


class TestStartupErrors:
    """Failures that must surface before serving begins."""

    def test_unknown_transport(self, config: ServerConfig):
        """Test that only tcp and udp are accepted."""
        with pytest.raises(ValueError):
            EchoServer(config, transport="sctp")

    def test_invalid_config(self):
        """Test that a bad configuration is rejected at construction."""
        with pytest.raises(ValueError):
            EchoServer(ServerConfig(stream_poll_interval=0))

    def test_port_in_use(self, config: ServerConfig):
        """Test that a bind failure propagates as OSError."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupant:
            occupant.bind(("127.0.0.1", 0))
            occupant.listen(1)
            config.port = occupant.getsockname()[1]

            server = EchoServer(config, transport="tcp")
            with pytest.raises(OSError):
                server.bind()
            server.token.close()

    def test_signal_install_off_main_thread_binds_nothing(self, config: ServerConfig):
        """Test that a rejected signal install leaves no socket bound."""
        server = EchoServer(config, transport="tcp")
        errors = []

        def run():
            try:
                server.run(install_signals=True)
            except ValueError as e:
                errors.append(e)

        worker = threading.Thread(target=run)
        worker.start()
        worker.join(timeout=5.0)

        assert len(errors) == 1
        assert server.loop is None
        server.token.close()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal handlers")
    def test_bind_failure_restores_signal_handlers(self, config: ServerConfig):
        """Test that run() puts the handlers back when bind() fails."""
        original = signal.getsignal(signal.SIGTERM)

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupant:
            occupant.bind(("127.0.0.1", 0))
            occupant.listen(1)
            config.port = occupant.getsockname()[1]

            server = EchoServer(config, transport="tcp")
            with pytest.raises(OSError):
                server.run()

        assert signal.getsignal(signal.SIGTERM) == original
        server.token.close()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal delivery")
class TestSignalShutdown:
    """run() on the main thread with real signals."""

    @pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT])
    def test_signal_stops_server(self, config: ServerConfig, signum):
        """Test that a signal drains and stops a running server."""
        original = signal.getsignal(signum)
        server = EchoServer(config, transport="tcp")
        echoes = []

        def client_then_signal():
            deadline = time.time() + 5.0
            while server.address is None and time.time() < deadline:
                time.sleep(0.01)
            echoes.append(tcp_echo("127.0.0.1", server.address[1], b"hello"))
            os.kill(os.getpid(), signum)

        driver = threading.Thread(target=client_then_signal, daemon=True)
        driver.start()

        server.run()
        driver.join(timeout=5.0)

        assert echoes == [b"hello"]
        assert server.token.is_cancelled()
        assert server.loop.is_done
        assert signal.getsignal(signum) == original
        server.token.close()
