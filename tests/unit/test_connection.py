"""
Unit tests for the connection wrapper and the echo handlers.
"""

import socket
import threading
import time

import pytest

from echoserver.core.connection import Connection, ConnectionState
from echoserver.handlers.echo import echo_stream, echo_datagram


@pytest.fixture
def pair():
    """Connected socket pair: (server side, client side)."""
    server_side, client_side = socket.socketpair()
    client_side.settimeout(2.0)
    yield server_side, client_side
    for s in (server_side, client_side):
        s.close()


def make_connection(sock: socket.socket, **kwargs) -> Connection:
    kwargs.setdefault("linger_timeout", 0.05)
    return Connection(socket=sock, address=("127.0.0.1", 40000), **kwargs)


def read_until_eof(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


class TestConnection:
    """Tests for Connection."""

    def test_address_properties(self, pair):
        """Test client address accessors."""
        conn = make_connection(pair[0])
        assert conn.client_ip == "127.0.0.1"
        assert conn.client_port == 40000
        assert conn.state == ConnectionState.NEW
        assert len(conn.id) == 8

    def test_read_once_respects_buffer_size(self, pair):
        """Test that a single read never exceeds buffer_size."""
        server_side, client_side = pair
        conn = make_connection(server_side, buffer_size=128)

        client_side.sendall(b"a" * 300)
        data = conn.read_once()

        assert 0 < len(data) <= 128
        assert conn.state == ConnectionState.READING

    def test_close_sends_eof_and_is_idempotent(self, pair):
        """Test that close() half-closes, releases, and can be repeated."""
        server_side, client_side = pair
        conn = make_connection(server_side)

        conn.send(b"bye")
        conn.close()
        conn.close()

        assert conn.is_closed
        assert read_until_eof(client_side) == b"bye"

    def test_close_linger_is_bounded(self, pair):
        """Test that a client that never stops writing cannot stall close()."""
        server_side, client_side = pair
        conn = make_connection(server_side, linger_timeout=0.2)
        stop = threading.Event()

        def keep_writing():
            while not stop.is_set():
                try:
                    client_side.sendall(b"x" * 64)
                except OSError:
                    return
                time.sleep(0.02)

        writer = threading.Thread(target=keep_writing, daemon=True)
        writer.start()
        try:
            start = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - start
        finally:
            stop.set()
            writer.join(timeout=2.0)

        assert conn.is_closed
        assert elapsed < 1.0

    def test_context_manager_closes(self, pair):
        """Test that leaving a with-block closes the connection."""
        with make_connection(pair[0]) as conn:
            pass
        assert conn.state == ConnectionState.CLOSED

    def test_read_timeout(self, pair):
        """Test that connection_timeout bounds a silent client."""
        conn = make_connection(pair[0], timeout=0.05)
        with pytest.raises(socket.timeout):
            conn.read_once()


class TestEchoStream:
    """Tests for the stream echo handler."""

    def test_echo_hello(self, pair):
        """Test the basic 'hello' exchange."""
        server_side, client_side = pair
        conn = make_connection(server_side)

        client_side.sendall(b"hello")
        echo_stream(conn)
        conn.close()

        assert read_until_eof(client_side) == b"hello"

    def test_only_first_buffer_echoed(self, pair):
        """Test that bytes beyond one buffer are not echoed."""
        server_side, client_side = pair
        conn = make_connection(server_side, buffer_size=128)
        payload = bytes(range(256)) * 2

        client_side.sendall(payload)
        echo_stream(conn)
        conn.close()

        echoed = read_until_eof(client_side)
        assert len(echoed) <= 128
        assert echoed == payload[:len(echoed)]

    def test_client_closed_before_sending(self, pair):
        """Test that an empty read ends the handler quietly."""
        server_side, client_side = pair
        conn = make_connection(server_side)

        client_side.shutdown(socket.SHUT_WR)
        echo_stream(conn)

        assert conn.state == ConnectionState.READING

    def test_read_error_is_logged(self, pair, caplog):
        """Test that a read failure is logged, not raised."""
        conn = make_connection(pair[0], timeout=0.05)

        echo_stream(conn)

        assert any("Failed to read" in r.getMessage() for r in caplog.records)


class _BrokenSocket:
    def sendto(self, data, address):
        raise ConnectionRefusedError("refused")


class TestEchoDatagram:
    """Tests for the datagram echo handler."""

    def test_reply_sent(self):
        """Test that the datagram goes back to its sender."""
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as server, \
                socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as client:
            server.bind(("127.0.0.1", 0))
            client.bind(("127.0.0.1", 0))
            client.settimeout(2.0)

            assert echo_datagram(server, b"hello", client.getsockname()) is True
            data, address = client.recvfrom(4096)

        assert data == b"hello"

    def test_reply_failure_is_logged(self, caplog):
        """Test that a failed reply returns False and logs."""
        assert echo_datagram(_BrokenSocket(), b"hello", ("127.0.0.1", 9)) is False
        assert any("Failed to write" in r.getMessage() for r in caplog.records)
