"""
Unit tests for the Connection wrapper.
"""

import threading
import time

import pytest

from tcpserver.core import connection as connection_module
from tcpserver.core.connection import Connection, ConnectionState


def start_trickle(client, interval: float = 0.1) -> threading.Event:
    """Send one byte every interval seconds until the returned event is set."""
    done = threading.Event()

    def trickle():
        while not done.is_set():
            try:
                client.sendall(b"x")
            except OSError:
                return
            time.sleep(interval)

    threading.Thread(target=trickle, daemon=True).start()
    return done


@pytest.fixture
def conn_and_client(tcp_pair):
    server_side, client = tcp_pair
    conn = Connection(socket=server_side, address=("127.0.0.1", 5555), timeout=5.0)
    yield conn, client
    conn.close()


class TestConnection:

    def test_initial_state(self, conn_and_client):
        conn, _ = conn_and_client

        assert conn.state == ConnectionState.NEW
        assert len(conn.id) == 8
        assert conn.peer == "127.0.0.1:5555"
        assert conn.client_ip == "127.0.0.1"
        assert conn.client_port == 5555

    def test_receive_and_send(self, conn_and_client):
        conn, client = conn_and_client
        client.sendall(b"ping")

        assert conn.receive() == b"ping"
        assert conn.send(b"pong") is True
        assert client.recv(16) == b"pong"
        assert conn.bytes_received == 4
        assert conn.bytes_sent == 4

    def test_receive_respects_buffer_size(self, tcp_pair):
        server_side, client = tcp_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 1), buffer_size=4, timeout=5.0)
        client.sendall(b"abcdefgh")

        assert conn.receive() == b"abcd"
        conn.close()

    def test_receive_returns_empty_on_peer_close(self, conn_and_client):
        conn, client = conn_and_client
        client.close()

        assert conn.receive() == b""

    def test_receive_returns_none_on_timeout(self, tcp_pair):
        server_side, _ = tcp_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 1), timeout=0.05)

        assert conn.receive() is None
        conn.close()

    def test_shutdown_read_unblocks_receive(self, tcp_pair):
        server_side, _ = tcp_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 1))
        result = []

        reader = threading.Thread(target=lambda: result.append(conn.receive()))
        reader.start()
        threading.Timer(0.1, conn.shutdown_read).start()
        reader.join(timeout=5.0)

        assert not reader.is_alive()
        assert result == [b""]
        conn.close()

    def test_close_is_idempotent(self, conn_and_client):
        conn, client = conn_and_client
        client.close()

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED
        assert conn.is_closed

    def test_client_sees_eof_after_close(self, tcp_pair):
        server_side, client = tcp_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 1))
        conn.send(b"bye")

        closer = threading.Thread(target=conn.close)
        closer.start()

        assert client.recv(16) == b"bye"
        assert client.recv(16) == b""
        client.close()
        closer.join(timeout=5.0)
        assert conn.is_closed

    def test_send_after_close_fails(self, conn_and_client):
        conn, client = conn_and_client
        client.close()
        conn.close()

        assert conn.send(b"late") is False

    def test_shutdown_read_after_close_is_harmless(self, conn_and_client):
        conn, client = conn_and_client
        client.close()
        conn.close()

        conn.shutdown_read()

    def test_context_manager_closes(self, tcp_pair):
        server_side, client = tcp_pair
        client.close()

        with Connection(socket=server_side, address=("127.0.0.1", 1)) as conn:
            assert not conn.is_closed

        assert conn.is_closed

    def test_close_drain_has_a_deadline(self, tcp_pair):
        """A client that never stops sending cannot hold close() open."""
        server_side, client = tcp_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 1))
        done = start_trickle(client)

        start = time.monotonic()
        conn.close()
        elapsed = time.monotonic() - start
        done.set()

        assert conn.is_closed
        assert elapsed < connection_module.DRAIN_DEADLINE + 1.0
        client.close()

    def test_close_drain_has_a_byte_cap(self, tcp_pair, monkeypatch):
        monkeypatch.setattr(connection_module, "DRAIN_DEADLINE", 30.0)
        monkeypatch.setattr(connection_module, "DRAIN_MAX_BYTES", 4096)
        server_side, client = tcp_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 1))
        client.sendall(b"y" * 8192)
        done = start_trickle(client)

        start = time.monotonic()
        conn.close()
        done.set()

        assert time.monotonic() - start < 5.0
        client.close()

    def test_shutdown_read_cuts_a_drain_short(self, tcp_pair, monkeypatch):
        monkeypatch.setattr(connection_module, "DRAIN_DEADLINE", 30.0)
        server_side, client = tcp_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 1))
        done = start_trickle(client)

        closer = threading.Thread(target=conn.close)
        closer.start()
        time.sleep(0.3)
        assert conn.state == ConnectionState.CLOSING

        conn.shutdown_read()
        closer.join(timeout=5.0)
        done.set()

        assert not closer.is_alive()
        assert conn.is_closed
        client.close()
