"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tcpserver import SocketServer, ServerConfig, ProtocolMode


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        accept_timeout=0.2,
        log_level="DEBUG",
    )


@pytest.fixture
def tcp_pair() -> Generator[Tuple[socket.socket, socket.socket], None, None]:
    """A connected (server_side, client_side) pair of TCP sockets."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        client = socket.create_connection(listener.getsockname(), timeout=5.0)
        server_side, _ = listener.accept()

    yield server_side, client

    for s in (server_side, client):
        try:
            s.close()
        except OSError:
            pass


class RunningServer:
    """Test server helper that runs the accept loop in a background thread."""

    def __init__(self, server: SocketServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.port

    def start(self):
        """Bind, listen and start the accept loop."""
        if not self.server.start():
            raise RuntimeError("Server failed to start")

        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

    def stop(self):
        """Stop the server and wait for the accept loop to exit."""
        self.server.stop()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    @property
    def accept_thread_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def connect(self, timeout: float = 5.0) -> socket.socket:
        """Open a client connection to the server."""
        return socket.create_connection(("127.0.0.1", self.port), timeout=timeout)


def _running(config: ServerConfig, mode: ProtocolMode) -> RunningServer:
    config.mode = mode
    running = RunningServer(SocketServer(config))
    running.start()
    return running


@pytest.fixture
def echo_server(config: ServerConfig) -> Generator[RunningServer, None, None]:
    """An echo server on a random localhost port."""
    running = _running(config, ProtocolMode.ECHO)
    yield running
    running.stop()


@pytest.fixture
def http_server(config: ServerConfig) -> Generator[RunningServer, None, None]:
    """An HTTP-subset server on a random localhost port."""
    running = _running(config, ProtocolMode.HTTP)
    yield running
    running.stop()
