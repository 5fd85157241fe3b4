"""
=============================================================================
ECHO TEST CLIENT
=============================================================================

A small blocking client for poking at a running server by hand:

    python -m tcpserver.client                  # 127.0.0.1:8080
    python -m tcpserver.client --port 9000

It connects, sends a handful of canned messages and checks that each one
comes back unchanged, then drops into an interactive loop where every
line typed is sent and the reply printed. Type "quit" to leave.

The same class is used by the integration tests.

=============================================================================
"""

import argparse
import logging
import socket
import sys
import time
from typing import Iterable, List, Optional, Tuple, Union, TextIO

from .logging_setup import setup_logging


logger = logging.getLogger(__name__)


TEST_MESSAGES = [
    "Hello, Server!",
    "This is a test message",
    "12345",
    "Special chars: !@#$%^&*()",
    "Unicode: 🚀🌟🎮",
]


class EchoClient:
    """
    Blocking TCP client.

    Usage:
        with EchoClient("127.0.0.1", 8080) as client:
            reply = client.request(b"hello")
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8080,
        timeout: Optional[float] = 5.0,
        buffer_size: int = 1024,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.buffer_size = buffer_size
        self._socket: Optional[socket.socket] = None

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def connect(self) -> bool:
        """
        Open the connection.

        Returns:
            True on success, False if the server cannot be reached.
        """
        try:
            self._socket = socket.create_connection(
                (self.host, self.port), timeout=self.timeout
            )
        except OSError as e:
            logger.error(f"Connection to {self.host}:{self.port} failed: {e}")
            self._socket = None
            return False

        logger.info(f"Connected to server at {self.host}:{self.port}")
        return True

    def disconnect(self) -> None:
        if self._socket is not None:
            try:
                self._socket.close()
            finally:
                self._socket = None
            logger.info("Disconnected from server")

    def send(self, message: Union[str, bytes]) -> bool:
        """Send a message; strings are UTF-8 encoded."""
        if self._socket is None:
            logger.error("Not connected to server")
            return False

        data = message.encode("utf-8") if isinstance(message, str) else message
        try:
            self._socket.sendall(data)
        except OSError as e:
            logger.error(f"Failed to send message: {e}")
            return False

        logger.debug(f"Sent {len(data)} bytes")
        return True

    def receive(self) -> bytes:
        """
        Read one chunk.

        Returns:
            The bytes read, or b"" on close, timeout or error.
        """
        if self._socket is None:
            return b""

        try:
            data = self._socket.recv(self.buffer_size)
        except OSError as e:
            logger.debug(f"Receive failed: {e}")
            return b""

        logger.debug(f"Received {len(data)} bytes")
        return data

    def receive_exactly(self, size: int) -> bytes:
        """Read until ``size`` bytes arrived or the stream ended."""
        chunks = []
        remaining = size
        while remaining > 0:
            chunk = self.receive()
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def receive_all(self) -> bytes:
        """Read until the server closes the connection."""
        chunks = []
        while True:
            chunk = self.receive()
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    def request(self, payload: Union[str, bytes]) -> bytes:
        """
        Send ``payload`` and read back as many bytes as were sent.

        This is what an echo round trip looks like; TCP may split the
        reply, so it keeps reading until the full length is in.
        """
        data = payload.encode("utf-8") if isinstance(payload, str) else payload
        if not self.send(data):
            return b""
        return self.receive_exactly(len(data))

    def __enter__(self):
        if not self.connect():
            raise ConnectionError(f"Cannot connect to {self.host}:{self.port}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False


def run_self_test(
    client: EchoClient,
    messages: Iterable[str] = TEST_MESSAGES,
) -> List[Tuple[str, bool]]:
    """
    Send each message and check it comes back unchanged.

    Returns:
        (message, passed) for every message sent. Stops early if the
        connection breaks.
    """
    results = []
    for message in messages:
        expected = message.encode("utf-8")
        reply = client.request(expected)
        passed = reply == expected

        if passed:
            logger.info(f"Echo test passed for: {message}")
        else:
            logger.warning(
                f"Echo test failed for: {message} (got {reply!r})"
            )
        results.append((message, passed))

        if not reply:
            break
    return results


def run_interactive(
    client: EchoClient,
    stdin: TextIO = sys.stdin,
    stdout: TextIO = sys.stdout,
    delay: float = 0.1,
) -> None:
    """Send each input line, print the reply; "quit" or EOF ends the loop."""
    print('Enter messages to send (type "quit" to exit):', file=stdout)

    for line in stdin:
        message = line.rstrip("\n")
        if message == "quit":
            break

        if not client.send(message):
            break

        # Give the server a moment so short replies arrive in one read
        time.sleep(delay)

        reply = client.receive()
        if not reply:
            print("No response received from server", file=stdout)
            break
        print(f"Received: {reply.decode('utf-8', errors='replace')}", file=stdout)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="tcpserver-client",
        description="Echo test client for tcpserver",
    )
    parser.add_argument("--host", "-H", default="127.0.0.1",
                        help="Server address (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=8080,
                        help="Server port (default: 8080)")
    parser.add_argument("--no-interactive", action="store_true",
                        help="Run the self test only")
    parser.add_argument("--log-level", "-l",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default="INFO")
    args = parser.parse_args(argv)

    setup_logging(getattr(logging, args.log_level))

    client = EchoClient(args.host, args.port)
    if not client.connect():
        logger.error("Failed to connect to server")
        return 1

    try:
        results = run_self_test(client)
        failed = [m for m, passed in results if not passed]
        logger.info(f"{len(results) - len(failed)}/{len(results)} echo tests passed")

        if not args.no_interactive:
            run_interactive(client)
    finally:
        client.disconnect()

    return 0


if __name__ == "__main__":
    sys.exit(main())
