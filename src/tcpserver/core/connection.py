"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one accepted client socket with the small API the
protocol handlers need: read a chunk, write everything, close once.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

    Client sends:
        send("Hello")
        send("World")

    Server might receive ANY of these:
        recv() → "HelloWorld"      (both combined)
        recv() → "Hel"             (partial)
        recv() → "Hello"           (first message)

The echo protocol does not care: whatever one recv() returns is written
back as-is, so the client sees the same byte stream it sent.

The HTTP mode deliberately does not buffer either. It treats a single
recv() as the whole request, which is why a request line split across
two TCP segments is answered with 400.

=============================================================================
WHO TOUCHES THE SOCKET
=============================================================================

    ┌──────────────────────┐        receive() / send()
    │  Handler thread      │ ─────────────────────────────► socket
    └──────────────────────┘
    ┌──────────────────────┐        shutdown_read() only
    │  SocketServer.stop() │ ─────────────────────────────► socket
    └──────────────────────┘

The handler owns reads and writes. The server only ever shuts the read
side down during stop(), which makes a blocked recv() return b"" so the
handler can see the end of the stream and exit on its own.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ◄──────► WRITING
     │             │                │
     └──────────► CLOSING ◄─────────┘
                    │
                    ▼
                  CLOSED

=============================================================================
"""

import socket
import threading
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple


logger = logging.getLogger(__name__)

# Draining unread client bytes during close() is bounded by both
DRAIN_READ_TIMEOUT = 0.5     # seconds per recv()
DRAIN_DEADLINE = 2.0         # seconds in total
DRAIN_MAX_BYTES = 64 * 1024


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and idempotent close."""
    NEW = "new"              # Just accepted, nothing read yet
    READING = "reading"      # Blocked in (or about to call) recv()
    WRITING = "writing"      # Sending data back
    CLOSING = "closing"      # Close sequence in progress
    CLOSED = "closed"        # Socket released


@dataclass
class Connection:
    """
    Represents one accepted client connection.

    Attributes:
        socket: The client socket returned by accept().
        address: Client's (ip, port) tuple.
        id: Short unique identifier for log lines.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        bytes_received: Total bytes read from the client.
        bytes_sent: Total bytes written to the client.
        buffer_size: Maximum bytes per recv() call.
        timeout: Read timeout in seconds, None to block.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    bytes_received: int = 0
    bytes_sent: int = 0

    buffer_size: int = 1024
    timeout: Optional[float] = None

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        # Accepted sockets inherit the listener's timeout on some
        # platforms; reset to our own.
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def peer(self) -> str:
        """``ip:port`` for log lines."""
        return f"{self.client_ip}:{self.client_port}"

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def receive(self) -> Optional[bytes]:
        """
        Read up to ``buffer_size`` bytes.

        Returns:
            The bytes read, b"" if the peer closed the connection or the
            socket failed, or None if the read timed out (the caller
            should re-check for shutdown and try again).
        """
        self.state = ConnectionState.READING

        try:
            data = self.socket.recv(self.buffer_size)
        except socket.timeout:
            return None
        except OSError as e:
            # Reset by peer, or the socket was shut down / closed under us.
            logger.debug(f"[{self.id}] Receive failed: {e}")
            return b""

        self.bytes_received += len(data)
        return data

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Send all of ``data`` to the client.

        Uses sendall() so a short write is never mistaken for success.

        Returns:
            True if every byte was sent, False if the connection is gone.
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.bytes_sent += len(data)
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def shutdown_read(self) -> None:
        """
        Stop receiving on this connection.

        Called from another thread by SocketServer.stop(). A recv() blocked
        on this socket returns b"" immediately, so the owning handler
        leaves its loop without waiting for the client.

        If close() is already draining, both directions are shut so the
        drain ends at once.
        """
        with self._lock:
            if self.state == ConnectionState.CLOSED:
                return
            how = socket.SHUT_RDWR if self.state == ConnectionState.CLOSING else socket.SHUT_RD
            try:
                self.socket.shutdown(how)
            except OSError:
                pass  # Peer already gone

    def close(self) -> None:
        """
        Close the connection gracefully. Safe to call more than once.

        1. shutdown(SHUT_WR): send FIN so the client sees end-of-stream
        2. drain: discard anything the client still had in flight, for at
           most DRAIN_DEADLINE seconds and DRAIN_MAX_BYTES bytes
        3. close(): release the file descriptor
        """
        with self._lock:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return
            self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        self._drain()

        with self._lock:
            try:
                self.socket.close()
            except OSError:
                pass
            self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.age:.3f}s "
            f"({self.bytes_received} in / {self.bytes_sent} out)"
        )

    def _drain(self) -> None:
        deadline = time.monotonic() + DRAIN_DEADLINE
        drained = 0
        try:
            while drained < DRAIN_MAX_BYTES:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(min(DRAIN_READ_TIMEOUT, remaining))
                chunk = self.socket.recv(1024)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Timeout or reset, we are closing anyway

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
