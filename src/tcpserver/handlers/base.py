"""
=============================================================================
CONNECTION HANDLER BASE
=============================================================================

A handler runs a protocol on one accepted connection, on that
connection's worker thread, until one of these happens:

    - the peer closes the connection (recv returns b"")
    - a read or write fails
    - the protocol is done (HTTP mode: after one response)
    - the shutdown token is set

Whatever the reason, the connection is closed exactly once, on the way
out of handle():

    handle(conn)
        │
        ├──► serve(conn)       protocol loop (subclass)
        │
        └──► finally: conn.close()

Subclasses only implement serve(). They never close the connection
themselves.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..core.cancellation import ShutdownToken
from ..core.connection import Connection


logger = logging.getLogger(__name__)


class ConnectionHandler(ABC):
    """
    Base class for protocol handlers.

    One handler instance is shared by all connections of a server; it keeps
    no per-connection state, so concurrent handle() calls are safe.
    """

    #: Protocol name used in log lines.
    name: str = "base"

    def __init__(self, token: Optional[ShutdownToken] = None):
        self.token = token if token is not None else ShutdownToken()

    def handle(self, conn: Connection) -> None:
        """Serve ``conn`` until a terminal condition, then close it."""
        try:
            self.serve(conn)
        finally:
            conn.close()
            logger.info(f"[{conn.id}] Client {conn.peer} disconnected")

    @abstractmethod
    def serve(self, conn: Connection) -> None:
        """Protocol loop. Return to end the session."""

    def read(self, conn: Connection) -> bytes:
        """
        Read one chunk, riding out read timeouts until shutdown.

        Returns:
            The data, or b"" if the peer closed, the read failed, or
            shutdown was requested while waiting.
        """
        while not self.token.is_set():
            data = conn.receive()
            if data is None:
                continue  # Timed out; re-check the token
            return data
        return b""

    @property
    def stopping(self) -> bool:
        return self.token.is_set()
