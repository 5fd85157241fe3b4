"""
Echo protocol: every chunk read from the client is written straight back.
"""

import logging

from .base import ConnectionHandler
from ..core.connection import Connection


logger = logging.getLogger(__name__)


class EchoHandler(ConnectionHandler):
    """
    Byte-for-byte echo.

    There is no framing: whatever one recv() returns is sent back with
    one sendall(), so reads and writes on a connection stay strictly
    ordered.
    """

    name = "echo"

    def serve(self, conn: Connection) -> None:
        while not self.stopping:
            data = self.read(conn)
            if not data:
                break  # Peer closed, read failed, or shutting down

            if not conn.send(data):
                break

            logger.debug(f"[{conn.id}] Echoed {len(data)} bytes to client")
