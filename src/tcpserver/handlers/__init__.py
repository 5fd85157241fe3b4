"""
Protocol handlers.

    ConnectionHandler   - base class: serve() loop + single close path
    EchoHandler         - byte-for-byte echo
    HTTPHandler         - one GET request line in, one response out

Use create_handler() to build the handler for a configured ProtocolMode.
"""

from typing import Optional, Type, Dict

from ..config import ProtocolMode
from ..core.cancellation import ShutdownToken
from .base import ConnectionHandler
from .echo import EchoHandler
from .http import HTTPHandler


HANDLERS: Dict[ProtocolMode, Type[ConnectionHandler]] = {
    ProtocolMode.ECHO: EchoHandler,
    ProtocolMode.HTTP: HTTPHandler,
}


def create_handler(
    mode: ProtocolMode,
    token: Optional[ShutdownToken] = None,
) -> ConnectionHandler:
    """
    Build the handler for ``mode``.

    Raises:
        ValueError: If ``mode`` is not a known protocol.
    """
    handler_class = HANDLERS[ProtocolMode(mode)]
    return handler_class(token)


__all__ = [
    "ConnectionHandler",
    "EchoHandler",
    "HTTPHandler",
    "HANDLERS",
    "create_handler",
]
