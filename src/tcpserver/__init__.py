"""
=============================================================================
TCPSERVER - Thread-per-Connection TCP Server
=============================================================================

A small connection-oriented server built on raw sockets. Every accepted
connection runs on its own thread and speaks one of two protocols:

    echo   every byte received is sent straight back
    http   one "GET <path> HTTP/x" line in, one HTML page out, then close

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  Supervisor (main thread)                                            │
    │    signals ──► ShutdownToken ◄── polled every 100 ms                 │
    │         │                                                            │
    │         ▼                                                            │
    │  SocketServer (accept-loop thread)                                   │
    │    listen socket ──accept()──► Connection ──► WorkerGroup.spawn()   │
    │         │                                          │                 │
    │         ▼                                          ▼                 │
    │  ConnectionHandler (one thread per connection)                       │
    │    EchoHandler  |  HTTPHandler                                       │
    └─────────────────────────────────────────────────────────────────────┘

    Shutdown flows back up:
    signal → token.set() → accept loop exits → stop() joins all handlers

=============================================================================
QUICK START
=============================================================================

    from tcpserver import ServerConfig, Supervisor

    exit_code = Supervisor(ServerConfig(port=8080, mode="http")).run()

Or drive the engine directly:

    from tcpserver import SocketServer, ServerConfig

    server = SocketServer(ServerConfig(host="127.0.0.1", port=0))
    server.start()
    threading.Thread(target=server.run).start()
    ...
    server.stop()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig, ProtocolMode
from .core import (
    SocketServer,
    ServerState,
    ShutdownToken,
    Connection,
    WorkerGroup,
)
from .handlers import ConnectionHandler, EchoHandler, HTTPHandler, create_handler
from .supervisor import Supervisor, serve

__all__ = [
    "__version__",
    "ServerConfig",
    "ProtocolMode",
    "SocketServer",
    "ServerState",
    "ShutdownToken",
    "Connection",
    "WorkerGroup",
    "ConnectionHandler",
    "EchoHandler",
    "HTTPHandler",
    "create_handler",
    "Supervisor",
    "serve",
]
