"""
Core networking components.

    ShutdownToken   - cancellation flag shared by every loop
    Connection      - one accepted client socket
    WorkerGroup     - supervised thread-per-connection bookkeeping
    SocketServer    - listening socket, accept loop, start/run/stop
"""

from .cancellation import ShutdownToken
from .connection import Connection, ConnectionState
from .worker_group import WorkerGroup, Worker, WorkerState
from .socket_server import SocketServer, ServerState

__all__ = [
    "ShutdownToken",
    "Connection",
    "ConnectionState",
    "WorkerGroup",
    "Worker",
    "WorkerState",
    "SocketServer",
    "ServerState",
]
