"""
=============================================================================
TCP SOCKET SERVER ENGINE
=============================================================================

This module owns the listening socket and the accept loop. Every
accepted connection is handed to a protocol handler running on its own
thread; the engine keeps track of those threads so that stop() can wait
for all of them.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create a TCP socket
    2. setsockopt  SO_REUSEADDR, so a restart does not hit TIME_WAIT
    3. bind()      Reserve 0.0.0.0:PORT
    4. listen(5)   OS queues up to 5 pending connections
    5. accept()    BLOCKS until a client connects, returns a NEW socket
    6. close()     Release the listening socket

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created in start()
                    │   0.0.0.0:8080        │     Closed in stop()
                    └───────────┬───────────┘
                                │ accept()
            ┌───────────────────┼───────────────────┐
            ▼                   ▼                   ▼
    ┌───────────────┐   ┌───────────────┐   ┌───────────────┐
    │ Client Socket │   │ Client Socket │   │ Client Socket │
    │   conn-1      │   │   conn-2      │   │   conn-3      │
    │  (thread 1)   │   │  (thread 2)   │   │  (thread 3)   │
    └───────────────┘   └───────────────┘   └───────────────┘

=============================================================================
SERVER STATE MACHINE
=============================================================================

    CREATED ──start()──► STARTED ──run()──► RUNNING
                            │                  │
                            └──────stop()──────┤
                                               ▼
                                           STOPPING ──► STOPPED

    start()  only from CREATED      (else RuntimeError)
    run()    only from STARTED      (else RuntimeError)
    stop()   from STARTED/RUNNING   (no-op from CREATED/STOPPED)

=============================================================================
SHUTDOWN ORDERING
=============================================================================

    stop()
      │
      ├──► token.set()               accept loop and handlers see it
      ├──► close listening socket    blocked accept() fails → loop exits
      ├──► workers.close()           late accepts are closed, not served
      ├──► workers.interrupt_all()   SHUT_RD on every client socket,
      │                              blocked recv() returns b""
      ├──► workers.join_all()        wait for every handler thread
      └──► state = STOPPED

accept() also runs with a short timeout, so the loop re-checks the token
even on platforms where closing a socket does not wake a blocked accept.

=============================================================================
"""

import socket
import logging
import threading
from enum import Enum
from typing import Optional, Tuple

from ..config import ServerConfig
from ..handlers import ConnectionHandler, create_handler
from .cancellation import ShutdownToken
from .connection import Connection
from .worker_group import WorkerGroup


logger = logging.getLogger(__name__)


class ServerState(Enum):
    CREATED = "created"
    STARTED = "started"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class SocketServer:
    """
    Thread-per-connection TCP server.

    Usage:
        server = SocketServer(ServerConfig(port=8080))
        if not server.start():
            sys.exit(1)

        thread = threading.Thread(target=server.run)
        thread.start()
        ...
        server.stop()       # from any thread
        thread.join()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        token: Optional[ShutdownToken] = None,
        handler: Optional[ConnectionHandler] = None,
    ):
        """
        Initialize the server. Nothing touches the network until start().

        Args:
            config: Server configuration. Defaults to ServerConfig().
            token: Shutdown token shared with the handlers and, usually,
                   the process supervisor. A new one is made if omitted.
            handler: Protocol handler. Built from ``config.mode`` if
                     omitted, sharing ``token``.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.token = token if token is not None else ShutdownToken()
        self.handler = handler or create_handler(self.config.mode, self.token)

        self._socket: Optional[socket.socket] = None
        self._port = self.config.port

        self._state = ServerState.CREATED
        self._state_lock = threading.Lock()

        # Set once stop() has finished; lets other threads wait for it
        self._stopped_event = threading.Event()

        self._workers = WorkerGroup(name="conn")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ServerState.RUNNING

    @property
    def port(self) -> int:
        """Bound port; differs from config.port when that was 0."""
        return self._port

    @property
    def address(self) -> Tuple[str, int]:
        return (self.config.host, self._port)

    @property
    def listening(self) -> bool:
        """True while the listening socket is open."""
        return self._socket is not None

    @property
    def active_connections(self) -> int:
        return self._workers.active

    @property
    def stats(self) -> dict:
        return {"state": self._state.value, **self._workers.stats}

    # =========================================================================
    # START
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        """
        Create and configure the listening socket.

        SO_REUSEADDR lets the server bind again right after a restart,
        while the old socket is still in TIME_WAIT.

        The accept timeout turns accept() into a poll, so the loop can
        check the shutdown token at least every ``accept_timeout`` seconds.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.settimeout(self.config.accept_timeout)
        except OSError:
            sock.close()
            raise
        return sock

    def start(self, port: Optional[int] = None) -> bool:
        """
        Create, bind and listen.

        Args:
            port: Override the configured port.

        Returns:
            True when the server is listening, False if any step failed.
            On failure no socket is left open and the server stays in
            CREATED, so start() may be retried.

        Raises:
            RuntimeError: If the server is not in CREATED state.
        """
        # Held across bind so a concurrent start() or stop() sees either
        # CREATED with no socket or STARTED with one
        with self._state_lock:
            if self._state != ServerState.CREATED:
                raise RuntimeError(
                    f"start() requires a new server (state: {self._state.value})"
                )

            if port is not None:
                self._port = port

            sock = None
            try:
                sock = self._create_socket()
                sock.bind((self.config.host, self._port))
                sock.listen(self.config.backlog)
            except OSError as e:
                logger.error(f"Failed to start on {self.config.host}:{self._port}: {e}")
                if sock is not None:
                    sock.close()
                return False

            self._socket = sock
            self._port = sock.getsockname()[1]
            self._state = ServerState.STARTED

        logger.info(
            f"TCP {self.handler.name} server started on port {self._port}"
        )
        return True

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def run(self) -> None:
        """
        Accept connections until shutdown is requested.

        Blocks the calling thread; run it on a background thread and call
        stop() from elsewhere.

        Raises:
            RuntimeError: If the server was not started, or was already
                          run or stopped.
        """
        with self._state_lock:
            if self._state != ServerState.STARTED:
                raise RuntimeError(
                    f"run() requires a started server (state: {self._state.value})"
                )
            self._state = ServerState.RUNNING
            # Keep our own reference: stop() clears self._socket
            listener = self._socket

        logger.info("Waiting for connections...")

        while not self.token.is_set():
            self._workers.reap()

            try:
                client_socket, client_address = listener.accept()
            except socket.timeout:
                # Normal: gives us a chance to look at the token
                continue
            except OSError as e:
                if self.token.is_set():
                    break  # stop() closed the socket under us
                if listener.fileno() == -1:
                    logger.error(f"Listening socket closed unexpectedly: {e}")
                    break
                logger.error(f"Accept failed: {e}")
                continue

            self._dispatch(client_socket, client_address)

        logger.debug("Accept loop exited")

    def _dispatch(self, client_socket: socket.socket, client_address: tuple) -> None:
        """Wrap an accepted socket and start its handler thread."""
        conn = Connection(
            socket=client_socket,
            address=client_address[:2],
            buffer_size=self.config.buffer_size,
            timeout=self.config.read_timeout,
        )

        logger.info(f"[{conn.id}] New connection from {conn.peer}")

        try:
            self._workers.spawn(
                self.handler.handle,
                args=(conn,),
                name=f"conn-{conn.id}",
                connection=conn,
            )
        except RuntimeError:
            # stop() got in between accept() and here
            logger.debug(f"[{conn.id}] Server stopping, closing connection")
            conn.close()

    # =========================================================================
    # STOP
    # =========================================================================

    def stop(self) -> None:
        """
        Stop the server and wait for every connection handler to finish.

        Idempotent: calling it on a stopped (or never started) server does
        nothing. A call that races an in-progress stop() waits for that one
        to finish instead of returning early.
        """
        with self._state_lock:
            if self._state in (ServerState.CREATED, ServerState.STOPPED):
                return
            if self._state == ServerState.STOPPING:
                in_progress = True
            else:
                in_progress = False
                self._state = ServerState.STOPPING

        if in_progress:
            self._stopped_event.wait()
            return

        logger.info("Stopping server...")
        self.token.set("stop")

        self._close_listener()

        self._workers.close()
        self._workers.interrupt_all()
        self._workers.join_all()

        with self._state_lock:
            self._state = ServerState.STOPPED
        self._stopped_event.set()

        logger.info("Server stopped.")

    def _close_listener(self) -> None:
        """Close the listening socket, waking a blocked accept() where possible."""
        sock, self._socket = self._socket, None
        if sock is None:
            return

        try:
            # On Linux shutdown() makes a blocked accept() return at once;
            # close() alone does not.
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Not connected; expected for a listening socket elsewhere

        try:
            sock.close()
        except OSError:
            pass

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until stop() has completed.

        Returns:
            True if the server is stopped, False on timeout.
        """
        return self._stopped_event.wait(timeout)

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
