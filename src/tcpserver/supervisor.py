"""
=============================================================================
PROCESS SUPERVISOR
=============================================================================

Ties the server to the process: signals in, exit code out.

    main thread                         accept-loop thread
    ───────────                         ──────────────────
    install SIGINT/SIGTERM handlers
    server.start()  ── fails? ──► exit 1
    spawn ─────────────────────────────► server.run()
    while not token.wait(0.1):              accept / dispatch ...
        (accept thread alive?)
                                         ◄── signal handler: token.set()
    server.stop()  ──────────────────────►  accept fails, loop exits
    join accept thread ◄─────────────────
    restore signal handlers
    exit 0

=============================================================================
SIGNAL HANDLING
=============================================================================

SIGINT (2):   Ctrl+C in a terminal
SIGTERM (15): docker stop, systemd stop, kill <pid>

Python runs signal handlers on the main thread, between bytecodes. The
handler here only sets the shutdown token (and logs one line); the real
teardown happens on the main thread once the polling loop sees the token.

Handlers can only be installed from the main thread. When the supervisor
runs elsewhere (tests, embedding) it skips them and relies on
request_shutdown() instead.

=============================================================================
"""

import signal
import logging
import threading
from typing import Optional

from .config import ServerConfig
from .core import SocketServer, ShutdownToken


logger = logging.getLogger(__name__)


SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

EXIT_OK = 0
EXIT_FAILURE = 1


class Supervisor:
    """
    Runs a SocketServer until a shutdown signal, then tears it down.

    Usage:
        sys.exit(Supervisor(ServerConfig(port=8080)).run())
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        server: Optional[SocketServer] = None,
    ):
        if server is not None:
            self.server = server
            self.config = server.config
            self.token = server.token
        else:
            self.config = config or ServerConfig()
            self.token = ShutdownToken()
            self.server = SocketServer(self.config, token=self.token)

        self._accept_thread: Optional[threading.Thread] = None

        # Saved so they can be restored; matters when embedded in a larger app
        self._original_handlers: dict = {}

    def _setup_signals(self):
        """Route SIGINT and SIGTERM to the shutdown token."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, shutting down...")
            self.token.set(signal_name)

        for sig in SHUTDOWN_SIGNALS:
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def request_shutdown(self, reason: str = "requested") -> None:
        """Ask a running supervisor to shut down (thread-safe)."""
        self.token.set(reason)

    @property
    def accept_thread(self) -> Optional[threading.Thread]:
        return self._accept_thread

    def run(self) -> int:
        """
        Start the server and block until shutdown.

        Returns:
            EXIT_OK after an orderly shutdown, EXIT_FAILURE if the server
            could not start or the accept loop died on its own.
        """
        self._setup_signals()

        try:
            if not self.server.start():
                logger.error("Failed to start server")
                return EXIT_FAILURE

            self._accept_thread = threading.Thread(
                target=self.server.run,
                name="accept-loop",
                daemon=True,
            )
            self._accept_thread.start()

            exit_code = self._wait_for_shutdown()

            self.server.stop()
            self._accept_thread.join()

        except Exception as e:
            logger.exception(f"Unhandled error: {e}")
            self.server.stop()
            return EXIT_FAILURE

        finally:
            self._restore_signals()

        logger.info("Server shutdown complete.")
        return exit_code

    def _wait_for_shutdown(self) -> int:
        """Poll the token every ``poll_interval`` seconds."""
        while not self.token.wait(self.config.poll_interval):
            if not self._accept_thread.is_alive():
                logger.error("Accept loop exited unexpectedly")
                self.token.set("accept loop exited")
                return EXIT_FAILURE
        return EXIT_OK


def serve(config: Optional[ServerConfig] = None) -> int:
    """Run a server with ``config`` under a Supervisor; returns the exit code."""
    return Supervisor(config).run()
