"""
=============================================================================
SHUTDOWN TOKEN
=============================================================================

One flag tells every running loop that the server is going away:

    ┌──────────────────┐
    │ SIGINT / SIGTERM │──┐
    └──────────────────┘  │        ┌────────────────┐
                          ├──set──►│ ShutdownToken  │
    ┌──────────────────┐  │        └───────┬────────┘
    │ SocketServer.stop│──┘                │ is_set()
    └──────────────────┘        ┌──────────┼──────────────┐
                                ▼          ▼              ▼
                          accept loop   handler #1 ... handler #N

The token is handed to the server and to every handler when they are
built, instead of living in a module-level global. It is backed by
threading.Event, so set() and is_set() are safe from any thread and
from a signal handler running on the main thread.

The flag only goes false → true. There is no reset: a stopped server is
not restarted, a new server gets a new token.

=============================================================================
"""

import threading
from typing import Optional


class ShutdownToken:
    """Write-once cancellation flag shared by the accept loop and handlers."""

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def set(self, reason: Optional[str] = None) -> None:
        """
        Request shutdown.

        Only the first reason is kept; later calls are harmless no-ops.
        """
        if not self._event.is_set():
            self._reason = reason
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until shutdown is requested.

        Returns:
            True if the token is set, False if the timeout elapsed first.
        """
        return self._event.wait(timeout)

    @property
    def reason(self) -> Optional[str]:
        """Why shutdown was requested ("SIGINT", "stop", ...), if known."""
        return self._reason

    def __repr__(self) -> str:
        return f"ShutdownToken(set={self.is_set()}, reason={self._reason!r})"
