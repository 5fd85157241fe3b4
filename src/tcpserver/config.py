"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables for the TCP server live in one dataclass so that the CLI,
environment variables and tests build the server the same way.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌──────────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │  CLI arguments   │     │  Environment     │     │  Defaults        │
    │  --port 9000     │     │  TCP_PORT=9000   │     │  port = 8080     │
    └────────┬─────────┘     └────────┬─────────┘     └────────┬─────────┘
             │                        │                        │
             └────────────────────────┼────────────────────────┘
                                      ▼
                              ServerConfig(...)
                                      │
                                      ▼
                               .validate()  ← fail fast at startup

=============================================================================
"""

import os
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ProtocolMode(str, Enum):
    """
    Protocol spoken on every accepted connection.

    ECHO: every chunk received is written back unchanged.
    HTTP: one GET request line in, one canned HTTP response out, then close.
    """
    ECHO = "echo"
    HTTP = "http"


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the TCP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size

    PROTOCOL
    - mode

    TIMING
    - accept_timeout, read_timeout, poll_interval

    LOGGING
    - log_level

    =========================================================================
    """

    # =========================================================================
    # NETWORK SETTINGS
    # =========================================================================

    host: str = "0.0.0.0"
    """
    The IPv4 address to bind to.
    - "0.0.0.0" - All local interfaces (default)
    - "127.0.0.1" - Localhost only (tests)
    """

    port: int = 8080
    """
    The port number to listen on. 0 lets the OS pick a free port,
    which the server reports back once bound.
    """

    backlog: int = 5
    """
    Maximum number of connections the OS queues before accept() picks
    them up. Further connection attempts are refused.
    """

    buffer_size: int = 1024
    """
    Size of a single recv() chunk in bytes. In HTTP mode this is also
    the largest request line the server will ever see.
    """

    # =========================================================================
    # PROTOCOL
    # =========================================================================

    mode: ProtocolMode = ProtocolMode.ECHO

    # =========================================================================
    # TIMING
    # =========================================================================

    accept_timeout: float = 1.0
    """
    How long accept() blocks before the loop re-checks the shutdown token.
    """

    read_timeout: Optional[float] = None
    """
    Per-connection read timeout in seconds.
    None = block until data arrives or the peer closes. With a value the
    handler wakes up periodically to re-check the shutdown token.
    """

    poll_interval: float = 0.1
    """
    How often the supervisor's main thread checks for a shutdown request.
    """

    # =========================================================================
    # LOGGING
    # =========================================================================

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        TCP_HOST          Bind address (default: 0.0.0.0)
        TCP_PORT          Listen port (default: 8080)
        TCP_MODE          echo | http (default: echo)
        TCP_READ_TIMEOUT  Read timeout in seconds (default: unset, blocking)
        TCP_LOG_LEVEL     Logging level (default: INFO)

        Usage:
            TCP_MODE=http TCP_PORT=9000 python -m tcpserver
        """
        read_timeout = os.getenv("TCP_READ_TIMEOUT")
        return cls(
            host=os.getenv("TCP_HOST", "0.0.0.0"),
            port=int(os.getenv("TCP_PORT", "8080")),
            mode=ProtocolMode(os.getenv("TCP_MODE", "echo").lower()),
            read_timeout=float(read_timeout) if read_timeout else None,
            log_level=os.getenv("TCP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.accept_timeout <= 0:
            raise ValueError("accept_timeout must be > 0")

        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0")

        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")

        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

        # Accept plain strings from callers that skip the CLI.
        self.mode = ProtocolMode(self.mode)

    @property
    def level(self) -> int:
        """The log level as a `logging` constant."""
        return getattr(logging, self.log_level.upper(), logging.INFO)
