"""
=============================================================================
TCPSERVER CLI ENTRY POINT
=============================================================================

    python -m tcpserver [options]
    tcpserver [options]                 (installed console script)

Examples:
    python -m tcpserver                         # echo on 0.0.0.0:8080
    python -m tcpserver --mode http             # HTTP subset on 8080
    python -m tcpserver -p 9000 -l DEBUG        # echo on 9000, verbose
    TCP_MODE=http python -m tcpserver --env     # configure from environment

Exit codes:
    0   normal shutdown (SIGINT / SIGTERM)
    1   the server could not start

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import ServerConfig, ProtocolMode
from .logging_setup import setup_logging
from .supervisor import Supervisor, EXIT_FAILURE


logger = logging.getLogger("tcpserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcpserver",
        description="Thread-per-connection TCP server with echo and HTTP-subset modes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tcpserver                   # Echo server on port 8080
  python -m tcpserver --mode http       # Answer one GET request per connection
  python -m tcpserver --port 9000       # Custom port
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default="0.0.0.0",
        help="Address to bind to (default: 0.0.0.0, all interfaces)",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--mode", "-m",
        choices=[m.value for m in ProtocolMode],
        default=ProtocolMode.ECHO.value,
        help="Protocol spoken on each connection (default: echo)",
    )

    parser.add_argument(
        "--read-timeout",
        type=float,
        default=None,
        help="Seconds a connection may block in a read before re-checking "
             "for shutdown (default: block)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--env",
        action="store_true",
        help="Read configuration from TCP_* environment variables instead",
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"tcpserver {__version__}",
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    if args.env:
        return ServerConfig.from_env()

    return ServerConfig(
        host=args.host,
        port=args.port,
        mode=ProtocolMode(args.mode),
        read_timeout=args.read_timeout,
        log_level=args.log_level,
    )


def main(argv=None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logging(config.level)
    logger.info(f"TCP {config.mode.value} server starting...")

    return Supervisor(config).run()


if __name__ == "__main__":
    sys.exit(main())
