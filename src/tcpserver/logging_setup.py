"""
Logging configuration shared by the server and the test client.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where those records go and how they look.
"""

import logging


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure root logging and the ``tcpserver`` logger hierarchy.

    ``basicConfig`` is a no-op when the root logger already has handlers
    (pytest, an embedding application), so only our own level is forced.
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    logging.getLogger("tcpserver").setLevel(level)
