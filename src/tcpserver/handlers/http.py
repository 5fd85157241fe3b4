"""
=============================================================================
HTTP-SUBSET HANDLER
=============================================================================

One request, one response, then the connection is closed (HTTP/1.0
style, no keep-alive):

    ┌────────────┐   recv() once    ┌───────────────────┐
    │  client    │ ───────────────► │ parse_request_line│
    └────────────┘                  └─────────┬─────────┘
          ▲                                   │
          │                         valid? ───┼─── invalid?
          │                           │               │
          │                        200 page        400 text
          │                           │               │
          └────────── sendall() ◄─────┴───────────────┘
                         │
                       close

There is no buffering: the first recv() is the whole request. A request
line that arrives in two TCP segments is answered with 400.

=============================================================================
"""

import logging

from .base import ConnectionHandler
from ..core.connection import Connection
from ..http.request import parse_request_line
from ..http.response import build_response


logger = logging.getLogger(__name__)

# Access log has its own logger so it can be routed or silenced separately
access_logger = logging.getLogger("tcpserver.access")


class HTTPHandler(ConnectionHandler):
    """Single-exchange GET-only HTTP responder."""

    name = "http"

    def serve(self, conn: Connection) -> None:
        if self.stopping:
            return

        data = self.read(conn)
        if not data:
            # Client went away (or we are shutting down) before sending
            # anything; nobody to answer.
            return

        request = parse_request_line(data)
        response = build_response(request)
        payload = response.to_bytes()

        # Single shot: the outcome of the write does not change what
        # happens next, the connection is closed either way.
        sent = conn.send(payload)

        access_logger.info(
            f'{conn.client_ip} "{request.request_line}" '
            f"{int(response.status)} {len(response.body) if sent else '-'}"
        )
