"""
=============================================================================
HTTP RESPONSE FORMATTING
=============================================================================

Only two responses exist in HTTP mode, and both are written byte-exact:

    HTTP/1.1 200 OK\r\n                       ← status line
    Content-Type: text/html\r\n               ← headers, in this order
    Content-Length: 142\r\n                   ← exact body length in bytes
    \r\n                                      ← blank line
    <html>...</html>                          ← body

    HTTP/1.1 400 Bad Request\r\n
    Content-Type: text/plain\r\n
    Content-Length: 15\r\n
    \r\n
    400 Bad Request

No Date, Server or Connection headers are added. The connection is
closed after the response, which is what tells the client the body is
complete if it ignores Content-Length.

=============================================================================
"""

import html
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Union

from .request import ParsedRequest


class HTTPStatus(IntEnum):
    """The status codes this server can answer with."""

    OK = 200
    BAD_REQUEST = 400

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES[self]


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
}


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Header order is preserved (dicts are ordered), and Content-Length is
    appended from the body when the caller did not set one.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body, encoding strings as UTF-8."""
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

        Returns:
            Status line, headers, blank line and body as one bytes object.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")

        # Blank line between headers and body
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        return header_bytes + self.body


# =============================================================================
# CANNED RESPONSES
# =============================================================================

BAD_REQUEST_BODY = "400 Bad Request"

PAGE_TEMPLATE = (
    "<html>"
    "<head><title>tcpserver</title></head>"
    "<body>"
    "<h1>Request received</h1>"
    "<p>Method: {method}</p>"
    "<p>Path: {path}</p>"
    "<p>Version: {version}</p>"
    "</body>"
    "</html>"
)


def render_page(request: ParsedRequest) -> str:
    """Fill the HTML template with the (escaped) request tokens."""
    return PAGE_TEMPLATE.format(
        method=html.escape(request.method),
        path=html.escape(request.path),
        version=html.escape(request.version),
    )


def ok_page(request: ParsedRequest) -> HTTPResponse:
    """200 OK with an HTML page echoing the request line."""
    return HTTPResponse(
        status=HTTPStatus.OK,
        headers={"Content-Type": "text/html"},
    ).set_body(render_page(request))


def bad_request() -> HTTPResponse:
    """
    The fixed 400 response.

    Content-Length is derived from the body (15 bytes).
    """
    return HTTPResponse(
        status=HTTPStatus.BAD_REQUEST,
        headers={"Content-Type": "text/plain"},
    ).set_body(BAD_REQUEST_BODY)


def build_response(request: ParsedRequest) -> HTTPResponse:
    """Pick the response for a parsed request."""
    if request.valid:
        return ok_page(request)
    return bad_request()
