"""
HTTP-subset protocol: request-line parsing and the two canned responses.
"""

from .request import ParsedRequest, parse_request_line, first_line
from .response import (
    HTTPResponse,
    HTTPStatus,
    ok_page,
    bad_request,
    build_response,
    render_page,
    BAD_REQUEST_BODY,
)

__all__ = [
    "ParsedRequest",
    "parse_request_line",
    "first_line",
    "HTTPResponse",
    "HTTPStatus",
    "ok_page",
    "bad_request",
    "build_response",
    "render_page",
    "BAD_REQUEST_BODY",
]
