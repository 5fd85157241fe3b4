"""
=============================================================================
REQUEST LINE PARSING
=============================================================================

The HTTP mode understands exactly one line of HTTP: the request line.

    GET /index.html HTTP/1.1\r\n
    ─┬─ ─────┬───── ────┬───
     │       │          │
   Method   Path     Version

Everything after the first line (headers, body) is ignored. The grammar
is deliberately small:

    - the line must contain at least three whitespace-separated tokens
    - the method must be exactly "GET" (case-sensitive)
    - the version must start with "HTTP/"

Anything else is not an exception, just an invalid ParsedRequest. The
handler turns that into a 400 response.

    Input                         valid   Why
    ─────────────────────────     ─────   ─────────────────────────────
    "GET / HTTP/1.1"              yes
    "GET /x HTTP/1.0 extra"       yes     extra tokens are ignored
    "POST / HTTP/1.1"             no      method is not GET
    "get / HTTP/1.1"              no      method is case-sensitive
    "GET /x"                      no      missing version
    "GET /x FTP/1.0"              no      version lacks HTTP/ prefix
    ""                            no      no request line at all

=============================================================================
"""

from dataclasses import dataclass
from typing import Union


SUPPORTED_METHOD = "GET"
VERSION_PREFIX = "HTTP/"


@dataclass(frozen=True)
class ParsedRequest:
    """
    Result of parsing one request line.

    Built per received message, used once to pick a response, then dropped.
    """
    method: str = ""
    path: str = ""
    version: str = ""
    valid: bool = False

    @property
    def request_line(self) -> str:
        """The three tokens joined back together, for access logs."""
        return " ".join(t for t in (self.method, self.path, self.version) if t)


INVALID_REQUEST = ParsedRequest()


def first_line(data: Union[str, bytes]) -> str:
    """
    Return the first line of a message, without its line terminator.

    Bytes are decoded as UTF-8; undecodable bytes are replaced rather than
    raising, since a garbled request still deserves a 400.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")

    line, _, _ = data.partition("\n")
    return line.rstrip("\r")


def parse_request_line(data: Union[str, bytes]) -> ParsedRequest:
    """
    Parse the request line at the start of ``data``.

    Args:
        data: The raw message as received (bytes) or already decoded.

    Returns:
        A ParsedRequest. ``valid`` is False for any deviation from the
        grammar; the tokens that were found are still filled in so the
        access log can show what the client sent.
    """
    tokens = first_line(data).split()

    if len(tokens) < 3:
        if not tokens:
            return INVALID_REQUEST
        padded = tokens + [""] * (3 - len(tokens))
        return ParsedRequest(*padded, valid=False)

    method, path, version = tokens[:3]

    valid = method == SUPPORTED_METHOD and version.startswith(VERSION_PREFIX)

    return ParsedRequest(method=method, path=path, version=version, valid=valid)
