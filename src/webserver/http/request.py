"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.x request bytes into structured HTTPRequest objects.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  REQUEST LINE      POST /api/data?x=1 HTTP/1.1\r\n                  │
    │                    ─┬── ──────┬────── ───┬────                      │
    │                   Method     Path      Version                      │
    │                                                                      │
    │  HEADERS           Host: localhost:8080\r\n                         │
    │                    Content-Length: 5\r\n                            │
    │                                                                      │
    │  SEPARATOR         \r\n                                              │
    │                                                                      │
    │  BODY              hello                (exactly Content-Length)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING RULES
=============================================================================

This parser is deliberately literal. It does NOT:

    - split the query string off the path  ("/a?b=1" stays "/a?b=1")
    - percent-decode the path
    - validate the method against a known verb list
    - validate the HTTP version
    - lowercase header names               ("Host" and "host" differ)

It DOES reject, with HTTPParseError (-> 400 Bad Request):

    - a request line that is not exactly three whitespace-separated tokens
    - a Content-Length that is not a non-negative decimal integer
    - a body shorter than the declared Content-Length

Lines may end in CRLF or bare LF. Header lines without a colon are
silently dropped. A repeated header keeps the LAST value seen.

Header bytes are decoded as ISO-8859-1. Every byte maps to exactly one
code point, so no byte is ever lost or replaced on the way in.

=============================================================================
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional
import re


# Header section is text per RFC 7230; latin-1 keeps it byte-exact
HEADER_ENCODING = "iso-8859-1"

DEFAULT_MAX_REQUEST_SIZE = 1024 * 1024


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the HTTP status the connection handler should answer with:

        400 Bad Request       - Malformed request line or Content-Length,
                                or body shorter than declared
        413 Payload Too Large - Request exceeds the size limit
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request.

    Instances are frozen: the parser builds one per connection and
    nothing downstream may change it. Headers are exposed through a
    read-only mapping for the same reason.

    Attributes:
        method:         Request method token, as sent ("GET", "POST", ...)
        path:           Request target, verbatim, query string included
        version:        Protocol version token ("HTTP/1.1")
        headers:        Header name -> value, case-sensitive names
        body:           Exactly Content-Length bytes, or b""
        client_address: (ip, port) of the peer, for logging
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        # frozen dataclass, so bypass __setattr__ to wrap the mapping
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def content_length(self) -> Optional[int]:
        """Declared Content-Length, or None when absent."""
        value = self.headers.get("Content-Length")
        if value is None:
            return None
        return parse_content_length(value)

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value by its exact name."""
        return self.headers.get(name, default)


def parse_content_length(value: str) -> int:
    """
    Parse a Content-Length header value.

    Only plain decimal digits are accepted (surrounding whitespace is
    tolerated). Signs, hex, or trailing garbage raise HTTPParseError.
    """
    value = value.strip()
    if not _CONTENT_LENGTH_PATTERN.match(value):
        raise HTTPParseError(f"Invalid Content-Length: {value!r}")
    return int(value)


_CONTENT_LENGTH_PATTERN = re.compile(r"^[0-9]+$")


def find_header_end(data: bytes) -> Optional[int]:
    """
    Find where the header section ends.

    Returns the offset of the first body byte (just past the blank
    separator line), or None when no separator has arrived yet. Both
    CRLF CRLF and bare LF LF separators are recognised; whichever
    comes first wins.

    The connection reader uses this to know when to stop waiting for
    headers, and the parser uses it to locate the body.
    """
    candidates = []

    crlf = data.find(b"\r\n\r\n")
    if crlf != -1:
        candidates.append(crlf + 4)

    lf = data.find(b"\n\n")
    if lf != -1:
        candidates.append(lf + 2)

    # "\n\r\n" (LF line followed by CRLF blank line)
    mixed = data.find(b"\n\r\n")
    if mixed != -1:
        candidates.append(mixed + 3)

    return min(candidates) if candidates else None


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw Request Bytes
              │
              ▼
        ┌───────────────────────────────────────────────────────────────┐
        │  1. Size check ─────────────── too large? → 413               │
        │  2. Split into lines (LF, optional trailing CR stripped)      │
        │  3. Request line ───────────── not 3 tokens? → 400            │
        │  4. Header lines until the first blank line                   │
        │  5. Body: exactly Content-Length bytes after the blank line   │
        │           bad number? → 400    too few bytes? → 400           │
        └───────────────────────────────────────────────────────────────┘
              │
              ▼
        HTTPRequest
    """

    def __init__(self, max_request_size: int = DEFAULT_MAX_REQUEST_SIZE):
        """
        Args:
            max_request_size: Largest accepted request, in bytes.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: Everything read from the socket for this request.
            client_address: Peer (ip, port), carried through for logging.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        # ─────────────────────────────────────────────────────────────────
        # Locate the body. Without a separator, the whole input is the
        # header section and the body is empty.
        # ─────────────────────────────────────────────────────────────────
        body_start = find_header_end(data)
        if body_start is None:
            head, rest = data, b""
        else:
            head, rest = data[:body_start], data[body_start:]

        lines = [
            line[:-1] if line.endswith("\r") else line
            for line in head.decode(HEADER_ENCODING).split("\n")
        ]

        method, path, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # ─────────────────────────────────────────────────────────────────
        # Body: exactly Content-Length bytes, extra bytes ignored
        # ─────────────────────────────────────────────────────────────────
        body = b""
        if "Content-Length" in headers:
            content_length = parse_content_length(headers["Content-Length"])
            if len(rest) < content_length:
                raise HTTPParseError(
                    f"Incomplete body: expected {content_length} bytes, got {len(rest)}"
                )
            body = rest[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body,
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Split the request line into (method, path, version).

            "GET /api/data HTTP/1.1" → ("GET", "/api/data", "HTTP/1.1")

        Raises:
            HTTPParseError: Unless there are exactly three tokens.
        """
        tokens = line.split()
        if len(tokens) != 3:
            raise HTTPParseError(f"Invalid request line: {line!r}")
        method, path, version = tokens
        return method, path, version

    def _parse_headers(self, lines: list[str]) -> dict[str, str]:
        """
        Parse header lines into a dict.

        Stops at the first empty line. The name is everything before
        the first colon, untouched; the value is everything after it
        with leading spaces and tabs removed.
        """
        headers: dict[str, str] = {}

        for line in lines:
            if not line:
                break  # blank line ends the header section

            name, colon, value = line.partition(":")
            if not colon:
                continue  # no colon, not a header

            headers[name] = value.lstrip(" \t")

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = DEFAULT_MAX_REQUEST_SIZE
) -> HTTPRequest:
    """
    Convenience function to parse a request in one call.

    Use RequestParser directly to reuse one size limit across requests.
    """
    parser = RequestParser(max_request_size=max_size)
    return parser.parse(data, client_address)
