"""
=============================================================================
HTTP RESPONSE
=============================================================================

The mutable response a handler fills in, and its serialization to bytes.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  STATUS LINE       HTTP/1.1 200 OK\r\n                               │
    │                    ───┬──── ─┬─ ─┬─                                  │
    │                    Version  Code Message                             │
    │                                                                      │
    │  HEADERS           Content-Type: application/json\r\n               │
    │                    Content-Length: 32\r\n                            │
    │                                                                      │
    │  SEPARATOR         \r\n                                              │
    │                                                                      │
    │  BODY              {"message": "This is JSON data"}                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
HANDLER CONTRACT
=============================================================================

A handler receives a fresh HTTPResponse (200 OK, no headers, empty body)
and mutates it:

    def api_data(request, response):
        response.set_content('{"message": "This is JSON data"}', "application/json")

set_content() is the one place that keeps Content-Length honest. Code
that writes .body directly owns the Content-Length header itself: the
serializer sends exactly what it is given and never re-checks it.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Union
import html

from .status_codes import HTTPStatus, reason_phrase


NOT_FOUND_HTML = "<html><body><h1>404 Not Found</h1></body></html>"

# Status line and header text go out as latin-1, mirroring the parser
HEADER_ENCODING = "iso-8859-1"


@dataclass
class HTTPResponse:
    """
    An HTTP response being built.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        ConnectionHandler        Handler                 to_bytes()
        creates default   ───►   mutates it    ───►      serializes
            │                       │                        │
        HTTPResponse()           set_content(...)        b"HTTP/1.1 200 OK\\r\\n
          200 OK                 set_status(...)            Content-Type: ...\\r\\n
          {} / b""               set_header(...)            \\r\\n
                                                            <body>"

    =========================================================================

    status_message is not derived from status_code. Whoever changes one
    is responsible for the other (set_status() does both).
    """

    version: str = "HTTP/1.1"
    status_code: int = 200
    status_message: str = "OK"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def status_line(self) -> str:
        """
        The first line of the response, without CRLF.

        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {self.status_code} {self.status_message}"

    def set_status(self, status_code: int, status_message: Optional[str] = None) -> "HTTPResponse":
        """
        Set status code and message together.

        Args:
            status_code: Numeric status (e.g. 404).
            status_message: Reason phrase. Looked up from HTTPStatus
                            when omitted.

        Returns:
            Self for method chaining
        """
        self.status_code = int(status_code)
        self.status_message = status_message if status_message is not None else reason_phrase(status_code)
        return self

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """
        Set a response header, replacing any previous value.

        Returns:
            Self for method chaining
        """
        self.headers[name] = value
        return self

    def set_content(self, content: Union[str, bytes], content_type: str = "text/html") -> "HTTPResponse":
        """
        Set the body and its Content-Type/Content-Length headers.

        Both headers are rewritten on every call, so after any sequence
        of calls Content-Length matches the LAST body set, byte for byte.
        Strings are encoded as UTF-8 before measuring.

        Args:
            content: Body as text or raw bytes.
            content_type: Value for the Content-Type header.

        Returns:
            Self for method chaining
        """
        if isinstance(content, str):
            self.body = content.encode("utf-8")
        else:
            self.body = bytes(content)
        self.headers["Content-Type"] = content_type
        self.headers["Content-Length"] = str(len(self.body))
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize to the exact bytes to send.

        =====================================================================
        SERIALIZATION FORMAT
        =====================================================================

            <version> <status_code> <status_message>\\r\\n
            <name>: <value>\\r\\n          ← one per header, insertion order
            \\r\\n                          ← blank separator line
            <body>                        ← raw bytes, untouched

        =====================================================================

        Nothing is added: no Date, no Server, no recomputed Content-Length.
        """
        lines = [self.status_line]
        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        head = "\r\n".join(lines).encode(HEADER_ENCODING) + b"\r\n"
        return head + self.body


# =============================================================================
# SYNTHESIZED RESPONSES
# =============================================================================
#
# Responses the server produces itself, when no handler gets to run.
#
# =============================================================================

def not_found() -> HTTPResponse:
    """
    The 404 sent when no route matches the request path.

    Returns:
        HTTPResponse with 404 status and the HTML not-found page
    """
    return HTTPResponse().set_status(HTTPStatus.NOT_FOUND).set_content(NOT_FOUND_HTML)


def error_response(status: Union[HTTPStatus, int], detail: Optional[str] = None) -> HTTPResponse:
    """
    A minimal HTML error page for the given status.

    Used for 400 (malformed request), 408 (read timeout), 413 (too
    large), 500 (handler raised) and 503 (server overloaded).

    Args:
        status: The status to answer with.
        detail: Optional short text shown under the heading. Never put
                tracebacks or internals here.

    Returns:
        HTTPResponse with the status and an HTML body
    """
    status = HTTPStatus(status)
    if status == HTTPStatus.NOT_FOUND and detail is None:
        return not_found()

    heading = f"{int(status)} {status.phrase}"
    page = f"<html><body><h1>{heading}</h1>"
    if detail:
        page += f"<p>{html.escape(detail)}</p>"
    page += "</body></html>"

    return HTTPResponse().set_status(status).set_content(page)
