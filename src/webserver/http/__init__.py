"""
=============================================================================
HTTP MESSAGE MODEL
=============================================================================

Everything that understands HTTP, and nothing that touches a socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       bytes → HTTPRequest   (RequestParser)              │
    │ response.py      HTTPResponse → bytes  (HTTPResponse.to_bytes)      │
    │ router.py        path → Handler        (exact match)                │
    │ status_codes.py  HTTPStatus enum with reason phrases                │
    │ mime_types.py    file extension → Content-Type                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
    find_header_end,
)
from .response import HTTPResponse, not_found, error_response, NOT_FOUND_HTML
from .router import Router, Handler, FunctionHandler
from .status_codes import HTTPStatus
from .mime_types import get_mime_type

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "find_header_end",

    # Responses
    "HTTPResponse",
    "not_found",
    "error_response",
    "NOT_FOUND_HTML",

    # Routing
    "Router",
    "Handler",
    "FunctionHandler",

    # Status codes
    "HTTPStatus",

    # MIME types
    "get_mime_type",
]
