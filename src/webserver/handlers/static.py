"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves one file from disk at one exact path:

    server.add_static_file_route("/index.html", "public/index.html")

=============================================================================
FLOW
=============================================================================

    GET /index.html
        │
        ▼
    load_file("public/index.html")
        │
        ├── file readable → (bytes, "text/html") → 200, set_content()
        │
        └── missing / unreadable → None → 404 HTML page

The file is read on every request, so edits show up without a restart.
There is no directory mapping: each served file gets its own route,
which keeps path traversal out of the picture entirely.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, NOT_FOUND_HTML
from ..http.router import Handler
from ..http.status_codes import HTTPStatus
from ..http.mime_types import get_mime_type


logger = logging.getLogger(__name__)


def load_file(file_path: Union[str, Path]) -> Optional[tuple[bytes, str]]:
    """
    Read a file and infer its MIME type.

    Args:
        file_path: Filesystem path of the file.

    Returns:
        (content, mime_type), or None if the file can't be read.
    """
    path = Path(file_path)
    try:
        content = path.read_bytes()
    except OSError as e:
        logger.debug(f"Static file unavailable {path}: {e}")
        return None
    return content, get_mime_type(path)


class StaticFileHandler(Handler):
    """
    Handler that answers with the contents of a single file.

    Usage:
        router.register("/index.html", StaticFileHandler("public/index.html"))
    """

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    def handle(self, request: HTTPRequest, response: HTTPResponse) -> None:
        loaded = load_file(self.file_path)

        if loaded is None:
            response.set_status(HTTPStatus.NOT_FOUND)
            response.set_content(NOT_FOUND_HTML)
            return

        content, mime_type = loaded
        response.set_content(content, mime_type)

    def __repr__(self) -> str:
        return f"StaticFileHandler({str(self.file_path)!r})"
