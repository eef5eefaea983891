"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps file extensions to MIME types for the Content-Type header of
files served from disk.

    ┌────────────────────────────────────────────────────────────────────┐
    │  .html .htm  → text/html             .png        → image/png       │
    │  .css        → text/css              .jpg .jpeg  → image/jpeg      │
    │  .js         → application/javascript .gif      → image/gif       │
    │  .json       → application/json      (anything else) → text/plain  │
    └────────────────────────────────────────────────────────────────────┘

Unknown extensions fall back to text/plain rather than
application/octet-stream: this server mostly serves hand-written pages
and the plain-text fallback keeps them viewable in a browser.

Matching is on the lowercased suffix, so "INDEX.HTML" is text/html.

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union


MIME_TYPES = {
    # Text / web
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".md": "text/markdown",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",

    # Documents / archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "text/plain"


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file based on its extension.

    Examples:
        >>> get_mime_type("public/index.html")
        'text/html'
        >>> get_mime_type("logo.PNG")
        'image/png'
        >>> get_mime_type("README")
        'text/plain'
    """
    extension = Path(path).suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)
