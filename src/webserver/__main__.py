"""
=============================================================================
WEB SERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:8080)
    python -m webserver

    # Custom port, all interfaces
    python -m webserver --host 0.0.0.0 --port 3000

    # Serve index.html from another directory
    python -m webserver --public ./site

    # Settings from the environment (flags still override)
    HTTP_PORT=3000 HTTP_LOG_FORMAT=json python -m webserver

=============================================================================
EXAMPLE ROUTES
=============================================================================

    /             HTML hello page
    /api/data     {"message": "This is JSON data"}   (application/json)
    /index.html   <public>/index.html from disk, HTML 404 if missing

Anything else gets the HTML 404 page.

=============================================================================
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import ServerConfig
from .http import HTTPRequest, HTTPResponse
from .server import WebServer


HELLO_HTML = (
    "<html><body><h1>Hello, World!</h1>"
    "<p>Welcome to my Python Web Server</p></body></html>"
)

API_DATA_JSON = '{"message": "This is JSON data"}'


def index(request: HTTPRequest, response: HTTPResponse) -> None:
    response.set_content(HELLO_HTML, "text/html")


def api_data(request: HTTPRequest, response: HTTPResponse) -> None:
    response.set_content(API_DATA_JSON, "application/json")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webserver",
        description="Minimal threaded HTTP/1.x server with exact-path routing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m webserver                      # Run with defaults
  python -m webserver --port 3000          # Custom port
  python -m webserver --host 0.0.0.0       # Listen on all interfaces
  python -m webserver --public ./site      # Serve ./site/index.html
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        help="Host to bind to (default: $HTTP_HOST or 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on (default: $HTTP_PORT or 8080, 0 picks a free port)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of worker threads, max will be 4x this (default: 4 to $HTTP_WORKERS or 16)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT AND LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--public", "-d",
        default="public",
        help="Directory holding index.html (default: ./public)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: $HTTP_LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"webserver {__version__}"
    )

    return parser


def create_server(args: argparse.Namespace) -> WebServer:
    """
    Build a WebServer from parsed CLI arguments, example routes included.

    Settings start from the HTTP_* environment variables
    (ServerConfig.from_env()); flags given on the command line win.
    """
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 4
    if args.log_level is not None:
        config.log_level = args.log_level

    server = WebServer(config)

    server.add_route("/", index)
    server.add_route("/api/data", api_data)
    server.add_static_file_route("/index.html", Path(args.public) / "index.html")

    return server


def main(argv: Optional[list[str]] = None):
    args = build_parser().parse_args(argv)

    try:
        server = create_server(args)
        server.run()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
