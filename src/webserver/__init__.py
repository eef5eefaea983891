"""
=============================================================================
WEBSERVER - Minimal Threaded HTTP/1.x Server
=============================================================================

Accept a TCP connection, parse one HTTP request from the raw bytes,
dispatch it by exact path to a handler, write the response, close.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    webserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m webserver)
    ├── server.py            # WebServer: wiring, run/stop
    ├── config.py            # ServerConfig dataclass
    ├── core/                # Sockets and threads
    │   ├── socket_server.py # Listening socket, accept loop
    │   ├── connection.py    # Client socket wrapper
    │   ├── handler.py       # read → parse → dispatch → write → close
    │   ├── thread_pool.py   # Bounded worker pool
    │   └── access_log.py    # Per-request access log
    ├── http/                # HTTP message model (no sockets)
    │   ├── request.py       # HTTPRequest + parser
    │   ├── response.py      # HTTPResponse + serializer
    │   ├── router.py        # Exact-path routing
    │   ├── status_codes.py  # HTTPStatus enum
    │   └── mime_types.py    # Extension → Content-Type
    └── handlers/
        └── static.py        # Single static file per route

=============================================================================
QUICK START
=============================================================================

    from webserver import WebServer, ServerConfig

    server = WebServer(ServerConfig(port=8080))

    @server.route("/")
    def index(request, response):
        response.set_content("<h1>Hello, World!</h1>")

    @server.route("/api/data")
    def api_data(request, response):
        response.set_content('{"message": "This is JSON data"}', "application/json")

    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import WebServer
from .config import ServerConfig

__all__ = ["WebServer", "ServerConfig", "__version__"]
