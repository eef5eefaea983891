"""
=============================================================================
WEB SERVER
=============================================================================

WebServer wires the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   ServerConfig ──► WebServer                                        │
    │                       │                                              │
    │     add_route()  ──►  ├── Router          (frozen when run() starts) │
    │     route()           │                                              │
    │                       ├── SocketServer    accept() loop, main thread │
    │                       │        │                                     │
    │                       │        ▼ Connection                          │
    │                       ├── ThreadPool      bounded; full → 503        │
    │                       │        │                                     │
    │                       │        ▼ worker thread                       │
    │                       └── ConnectionHandler                          │
    │                                read → parse → dispatch → write       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
USAGE
=============================================================================

    server = WebServer(ServerConfig(port=8080))

    @server.route("/")
    def index(request, response):
        response.set_content("<h1>Hello</h1>")

    server.add_static_file_route("/index.html", "public/index.html")

    server.run()     # blocks until Ctrl+C / SIGTERM / stop()

Routes must be registered before run(). Once the server is serving, the
route table is read-only and add_route() raises RuntimeError.

=============================================================================
SHUTDOWN
=============================================================================

    1. stop accepting (listening socket closed)
    2. let queued and in-flight connections finish, up to
       config.shutdown_timeout seconds
    3. close connections that never got a worker
    4. stop the worker threads

=============================================================================
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from .config import ServerConfig
from .core import (
    AccessLogger,
    Connection,
    ConnectionHandler,
    SocketServer,
    ThreadPool,
)
from .handlers import StaticFileHandler
from .http import Handler, HTTPStatus, RequestParser, Router
from .http.router import HandlerFunc


logger = logging.getLogger(__name__)


class WebServer:
    """
    Threaded HTTP/1.x server with exact-path routing.

    One request per connection: every response carries Connection: close
    and the socket is closed after it is written.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults to ServerConfig().

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._router = Router()
        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._connection_handler = ConnectionHandler(
            router=self._router,
            parser=RequestParser(max_request_size=self.config.max_request_size),
            server_name=self.config.server_name,
            access_log=AccessLogger(log_format=self.config.log_format),
        )

        self._running = False
        self._stopped = threading.Event()

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    @property
    def router(self) -> Router:
        return self._router

    def add_route(self, path: str, handler: Union[Handler, HandlerFunc]) -> Handler:
        """
        Register a handler for an exact path.

        Args:
            path: Exact request path, e.g. "/api/data".
            handler: A Handler instance or a function (request, response) -> None.

        Raises:
            RuntimeError: If the server is already serving.
        """
        return self._router.register(path, handler)

    def route(self, path: str) -> Callable[[HandlerFunc], HandlerFunc]:
        """
        Decorator form of add_route().

            @server.route("/api/data")
            def api_data(request, response):
                response.set_content('{"message": "This is JSON data"}', "application/json")
        """
        return self._router.route(path)

    def add_static_file_route(self, path: str, file_path: Union[str, Path]) -> Handler:
        """
        Serve one file from disk at an exact path.

        The file is read per request; if it is missing the client gets
        the HTML 404 page.
        """
        return self._router.register(path, StaticFileHandler(file_path))

    # =========================================================================
    # RUNNING
    # =========================================================================

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port); the real port even when configured as 0."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Returns after stop() is called or SIGINT/SIGTERM arrives, once
        shutdown has finished.

        Args:
            host: Override config.host.
            port: Override config.port.

        Raises:
            OSError: If the listening socket can't be bound.
        """
        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._router.freeze()
        self._stopped.clear()

        self._socket_server.bind()
        self._thread_pool.start()
        self._running = True
        self._log_startup()

        try:
            self._socket_server.serve(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until run() is accepting connections."""
        return self._socket_server.wait_until_ready(timeout)

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Ask a running server to shut down, from any thread.

        Args:
            timeout: How long to wait for shutdown to finish. None waits
                     until it has.

        Returns:
            True if the server has fully stopped.
        """
        self._socket_server.shutdown()
        if not self._running:
            return True
        return self._stopped.wait(timeout)

    def _log_startup(self):
        host, port = self.address
        logger.info(f"{self.config.server_name} running at http://{host}:{port}")
        logger.info(
            f"Workers: {self.config.min_workers}-{self.config.max_workers} threads, "
            f"queue size {self.config.queue_size}"
        )
        for path in self._router.paths:
            logger.info(f"  route {path} -> {self._router.dispatch(path)!r}")

    def _setup_logging(self):
        """Configure root logging from config.log_level."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("webserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")

        abandoned = self._thread_pool.shutdown(
            wait=True,
            timeout=self.config.shutdown_timeout,
        )
        for task in abandoned:
            for arg in task.args:
                if isinstance(arg, Connection):
                    arg.close()
        if abandoned:
            logger.warning(f"Closed {len(abandoned)} connections that never got a worker")

        self._running = False
        self._stopped.set()
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDOFF (accept loop thread)
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Queue a connection for a worker, or turn it away with 503.

        Runs on the accept loop thread, so it must never block: submit()
        is non-blocking and the 503 path writes a small, fixed response.
        Its close() drains for at most DRAIN_TIMEOUT seconds.
        """
        submitted = self._thread_pool.submit(
            self._connection_handler.process,
            args=(conn,),
            block=False,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._connection_handler.send_error(
                conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded"
            )
