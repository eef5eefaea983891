"""
=============================================================================
LISTENER AND ACCEPT LOOP
=============================================================================

Owns the listening socket. Everything above this module sees only
Connection objects.

    socket() → setsockopt() → bind() → listen() → accept() loop
                                                      │
                                          Connection(client socket)
                                                      │
                                                      ▼
                                          connection_handler(conn)

=============================================================================
SOCKET OPTIONS
=============================================================================

    SO_REUSEADDR   rebind right after a restart, even while old
                   connections sit in TIME_WAIT
    TCP_NODELAY    responses are written in one sendall(); don't hold
                   the tail back waiting for an ACK (Nagle)
    timeout 1.0s   accept() wakes up once a second to notice shutdown()

=============================================================================
SHUTDOWN
=============================================================================

shutdown() only clears a flag; the loop sees it within one accept()
timeout, leaves, and closes the listening socket. SIGINT and SIGTERM
call shutdown() when the loop runs on the main thread (Python only
delivers signals there). Off the main thread, e.g. in tests, the
caller stops the server explicitly.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


ConnectionCallback = Callable[[Connection], None]


class SocketServer:
    """
    TCP listener that hands each accepted connection to a callback.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)  # blocks until shutdown()

    Or in two steps, to learn the bound port first:

        server.bind()
        print(server.address)            # ("127.0.0.1", 54321) for port=0
        server.serve(handle_connection)
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False

        self._ready_event = threading.Event()
        self._shutdown_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> tuple[str, int]:
        """
        The bound (host, port).

        Reports the port the OS actually assigned, so it is the real
        one even when the config asked for port 0.
        """
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return host, port
        return self.config.host, self.config.port

    # =========================================================================
    # SETUP
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    def bind(self) -> tuple[str, int]:
        """
        Create the listening socket, bind and listen.

        Returns:
            The bound (host, port).

        Raises:
            OSError: If the address can't be bound (in use, no
                     permission, bad host). Logged before raising.
        """
        sock = self._create_socket()

        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            sock.close()
            raise

        self._socket = sock
        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        return host, port

    def _setup_signals(self):
        """
        Route SIGTERM (kill, docker stop) and SIGINT (Ctrl+C) to shutdown().

        signal.signal() only works on the main thread; elsewhere this
        does nothing.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # SERVING
    # =========================================================================

    def start(self, connection_handler: ConnectionCallback):
        """Bind (if not already bound) and serve until shutdown()."""
        if self._socket is None:
            self.bind()
        self.serve(connection_handler)

    def serve(self, connection_handler: ConnectionCallback):
        """
        Run the accept loop. Blocks until shutdown() is called.

        Args:
            connection_handler: Called once per accepted connection, on
                                this thread. It should hand the
                                connection off quickly (e.g. to a pool).
        """
        if self._socket is None:
            raise RuntimeError("serve() called before bind()")

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: ConnectionCallback):
        """
        Accept connections until shutdown.

        A failed accept() or a failing callback is logged and the loop
        keeps going; one bad client never stops the server.
        """
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # recheck _running
            except OSError as e:
                if not self._running:
                    break
                logger.error(f"Accept error: {e}")
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )

            try:
                connection_handler(conn)
            except Exception as e:
                logger.exception(f"[{conn.id}] Connection handoff failed: {e}")
                conn.close()

    def shutdown(self):
        """
        Ask the accept loop to stop. Safe from any thread, a signal
        handler included, and safe to call more than once.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._ready_event.clear()
        logger.info("Socket server stopped")

    # =========================================================================
    # COORDINATION
    # =========================================================================

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the accept loop is running.

        Returns:
            True once ready, False on timeout.
        """
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Block until shutdown() has been called.

        Returns:
            True if shutdown was requested, False on timeout.
        """
        return self._shutdown_event.wait(timeout)
