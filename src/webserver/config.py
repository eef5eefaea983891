"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable knob lives in one dataclass, ServerConfig.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  NETWORK        host, port, backlog                                 │
    │  CONNECTION     buffer_size, timeout, max_request_size              │
    │  WORKERS        min_workers, max_workers, queue_size,               │
    │                 shutdown_timeout                                    │
    │  LOGGING        log_level, log_format                               │
    │  IDENTITY       server_name                                         │
    └─────────────────────────────────────────────────────────────────────┘

Values come from code, from the CLI (__main__.py), or from environment
variables (ServerConfig.from_env()). validate() runs when the server is
constructed, so a bad value stops the process before the port is bound.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the web server.

    Development:
        ServerConfig(port=8080, log_level="DEBUG")

    Tests:
        ServerConfig(port=0)    # OS picks a free port

    Production:
        ServerConfig(host="0.0.0.0", max_workers=32, log_format="json")
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """Port to listen on. 0 lets the OS pick one (see SocketServer.address)."""

    backlog: int = 128
    """Pending-connection queue length passed to listen()."""

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Per-connection socket deadline for reads and writes, in seconds.
    None blocks forever, which lets one stalled client pin a worker.
    """

    max_request_size: int = 1024 * 1024
    """Largest request (headers + body) accepted. Bigger → 413."""

    # ─────────────────────────────────────────────────────────────────────
    # WORKER POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads started up front."""

    max_workers: int = 16
    """Upper bound on worker threads under load."""

    queue_size: int = 100
    """
    Connections allowed to wait for a worker. Once full, new connections
    are answered with 503 and closed immediately.
    """

    shutdown_timeout: float = 30.0
    """Seconds to let in-flight connections finish on shutdown."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "PyWebServer/1.0"
    """Value for the Server response header. Empty string omits it."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        HTTP_HOST        Server host (default: 127.0.0.1)
        HTTP_PORT        Server port (default: 8080)
        HTTP_WORKERS     Max worker threads (default: 16)
        HTTP_TIMEOUT     Socket timeout in seconds (default: 30)
        HTTP_LOG_LEVEL   Logging level (default: INFO)
        HTTP_LOG_FORMAT  Access log format (default: text)

        Example:
            HTTP_PORT=3000 HTTP_LOG_LEVEL=DEBUG python -m webserver
        """
        max_workers = int(os.getenv("HTTP_WORKERS", "16"))
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            min_workers=min(4, max_workers),
            max_workers=max_workers,
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("HTTP_LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> None:
        """
        Validate configuration values (fail fast, at startup).

        Raises:
            ValueError: Describing the first invalid setting found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.max_request_size < self.buffer_size:
            raise ValueError("max_request_size must be >= buffer_size")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}. Use 'text' or 'json'.")
