"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking side of the server: sockets, threads, and the
per-connection pipeline.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SOCKET SERVER        listening socket, accept() loop, signals      │
    └─────────────────────────────────────────────────────────────────────┘
                                    │  Connection per client
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  THREAD POOL          bounded queue + worker threads                │
    │                       queue full → 503, never unbounded growth      │
    └─────────────────────────────────────────────────────────────────────┘
                                    │  worker runs
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  CONNECTION HANDLER   read → parse → dispatch → write → close       │
    │  CONNECTION           buffered socket I/O and lifecycle state       │
    │  ACCESS LOG           one line per answered request                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .handler import ConnectionHandler
from .thread_pool import ThreadPool
from .access_log import AccessLogger, RequestLog

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ConnectionHandler",
    "ThreadPool",
    "AccessLogger",
    "RequestLog",
]
