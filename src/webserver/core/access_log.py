"""
=============================================================================
ACCESS LOG
=============================================================================

One line per answered request, on its own logger so it can be routed or
silenced separately from the server's diagnostic output:

    logging.getLogger("webserver.access").setLevel(logging.WARNING)

=============================================================================
FORMATS
=============================================================================

    text (Apache-like, default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [15/Oct/2026:10:55:36 +0000] "GET /api/data" 200 32 0.41ms
    │ ───┬───────     ──────────┬────────────────  ──────┬──────  ─┬─ ┬─ ──┬──
    │   IP                 Timestamp            Method/Path Status Size Duration
    └─────────────────────────────────────────────────────────────────────┘

    json (one object per line, for log shippers):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"connection_id": "a1b2c3d4", "method": "GET", "path": "/api/data", │
    │  "client_ip": "127.0.0.1", "status_code": 200,                      │
    │  "content_length": 32, "duration_ms": 0.41, "timestamp": "..."}     │
    └─────────────────────────────────────────────────────────────────────┘

Requests that never parsed (400, 408, 413) are logged with method "-"
and path "-".

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("webserver.access")


@dataclass
class RequestLog:
    """
    Structured access log entry.

    connection_id:  Connection.id, ties the line to debug output
    method:         Request method, "-" if the request never parsed
    path:           Request path, "-" if the request never parsed
    client_ip:      Peer address
    status_code:    Status sent back
    content_length: Response body size in bytes
    duration_ms:    Time from accept to response written
    timestamp:      When the entry was made
    """

    connection_id: str
    method: str
    path: str
    client_ip: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class AccessLogger:
    """
    Emits RequestLog entries on the "webserver.access" logger.

    Usage:
        access_log = AccessLogger(log_format="json")
        access_log.log(conn.id, conn.client_ip, request, response, started)
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        self.log_format = log_format
        self.log_level = log_level

    def build_entry(
        self,
        connection_id: str,
        client_ip: str,
        request: Optional[HTTPRequest],
        response: HTTPResponse,
        start_time: float,
    ) -> RequestLog:
        return RequestLog(
            connection_id=connection_id,
            method=request.method if request else "-",
            path=request.path if request else "-",
            client_ip=client_ip,
            status_code=response.status_code,
            content_length=len(response.body),
            duration_ms=(time.time() - start_time) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def log(
        self,
        connection_id: str,
        client_ip: str,
        request: Optional[HTTPRequest],
        response: HTTPResponse,
        start_time: float,
    ) -> RequestLog:
        """Build the entry, emit it, and return it."""
        entry = self.build_entry(connection_id, client_ip, request, response, start_time)

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return entry
