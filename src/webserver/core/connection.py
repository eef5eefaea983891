"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the reads and writes an HTTP
exchange needs.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

TCP keeps bytes in order but does not keep message boundaries. A request
sent in one write may arrive over several recv() calls:

    Client sends:    "GET /api/data HTTP/1.1\r\nHost: x\r\n\r\n"

    Server may see:  recv() → "GET /api/da"
                     recv() → "ta HTTP/1.1\r\nHost: x\r\n\r\n"

So the connection buffers until it has:

    1. the blank line that ends the headers, and
    2. as many body bytes as Content-Length declares

or until the peer stops sending. Whether what arrived is a valid request
is the parser's call, not this module's.

=============================================================================
LIFECYCLE
=============================================================================

    ACCEPTED ──► READING ──► PARSED ──► DISPATCHED ──► RESPONDING ──► CLOSED
                    │           │                                      ▲
                    │           └── parse error ──► RESPONDING ────────┤
                    └── peer sent nothing ─────────────────────────────┘

One request per connection. Every path ends in CLOSED.

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..http.request import (
    HTTPParseError,
    HEADER_ENCODING,
    find_header_end,
    parse_content_length,
)


logger = logging.getLogger(__name__)


DRAIN_TIMEOUT = 0.5       # seconds close() spends discarding unread input
DRAIN_LIMIT = 64 * 1024   # bytes close() discards at most


class ConnectionState(Enum):
    """Where a connection is in its single request/response exchange."""

    ACCEPTED = "accepted"      # Just accepted, nothing read yet
    READING = "reading"        # Buffering request bytes
    PARSED = "parsed"          # Bytes turned into an HTTPRequest (or an error)
    DISPATCHED = "dispatched"  # Handler chosen and run
    RESPONDING = "responding"  # Writing the serialized response
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    A client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  BUFFERED READING   recv() in buffer_size chunks until the request  │
    │                     is complete, capped at max_request_size         │
    │  TIMEOUTS           one socket deadline covers reads and writes     │
    │  STATE TRACKING     ConnectionState, for logs and tests             │
    │  GRACEFUL CLOSE     shutdown(SHUT_WR), drain, close                 │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        state: Current ConnectionState.
        created_at: When the connection was accepted.
        bytes_received: Total bytes read from the peer.
        bytes_sent: Total bytes written to the peer.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)
    bytes_received: int = 0
    bytes_sent: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    max_request_size: int = 1024 * 1024

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one request's worth of bytes from the socket.

            ┌─────────────────────────────────────────────────────────────┐
            │  while no header separator:   recv() → buffer               │
            │  Content-Length = N (0 if absent or not a number)           │
            │  while body < N:              recv() → buffer               │
            │  return buffer                                              │
            └─────────────────────────────────────────────────────────────┘

        If the peer half-closes early, whatever arrived is returned and
        the parser decides (a short body becomes a 400).

        Returns:
            The raw request bytes, or None if the peer sent nothing.

        Raises:
            TimeoutError: The socket deadline passed while reading.
            HTTPParseError: (413) The request outgrew max_request_size.
        """
        self.state = ConnectionState.READING
        buffer = b""

        try:
            body_start = find_header_end(buffer)
            while body_start is None:
                chunk = self._recv()
                if not chunk:
                    return buffer or None
                buffer += chunk
                self._check_size(buffer)
                body_start = find_header_end(buffer)

            content_length = self._peek_content_length(buffer[:body_start])

            while len(buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # peer finished early
                buffer += chunk
                self._check_size(buffer)

            return buffer

        except socket.timeout:
            raise TimeoutError(f"Request read timed out after {self.timeout}s")

    def _recv(self) -> bytes:
        """recv() one chunk; a reset or broken pipe reads as end of stream."""
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        self.bytes_received += len(data)
        return data

    def _check_size(self, buffer: bytes) -> None:
        if len(buffer) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: more than {self.max_request_size} bytes",
                status_code=413
            )

    @staticmethod
    def _peek_content_length(head: bytes) -> int:
        """
        Find the declared body length before the request is parsed.

        Only the exact header name "Content-Length" counts, as in the
        parser. A malformed value reads as 0 here; the parser rejects it.
        """
        length = 0
        for line in head.decode(HEADER_ENCODING).split("\n")[1:]:
            name, colon, value = line.rstrip("\r").partition(":")
            if colon and name == "Content-Length":
                try:
                    length = parse_content_length(value)
                except HTTPParseError:
                    length = 0
        return length

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a fully serialized response.

        sendall() keeps going until every byte is written, so a client
        never sees half a response unless the transport itself fails.

        Returns:
            True if sent, False if the connection was lost.
        """
        self.state = ConnectionState.RESPONDING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.bytes_sent += len(data)
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close the connection gracefully.

            1. shutdown(SHUT_WR)   send FIN, the client sees end of response
            2. drain               discard unread input so the kernel
                                   sends FIN rather than RST, for at
                                   most DRAIN_TIMEOUT / DRAIN_LIMIT
            3. close()             release the file descriptor

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        self._drain()

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def _drain(self) -> None:
        """
        Read and discard what the peer is still sending.

        Stops at end of stream or once DRAIN_TIMEOUT (wall clock) or
        DRAIN_LIMIT (bytes) is reached. A client that keeps writing
        cannot hold the calling thread.
        """
        deadline = time.monotonic() + DRAIN_TIMEOUT
        drained = 0

        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass

        if drained:
            logger.debug(f"[{self.id}] Discarded {drained} unread bytes")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
