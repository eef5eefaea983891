"""
Unit tests for the per-connection pipeline.

Socket-level cases use socket.socketpair(): the test writes the request
into one end and half-closes it, then runs ConnectionHandler.process()
on the other end in the test thread.
"""

import logging
import socket
import threading
import time

import pytest

from webserver.core.access_log import AccessLogger
from webserver.core.connection import DRAIN_TIMEOUT, Connection, ConnectionState
from webserver.core.handler import ConnectionHandler
from webserver.http.request import RequestParser, parse_request
from webserver.http.router import Router


NOT_FOUND_BODY = b"<html><body><h1>404 Not Found</h1></body></html>"


def api_data(request, response):
    response.set_content('{"message": "This is JSON data"}', "application/json")


def boom(request, response):
    raise RuntimeError("handler exploded")


def echo(request, response):
    response.set_content(request.body, "application/octet-stream")


def str_body(request, response):
    response.body = "plain str body"


def non_latin1_header(request, response):
    response.set_header("X-Greeting", "你好")
    response.set_content("hi")


@pytest.fixture
def router() -> Router:
    router = Router()
    router.register("/api/data", api_data)
    router.register("/boom", boom)
    router.register("/echo", echo)
    router.register("/str-body", str_body)
    router.register("/non-latin1", non_latin1_header)
    router.freeze()
    return router


@pytest.fixture
def handler(router: Router) -> ConnectionHandler:
    return ConnectionHandler(router, RequestParser(), server_name="TestServer/1.0")


def split_response(raw: bytes) -> tuple[str, dict, bytes]:
    """Split raw response bytes into (status line, headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("iso-8859-1").split("\r\n")
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], headers, body


def run_exchange(handler: ConnectionHandler, data: bytes, half_close: bool = True, **conn_kwargs) -> tuple[bytes, Connection]:
    """Push data through process() over a socketpair and collect the reply."""
    server_sock, client_sock = socket.socketpair()
    with client_sock:
        client_sock.settimeout(5.0)
        client_sock.sendall(data)
        if half_close:
            client_sock.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server_sock, address=("127.0.0.1", 50000), **conn_kwargs)
        handler.process(conn)

        chunks = []
        while True:
            chunk = client_sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)

    return b"".join(chunks), conn


class TestBuildResponse:
    """Tests for the socket-free bytes → response path."""

    def test_json_route(self, handler: ConnectionHandler):
        """Test the JSON example route end to end."""
        response = handler.build_response(b"GET /api/data HTTP/1.1\r\nHost: x\r\n\r\n")
        raw = response.to_bytes()

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Type: application/json\r\n" in raw
        assert raw.endswith(b'\r\n\r\n{"message": "This is JSON data"}')

    def test_unknown_path_is_404(self, handler: ConnectionHandler):
        """Test an unrouted path gets the HTML 404 page."""
        response = handler.build_response(b"GET /nope HTTP/1.1\r\n\r\n")

        assert response.status_code == 404
        assert response.body == NOT_FOUND_BODY

    def test_incomplete_body_is_400(self, handler: ConnectionHandler):
        """Test a short body is a deterministic 400, not a fault."""
        response = handler.build_response(b"POST /echo HTTP/1.1\r\nContent-Length: 5\r\n\r\nabc")

        assert response.status_code == 400
        assert response.status_message == "Bad Request"

    def test_malformed_request_line_is_400(self, handler: ConnectionHandler):
        assert handler.build_response(b"NONSENSE\r\n\r\n").status_code == 400

    def test_too_large_is_413(self, router: Router):
        handler = ConnectionHandler(router, RequestParser(max_request_size=32))
        response = handler.build_response(b"GET /api/data HTTP/1.1\r\nX-Pad: " + b"a" * 64 + b"\r\n\r\n")

        assert response.status_code == 413

    def test_handler_exception_is_500(self, handler: ConnectionHandler, caplog):
        """Test a raising handler gives 500 and is logged with traceback."""
        with caplog.at_level(logging.ERROR, logger="webserver.core.handler"):
            response = handler.build_response(b"GET /boom HTTP/1.1\r\n\r\n")

        assert response.status_code == 500
        assert b"handler exploded" not in response.body
        assert any(record.exc_info for record in caplog.records)

    def test_connection_and_server_headers(self, handler: ConnectionHandler):
        """Test every response carries Connection: close and Server."""
        for data in (b"GET /api/data HTTP/1.1\r\n\r\n", b"GET /x HTTP/1.1\r\n\r\n", b"bad\r\n\r\n"):
            response = handler.build_response(data)
            assert response.headers["Connection"] == "close"
            assert response.headers["Server"] == "TestServer/1.0"

    def test_handler_headers_not_overridden(self, router: Router):
        """Test a handler's own Connection/Server headers are kept."""
        r = Router()

        def custom(request, response):
            response.set_header("Server", "Custom")
            response.set_content("x")

        r.register("/c", custom)
        handler = ConnectionHandler(r, server_name="TestServer/1.0")

        assert handler.build_response(b"GET /c HTTP/1.1\r\n\r\n").headers["Server"] == "Custom"

    def test_no_server_header_when_unnamed(self, router: Router):
        handler = ConnectionHandler(router)

        assert "Server" not in handler.build_response(b"GET /api/data HTTP/1.1\r\n\r\n").headers

    def test_handler_gets_fresh_response(self, router: Router):
        """Test handlers start from a default response every time."""
        seen = []
        r = Router()

        def record(request, response):
            seen.append((response.status_code, dict(response.headers), response.body))
            response.set_header("X-Dirty", "1")

        r.register("/r", record)
        handler = ConnectionHandler(r)
        handler.build_response(b"GET /r HTTP/1.1\r\n\r\n")
        handler.build_response(b"GET /r HTTP/1.1\r\n\r\n")

        assert seen == [(200, {}, b""), (200, {}, b"")]

    def test_serialized_response_reparses(self, handler: ConnectionHandler):
        """Test the wire bytes carry an honest Content-Length."""
        raw = handler.build_response(b"GET /api/data HTTP/1.1\r\n\r\n").to_bytes()
        reparsed = parse_request(raw)

        assert reparsed.body == b'{"message": "This is JSON data"}'


class TestProcess:
    """Tests for process() over a real socket pair."""

    def test_full_exchange(self, handler: ConnectionHandler):
        raw, conn = run_exchange(handler, b"GET /api/data HTTP/1.1\r\nHost: x\r\n\r\n")
        status, headers, body = split_response(raw)

        assert status == "HTTP/1.1 200 OK"
        assert headers["Content-Type"] == "application/json"
        assert headers["Connection"] == "close"
        assert body == b'{"message": "This is JSON data"}'
        assert conn.state == ConnectionState.CLOSED

    def test_body_across_reads(self, handler: ConnectionHandler):
        """Test a body bigger than one recv() is reassembled."""
        body = b"x" * 5000
        data = b"POST /echo HTTP/1.1\r\nContent-Length: 5000\r\n\r\n" + body
        raw, _ = run_exchange(handler, data, buffer_size=1024)

        assert split_response(raw)[2] == body

    def test_short_body_is_400(self, handler: ConnectionHandler):
        raw, conn = run_exchange(handler, b"POST /echo HTTP/1.1\r\nContent-Length: 5\r\n\r\nabc")

        assert raw.startswith(b"HTTP/1.1 400 Bad Request\r\n")
        assert conn.closed

    def test_empty_read_sends_nothing(self, handler: ConnectionHandler):
        """Test a client that connects and leaves gets no response."""
        raw, conn = run_exchange(handler, b"")

        assert raw == b""
        assert conn.state == ConnectionState.CLOSED

    def test_timeout_is_408(self, handler: ConnectionHandler):
        """Test a client that stalls mid-headers gets 408."""
        raw, conn = run_exchange(handler, b"GET /api/data HTTP/1.1\r\n", half_close=False, timeout=0.2)

        assert raw.startswith(b"HTTP/1.1 408 Request Timeout\r\n")
        assert conn.closed

    def test_oversized_is_413(self, handler: ConnectionHandler):
        data = b"GET /api/data HTTP/1.1\r\nX-Pad: " + b"a" * 500 + b"\r\n\r\n"
        raw, _ = run_exchange(handler, data, max_request_size=128)

        assert raw.startswith(b"HTTP/1.1 413 Payload Too Large\r\n")

    def test_handler_exception_is_500(self, handler: ConnectionHandler):
        raw, conn = run_exchange(handler, b"GET /boom HTTP/1.1\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 500 Internal Server Error\r\n")
        assert conn.closed

    @pytest.mark.parametrize("path", ["/str-body", "/non-latin1"])
    def test_unserializable_response_is_500(self, handler: ConnectionHandler, path: str, caplog):
        """Test a response that fails to serialize still gets an answer."""
        with caplog.at_level(logging.ERROR, logger="webserver.core.handler"):
            raw, conn = run_exchange(handler, f"GET {path} HTTP/1.1\r\n\r\n".encode())

        status, headers, _ = split_response(raw)
        assert status == "HTTP/1.1 500 Internal Server Error"
        assert headers["Connection"] == "close"
        assert conn.closed
        assert any(record.exc_info for record in caplog.records)

    def test_unserializable_response_access_logged_as_500(self, router: Router, caplog):
        handler = ConnectionHandler(router, access_log=AccessLogger(log_format="text"))

        with caplog.at_level(logging.INFO, logger="webserver.access"):
            run_exchange(handler, b"GET /str-body HTTP/1.1\r\n\r\n")

        lines = [r.getMessage() for r in caplog.records if r.name == "webserver.access"]
        assert len(lines) == 1
        assert '"GET /str-body" 500' in lines[0]

    def test_access_log(self, router: Router, caplog):
        """Test one access log line per answered request."""
        handler = ConnectionHandler(router, access_log=AccessLogger(log_format="text"))

        with caplog.at_level(logging.INFO, logger="webserver.access"):
            run_exchange(handler, b"GET /api/data HTTP/1.1\r\n\r\n")

        lines = [r.getMessage() for r in caplog.records if r.name == "webserver.access"]
        assert len(lines) == 1
        assert '"GET /api/data" 200 32' in lines[0]
        assert lines[0].startswith("127.0.0.1 - - [")

    def test_send_error(self, handler: ConnectionHandler):
        """Test turning a connection away without reading it."""
        server_sock, client_sock = socket.socketpair()
        with client_sock:
            client_sock.shutdown(socket.SHUT_WR)
            conn = Connection(socket=server_sock, address=("127.0.0.1", 1))
            handler.send_error(conn, 503, "Server overloaded")
            raw = client_sock.recv(4096)

        status, headers, body = split_response(raw)
        assert status == "HTTP/1.1 503 Service Unavailable"
        assert b"Server overloaded" in body
        assert conn.closed


class TestConnection:
    """Tests for Connection reads."""

    def test_read_stops_at_content_length(self):
        """Test reading stops once the declared body has arrived."""
        server_sock, client_sock = socket.socketpair()
        with client_sock:
            # no half-close: the reader must stop on its own
            client_sock.sendall(b"POST / HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc")
            conn = Connection(socket=server_sock, address=("", 0), timeout=2.0)

            assert conn.read_request() == b"POST / HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc"
            assert conn.state == ConnectionState.READING
            conn.close()

    def test_close_is_idempotent(self):
        server_sock, client_sock = socket.socketpair()
        with client_sock:
            client_sock.shutdown(socket.SHUT_WR)
            conn = Connection(socket=server_sock, address=("", 0))
            conn.close()
            conn.close()

            assert conn.closed

    def test_close_with_streaming_peer_is_bounded(self):
        """Test close() returns while the peer is still sending."""
        server_sock, client_sock = socket.socketpair()
        stop = threading.Event()

        def stream():
            while not stop.is_set():
                try:
                    client_sock.sendall(b"x" * 512)
                except OSError:
                    return
                time.sleep(0.05)

        sender = threading.Thread(target=stream, daemon=True)
        with client_sock:
            sender.start()
            conn = Connection(socket=server_sock, address=("", 0))

            started = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - started

            stop.set()
            sender.join(2.0)

        assert conn.closed
        assert elapsed < DRAIN_TIMEOUT + 1.0

    def test_close_stops_at_drain_limit(self):
        """Test close() discards at most DRAIN_LIMIT bytes of backlog."""
        server_sock, client_sock = socket.socketpair()
        stop = threading.Event()

        def flood():
            while not stop.is_set():
                try:
                    client_sock.sendall(b"x" * 65536)
                except OSError:
                    return

        sender = threading.Thread(target=flood, daemon=True)
        with client_sock:
            sender.start()
            conn = Connection(socket=server_sock, address=("", 0))

            started = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - started

            stop.set()
            sender.join(2.0)

        assert conn.closed
        assert elapsed < DRAIN_TIMEOUT + 1.0
