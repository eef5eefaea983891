"""
=============================================================================
CONNECTION HANDLER
=============================================================================

Runs one connection from first byte to closed socket. This is the code
every worker thread executes.

=============================================================================
PIPELINE
=============================================================================

    Connection
        │
        ▼
    read_request() ──── nothing sent ──────────────────────► close, no reply
        │          ──── timed out ─────► 408 ──┐
        │          ──── too large ─────► 413 ──┤
        ▼                                      │
    RequestParser.parse() ── HTTPParseError ─► 400/413 ──┤
        │                                      │
        ▼                                      │
    Router.dispatch(path)                      │
        ├── no route ──► 404                   │
        ├── handler raises ──► 500             │
        └── handler fills in response          │
        │                                      │
        ▼                                      ▼
    add Connection: close / Server ◄───────────┘
        │
        ▼
    to_bytes() ──── unserializable ──► 500
        │
        ▼
    sendall() ──► access log ──► close

No exception leaves process(): the worker thread and the accept loop
never see a client's failure.

=============================================================================
"""

import logging
import time
from typing import Optional

from ..http.request import HTTPRequest, HTTPParseError, RequestParser
from ..http.response import HTTPResponse, error_response, not_found
from ..http.router import Router
from ..http.status_codes import HTTPStatus
from .access_log import AccessLogger
from .connection import Connection, ConnectionState


logger = logging.getLogger(__name__)


class ConnectionHandler:
    """
    Turns a Connection into one request/response exchange.

    Usage:
        handler = ConnectionHandler(router, RequestParser(), server_name="PyWebServer/1.0")
        thread_pool.submit(handler.process, args=(conn,))

    build_response() is the socket-free part (bytes in, response out),
    which is what most tests drive.
    """

    def __init__(
        self,
        router: Router,
        parser: Optional[RequestParser] = None,
        server_name: str = "",
        access_log: Optional[AccessLogger] = None,
    ):
        self.router = router
        self.parser = parser or RequestParser()
        self.server_name = server_name
        self.access_log = access_log or AccessLogger()

    # =========================================================================
    # BYTES → RESPONSE
    # =========================================================================

    def build_response(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPResponse:
        """
        Parse raw request bytes, dispatch, and return the final response.

        Never raises for bad input: malformed requests come back as 400
        or 413, unknown paths as 404, handler failures as 500.
        """
        try:
            request = self.parser.parse(data, client_address)
        except HTTPParseError as e:
            return self.finalize(self._parse_error_response(e))
        return self.finalize(self.dispatch(request))

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Run the handler registered for request.path.

        The handler gets a fresh 200 OK response with no headers and an
        empty body, and mutates it. A missing route gives the HTML 404.
        """
        handler = self.router.dispatch(request.path)
        if handler is None:
            return not_found()

        response = HTTPResponse()
        try:
            handler.handle(request, response)
        except Exception as e:
            logger.exception(f"Handler error for {request.method} {request.path}: {e}")
            return error_response(HTTPStatus.INTERNAL_SERVER_ERROR)

        return response

    def finalize(self, response: HTTPResponse) -> HTTPResponse:
        """
        Add the headers every response carries, unless the handler set them.

            Connection: close      one request per connection
            Server: <name>         when a server name is configured
        """
        response.headers.setdefault("Connection", "close")
        if self.server_name:
            response.headers.setdefault("Server", self.server_name)
        return response

    def serialize(self, response: HTTPResponse) -> tuple[HTTPResponse, bytes]:
        """
        Turn a finalized response into wire bytes.

        A handler can leave a response that cannot be serialized (a str
        body, a header value outside Latin-1). That is a handler failure
        like any other, so it is answered with 500.

        Returns:
            (response actually sent, its bytes)
        """
        try:
            return response, response.to_bytes()
        except (TypeError, UnicodeEncodeError, ValueError) as e:
            logger.exception(f"Unserializable response: {e}")
            fallback = self.finalize(error_response(HTTPStatus.INTERNAL_SERVER_ERROR))
            return fallback, fallback.to_bytes()

    @staticmethod
    def _parse_error_response(error: HTTPParseError) -> HTTPResponse:
        try:
            status = HTTPStatus(error.status_code)
        except ValueError:
            status = HTTPStatus.BAD_REQUEST
        return error_response(status, str(error))

    # =========================================================================
    # CONNECTION LIFECYCLE
    # =========================================================================

    def process(self, conn: Connection) -> None:
        """
        Handle one connection to completion (runs in a worker thread).

        The connection is closed on every path out of this method.
        """
        start_time = time.time()
        request: Optional[HTTPRequest] = None

        with conn:
            try:
                try:
                    data = conn.read_request()
                except TimeoutError as e:
                    logger.debug(f"[{conn.id}] {e}")
                    response = error_response(HTTPStatus.REQUEST_TIMEOUT)
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] {e}")
                    response = self._parse_error_response(e)
                else:
                    if data is None:
                        logger.debug(f"[{conn.id}] Client closed without sending a request")
                        return

                    try:
                        request = self.parser.parse(data, conn.address)
                    except HTTPParseError as e:
                        logger.debug(f"[{conn.id}] Bad request: {e}")
                        conn.state = ConnectionState.PARSED
                        response = self._parse_error_response(e)
                    else:
                        conn.state = ConnectionState.PARSED
                        response = self.dispatch(request)
                        conn.state = ConnectionState.DISPATCHED

                response, payload = self.serialize(self.finalize(response))
                if conn.send_response(payload):
                    self.access_log.log(conn.id, conn.client_ip, request, response, start_time)

            except Exception as e:
                # Transport failure mid-exchange; abandon the connection
                logger.exception(f"[{conn.id}] Connection error: {e}")

    def send_error(self, conn: Connection, status: HTTPStatus, detail: Optional[str] = None) -> None:
        """
        Answer with an error page and close, without reading the request.

        Used by the server to turn away connections it has no worker for.
        """
        start_time = time.time()
        with conn:
            response = self.finalize(error_response(status, detail))
            if conn.send_response(response.to_bytes()):
                self.access_log.log(conn.id, conn.client_ip, None, response, start_time)
