"""
=============================================================================
HTTP TRANSPORT
=============================================================================

Hosts a request handler (normally ``pipeline.build_handler(config)``) on a
TCP socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    accept thread             worker threads                         │
    │    ┌──────────────┐          ┌──────────────────────────────────┐   │
    │    │ SocketServer │──conn───►│ ThreadPool                        │   │
    │    │  accept()    │          │   read request                    │   │
    │    └──────────────┘          │   parse          (RequestParser)  │   │
    │                              │   handler(request)  ← pipeline    │   │
    │                              │   write head + body               │   │
    │                              │   keep-alive? loop : close        │   │
    │                              └──────────────────────────────────┘   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ON THE WIRE
=============================================================================

The pipeline decides status, headers and body. This module adds only what
depends on the connection:

    Date                 always
    Connection           "close" when either side asks for it, otherwise
    Keep-Alive           "keep-alive" with the idle timeout
    Content-Length: 0    body-less answers whose status allows a body
    Transfer-Encoding    "chunked" for a file gzipped on the fly (HTTP/1.1);
                         HTTP/1.0 clients get a close-delimited body instead

Errors before the pipeline runs are answered here:

    unparsable request        400 / 405 / 413 / 505 (from HTTPParseError)
    request over size limit   413
    first request too slow    408
    worker queue full         503
    handler raised            500

=============================================================================
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .config import ServerConfig
from .core.connection import Connection
from .core.socket_server import SocketServer
from .core.thread_pool import ThreadPool
from .http.request import HTTPParseError, HTTPRequest, RequestParser
from .http.response import BytesBody, FileBody, HTTPResponse, error_response, http_date
from .http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class ServerHandle:
    """
    A running server.

    Attributes:
        host: Bound address.
        port: Bound port (the real one when port 0 was requested).
    """

    host: str
    port: int
    _socket_server: SocketServer = field(repr=False)
    _pool: ThreadPool = field(repr=False)
    _accept_thread: threading.Thread = field(repr=False)
    _stopping: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def url(self) -> str:
        host = "127.0.0.1" if self.host in ("0.0.0.0", "") else self.host
        return f"http://{host}:{self.port}"

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the server stops.

        Returns:
            True if it stopped, False on timeout.
        """
        return self._socket_server.wait_for_shutdown(timeout)


def start_server(handler: Handler, config: ServerConfig) -> ServerHandle:
    """
    Bind, start workers and start accepting in a background thread.

    Args:
        handler: Request handler, shared by all workers.
        config: Host, port, timeouts and worker counts.

    Returns:
        A handle for ``stop_server``.

    Raises:
        OSError: If the address cannot be bound.
    """
    socket_server = SocketServer(config)
    host, port = socket_server.bind()

    pool = ThreadPool(min_workers=config.min_workers, max_workers=config.max_workers)
    pool.start()

    stopping = threading.Event()
    connections = _ConnectionHandler(handler, config, pool, stopping)

    accept_thread = threading.Thread(
        target=socket_server.serve,
        args=(connections.submit,),
        name="dirserve-accept",
        daemon=True,
    )
    accept_thread.start()

    return ServerHandle(
        host=host,
        port=port,
        _socket_server=socket_server,
        _pool=pool,
        _accept_thread=accept_thread,
        _stopping=stopping,
    )


def stop_server(handle: ServerHandle, timeout: float = 10.0) -> None:
    """
    Stop accepting, let in-flight requests finish, release the socket.

    Safe to call more than once.
    """
    handle._stopping.set()
    handle._socket_server.shutdown()
    handle._accept_thread.join(timeout)
    handle._pool.shutdown(wait=True, timeout=timeout)
    logger.info("Server stopped")


class _ConnectionHandler:
    """Per-connection request loop, run on pool workers."""

    def __init__(self, handler: Handler, config: ServerConfig, pool: ThreadPool, stopping: threading.Event):
        self.handler = handler
        self.config = config
        self.pool = pool
        self.stopping = stopping
        self.parser = RequestParser(max_request_size=config.max_request_size)

    def submit(self, conn: Connection) -> None:
        """Called on the accept thread for each new connection."""
        try:
            submitted = self.pool.submit(self.process, args=(conn,), block=False)
        except RuntimeError:
            submitted = False

        if not submitted:
            logger.warning("[%s] Worker queue full, rejecting connection", conn.id)
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def process(self, conn: Connection) -> None:
        with conn:
            while not self.stopping.is_set():
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except ValueError:
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                    break

                if raw_request is None:
                    break

                try:
                    request = self.parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.debug("[%s] Bad request: %s", conn.id, e)
                    self._send_error(conn, HTTPStatus(e.status_code))
                    break

                try:
                    response = self.handler(request)
                except Exception:
                    logger.exception("[%s] Handler error on %s %s", conn.id, request.method, request.path)
                    response = error_response(HTTPStatus.INTERNAL_SERVER_ERROR)

                keep_alive = self._prepare(request, response)

                try:
                    self._send(conn, request, response)
                except OSError as e:
                    logger.debug("[%s] Send failed: %s", conn.id, e)
                    break

                if not keep_alive:
                    break
                conn.set_keep_alive()

    # ─── RESPONSE FINISHING ───────────────────────────────────────────────

    def _prepare(self, request: HTTPRequest, response: HTTPResponse) -> bool:
        """
        Add the connection-level headers.

        Returns:
            Whether the connection stays open afterwards.
        """
        if not response.has_header("Date"):
            response.set_header("Date", http_date(time.time()))

        streams_gzip = response.compress and isinstance(response.body, FileBody)
        if streams_gzip:
            response.remove_header("Content-Length")
            if request.version == "HTTP/1.1":
                response.set_header("Transfer-Encoding", "chunked")
            else:
                response.set_header("Connection", "close")
        elif response.body is None and HTTPStatus(response.status).allows_body:
            response.headers.setdefault("Content-Length", "0")

        keep_alive = (
            request.is_keep_alive
            and not response.closes_connection
            and not self.stopping.is_set()
        )
        if keep_alive:
            response.set_header("Connection", "keep-alive")
            response.set_header("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            response.set_header("Connection", "close")
        return keep_alive

    def _send(self, conn: Connection, request: HTTPRequest, response: HTTPResponse) -> None:
        conn.send_bytes(response.serialize_head())

        body = response.body
        if isinstance(body, BytesBody):
            conn.send_bytes(body.data)
        elif isinstance(body, FileBody):
            if response.compress:
                conn.send_gzip_file(body.path, chunked=request.version == "HTTP/1.1")
            else:
                conn.send_file(body.path, body.size)

    def _send_error(self, conn: Connection, status: HTTPStatus) -> None:
        response = error_response(status)
        response.set_header("Date", http_date(time.time()))
        response.set_header("Content-Length", "0")
        try:
            conn.send_bytes(response.serialize_head())
        except OSError as e:
            logger.debug("[%s] Could not send %d: %s", conn.id, int(status), e)
