"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket: buffered request reads, keep-alive timeouts and
the three ways a body leaves the server.

=============================================================================
READING A REQUEST
=============================================================================

    1. recv() into a buffer until "\\r\\n\\r\\n" (end of headers)
    2. read Content-Length from the raw header block
    3. recv() until the body is complete
    4. hand back exactly one request; extra bytes stay buffered for the
       next request on a keep-alive connection

The first request on a connection gets ``timeout`` seconds; subsequent
ones get the shorter ``keep_alive_timeout``. A keep-alive connection that
goes quiet is closed without an error.

=============================================================================
WRITING A BODY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   send_bytes(data)         sendall() of an in-memory body          │
    │                                                                      │
    │   send_file(path)          socket.sendfile(): the kernel copies    │
    │                            file pages straight to the socket        │
    │                                                                      │
    │   send_gzip_file(path,     file → zlib (gzip wrapper) → socket,    │
    │                  chunked)  one buffer at a time. With chunked=True │
    │                            each piece is framed as                  │
    │                                                                      │
    │                                1a\\r\\n<26 bytes>\\r\\n               │
    │                                ...                                  │
    │                                0\\r\\n\\r\\n                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► WRITING ────────┐
     │             │                │            ▼
     │             │                │       KEEP_ALIVE ──► READING ...
     │             ▼                │
     └──────────► CLOSING ◄─────────┘
                    │
                    ▼
                  CLOSED

=============================================================================
"""

import logging
import socket
import time
import uuid
import zlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


logger = logging.getLogger(__name__)


# wbits=31: deflate with a gzip header and trailer
GZIP_WBITS = 16 + zlib.MAX_WBITS


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier for log lines.
        requests_handled: Number of requests read on this connection.
    """

    socket: socket.socket
    address: Tuple[str, int]
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    # ─── READING ──────────────────────────────────────────────────────────

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The request bytes, or None if the client went away (or a
            keep-alive connection timed out).

        Raises:
            TimeoutError: If the first request does not arrive in time.
            ValueError: If the request exceeds ``max_request_size``.
        """
        self.state = ConnectionState.READING

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 or not self._buffer:
                logger.debug("[%s] Idle timeout", self.id)
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """
        Content-Length from a raw header block, 0 when absent or malformed.

        The full parse happens later; this only tells the reader how many
        body bytes belong to this request.
        """
        for line in headers.decode("latin-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    # ─── WRITING ──────────────────────────────────────────────────────────

    def send_bytes(self, data: bytes) -> None:
        """
        Send bytes with sendall().

        Raises:
            OSError: If the peer went away.
        """
        self.state = ConnectionState.WRITING
        self.socket.sendall(data)

    def send_file(self, path: str, size: int) -> None:
        """
        Send the first ``size`` bytes of a file.

        Raises:
            OSError: If the file cannot be opened or the peer went away.
        """
        self.state = ConnectionState.WRITING
        with open(path, "rb") as f:
            self.socket.sendfile(f, 0, size)

    def send_gzip_file(self, path: str, chunked: bool, level: int = 6) -> None:
        """
        Stream a file through gzip.

        Args:
            path: File to send.
            chunked: Frame the output with chunked transfer coding. Without
                     it the body is delimited by closing the connection.
            level: zlib compression level.

        Raises:
            OSError: If the file cannot be opened or the peer went away.
        """
        self.state = ConnectionState.WRITING
        compressor = zlib.compressobj(level, zlib.DEFLATED, GZIP_WBITS)

        with open(path, "rb") as f:
            while True:
                block = f.read(self.buffer_size * 8)
                if not block:
                    break
                self._send_piece(compressor.compress(block), chunked)
        self._send_piece(compressor.flush(), chunked)

        if chunked:
            self.socket.sendall(b"0\r\n\r\n")

    def _send_piece(self, data: bytes, chunked: bool) -> None:
        if not data:
            return
        if chunked:
            self.socket.sendall(b"%x\r\n%s\r\n" % (len(data), data))
        else:
            self.socket.sendall(data)

    # ─── LIFECYCLE ────────────────────────────────────────────────────────

    def set_keep_alive(self):
        """Mark the connection as waiting for its next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def close(self):
        """
        Close the connection gracefully.

        shutdown(SHUT_WR) sends FIN so the client sees the end of a
        close-delimited body, then unread input is drained briefly before
        the socket is released.
        """
        if self.state is ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug("[%s] Connection closed after %d requests", self.id, self.requests_handled)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
