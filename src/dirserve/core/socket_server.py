"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    bind()            create socket, set options, bind, listen       │
    │        │             (errors like "address in use" surface here,   │
    │        │              in the caller's thread)                       │
    │        ▼                                                             │
    │    serve(handler)    accept loop; one Connection per client,       │
    │        │             handed to ``handler``                          │
    │        │                                                             │
    │    shutdown()        ask the loop to stop; it notices within one   │
    │                      accept timeout and closes the socket           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Socket options:

    SO_REUSEADDR   restart immediately without "Address already in use"
    TCP_NODELAY    no Nagle delay on small header writes

Signal handling is left to the entry point. Python only delivers signals
to the main thread, and the accept loop usually runs elsewhere.

=============================================================================
"""

import logging
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


# How often the accept loop checks for shutdown
ACCEPT_TIMEOUT = 0.5


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        server = SocketServer(config)
        host, port = server.bind()
        threading.Thread(target=server.serve, args=(handle_connection,)).start()
        ...
        server.shutdown()
        server.wait_for_shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._stopped = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the real port when 0 was requested."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return host, port
        return self.config.host, self.config.port

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(ACCEPT_TIMEOUT)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen.

        Returns:
            The bound (host, port).

        Raises:
            OSError: If the address cannot be bound.
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error("Failed to bind to %s:%s: %s", self.config.host, self.config.port, e)
            raise

        self._socket = sock
        self._running = True
        self._stopped.clear()
        logger.debug("Listening on %s:%d", *self.address)
        return self.address

    def serve(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until ``shutdown()``.

        Blocks. ``bind()`` must have been called.
        """
        if self._socket is None:
            raise RuntimeError("serve() called before bind()")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error("Accept error: %s", e)
                break

            logger.debug("Accepted connection from %s:%s", client_address[0], client_address[1])
            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Ask the accept loop to stop. Safe to call more than once."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
        self._running = False
        self._stopped.set()
        logger.debug("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the accept loop to exit.

        Returns:
            True if it exited, False on timeout.
        """
        return self._stopped.wait(timeout)
