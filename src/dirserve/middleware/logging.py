"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Writes one line per request to the ``dirserve.access`` logger.

=============================================================================
LOG FORMATS
=============================================================================

    text:   127.0.0.1 "GET /foo.txt" 200 4 (0.31ms)

    json:   {"method": "GET", "path": "/foo.txt", "status": 200,
             "content_length": "4", "client_ip": "127.0.0.1",
             "duration_ms": 0.31}

The path is logged as received, before percent-decoding, so a rejected
traversal attempt shows up exactly as the client sent it.

5xx answers go out at WARNING, everything else at INFO. The access logger
can be routed separately from the application loggers:

    logging.getLogger("dirserve.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
import time
from dataclasses import asdict, dataclass

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


logger = logging.getLogger("dirserve.access")


@dataclass
class RequestLog:
    """
    Structured log entry for a request.

    Attributes:
        method:         Request method
        path:           Raw request path
        status:         Response status code
        content_length: The Content-Length header, or "-" when absent
        client_ip:      Peer address
        duration_ms:    Time spent inside the pipeline
    """

    method: str
    path: str
    status: int
    content_length: str
    client_ip: str
    duration_ms: float

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} "{self.method} {self.path}" {self.status} '
            f'{self.content_length} ({self.duration_ms:.2f}ms)'
        )


class AccessLogMiddleware(Middleware):
    """
    Request logging middleware.

    Goes first in the pipeline so that requests refused by CORS or auth
    are logged too, and so the timing covers every stage.

    Usage:
        pipeline.add(AccessLogMiddleware(log_format="json"))
    """

    def __init__(self, log_format: str = "text"):
        """
        Args:
            log_format: "text" (one human readable line) or "json".
        """
        self.log_format = log_format

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed: %s %s - %s: %s (%.2fms)",
                request.method, request.path, type(e).__name__, e, duration_ms,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        entry = RequestLog(
            method=request.method,
            path=request.path,
            status=int(response.status),
            content_length=response.get_header("Content-Length", "-"),
            client_ip=request.client_address[0] or "-",
            duration_ms=duration_ms,
        )

        level = logging.WARNING if HTTPStatus(response.status).is_server_error else logging.INFO
        if self.log_format == "json":
            logger.log(level, json.dumps(entry.to_dict()))
        else:
            logger.log(level, entry.to_text())

        return response
