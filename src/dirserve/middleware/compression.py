"""
=============================================================================
COMPRESSION MIDDLEWARE
=============================================================================

gzip Content-Encoding for text responses.

=============================================================================
TWO BODY SHAPES, TWO STRATEGIES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   BytesBody (listings)                                              │
    │       compressed here, in memory, with gzip.compress()              │
    │       kept only if the result is actually smaller                   │
    │       Content-Length is then set by the length stage as usual       │
    │                                                                      │
    │   FileBody (files on disk)                                          │
    │       not read here; response.compress is set and the transport    │
    │       streams the file through zlib in chunks                       │
    │       sent with Transfer-Encoding: chunked (HTTP/1.1)              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A response is compressed when all of these hold:

    - the client lists gzip in Accept-Encoding
    - status is 200 and there is a body
    - no Content-Encoding is set yet
    - the body is at least ``min_size`` bytes
    - the base Content-Type is text-like (see COMPRESSIBLE_TYPES)

Every compressed response gets ``Vary: Accept-Encoding`` so shared caches
keep the two variants apart.

=============================================================================
"""

import gzip
from typing import Optional, Set

from ..http.request import HTTPRequest
from ..http.response import BytesBody, FileBody, HTTPResponse
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


class CompressionMiddleware(Middleware):
    """
    Response compression middleware.

    Runs outside the MIME stage, so by the time it sees a response the
    Content-Type is known.

    Usage:
        pipeline.add(CompressionMiddleware(min_size=256, level=9))
    """

    # Binary formats (images, archives, PDF) are already compressed.
    COMPRESSIBLE_TYPES: Set[str] = {
        "text/html",
        "text/css",
        "text/plain",
        "text/xml",
        "text/javascript",
        "text/markdown",
        "text/csv",
        "application/json",
        "application/javascript",
        "application/xml",
        "application/xhtml+xml",
        "image/svg+xml",
    }

    def __init__(
        self,
        min_size: int = 256,
        level: int = 6,
        compressible_types: Optional[Set[str]] = None,
    ):
        """
        Args:
            min_size: Smallest body worth compressing, in bytes.
            level: gzip level, 1 (fastest) to 9 (smallest).
            compressible_types: Base content types to compress.
        """
        self.min_size = min_size
        self.level = level
        self.compressible_types = compressible_types or self.COMPRESSIBLE_TYPES

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        accepts_gzip = self._accepts_gzip(request.get_header("accept-encoding", ""))

        response = next(request)

        if not accepts_gzip or not self._should_compress(response):
            return response

        if isinstance(response.body, BytesBody):
            compressed = gzip.compress(response.body.data, compresslevel=self.level, mtime=0)
            if len(compressed) >= len(response.body.data):
                return response
            response.body = BytesBody(compressed)
        else:
            response.compress = True

        response.set_header("Content-Encoding", "gzip")
        vary = response.get_header("Vary", "")
        if "accept-encoding" not in vary.lower():
            response.set_header("Vary", f"{vary}, Accept-Encoding".lstrip(", "))
        return response

    @staticmethod
    def _accepts_gzip(accept_encoding: str) -> bool:
        """
        True if ``gzip`` is listed and not refused with q=0.

            >>> CompressionMiddleware._accepts_gzip("gzip, deflate, br")
            True
            >>> CompressionMiddleware._accepts_gzip("gzip;q=0")
            False
        """
        for item in accept_encoding.lower().split(","):
            coding, _, params = item.partition(";")
            if coding.strip() != "gzip":
                continue
            q = params.strip()
            if q.startswith("q="):
                try:
                    return float(q[2:]) > 0
                except ValueError:
                    return True
            return True
        return False

    def _should_compress(self, response: HTTPResponse) -> bool:
        if response.status != HTTPStatus.OK:
            return False
        if not isinstance(response.body, (BytesBody, FileBody)):
            return False
        if response.has_header("Content-Encoding"):
            return False
        if len(response.body) < self.min_size:
            return False

        # "text/plain; charset=UTF-8" → "text/plain"
        content_type = response.get_header("Content-Type", "")
        base_type = content_type.split(";")[0].strip().lower()
        return base_type in self.compressible_types
