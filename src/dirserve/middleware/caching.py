"""
=============================================================================
CONDITIONAL GET MIDDLEWARE
=============================================================================

Browser cache revalidation with Last-Modified / If-Modified-Since.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   first request          GET /app.js                                 │
    │                          ◄── 200 OK                                  │
    │                              Cache-Control: private, max-age=60     │
    │                              Last-Modified: Tue, 06 Oct 2026 ...    │
    │                                                                      │
    │   within 60s             (served from the browser cache)            │
    │                                                                      │
    │   after 60s              GET /app.js                                 │
    │                          If-Modified-Since: Tue, 06 Oct 2026 ...    │
    │                          ◄── 304 Not Modified    (file unchanged)   │
    │                          ◄── 200 OK + headers    (file changed)     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Only 200 responses carrying a file are considered. Listings change whenever
the directory does and have no single modification time, so they are never
cached.

Comparison is at whole-second precision, the resolution of an HTTP-date.
A date that does not parse is treated as absent.

=============================================================================
"""

from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from ..http.request import HTTPRequest
from ..http.response import FileBody, HTTPResponse, http_date, not_modified
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


CACHE_CONTROL = "private, max-age=60"


def parse_http_date(value: Optional[str]) -> Optional[int]:
    """
    Parse an HTTP-date into whole seconds since the epoch.

        >>> parse_http_date("Thu, 01 Jan 1970 00:01:00 GMT")
        60
        >>> parse_http_date("yesterday") is None
        True

    Returns:
        The timestamp, or None when the value is missing or malformed.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


class ConditionalGetMiddleware(Middleware):
    """Answers 304 for unchanged files and adds cache headers otherwise."""

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        response = next(request)

        if response.status != HTTPStatus.OK or not isinstance(response.body, FileBody):
            return response

        mtime = response.body.mtime
        since = parse_http_date(request.get_header("if-modified-since"))

        if since is not None and mtime <= since:
            return not_modified()

        response.set_header("Cache-Control", CACHE_CONTROL)
        response.set_header("Last-Modified", http_date(mtime))
        return response
