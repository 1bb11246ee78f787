"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The status codes dirserve can produce, with their reason phrases.

    ┌────────────────────────────────────────────────────────────────────┐
    │                    STATUS CODES USED BY DIRSERVE                   │
    ├────────┬───────────────────────────────────────────────────────────┤
    │  200   │ File body, listing, or CORS preflight answer             │
    │  302   │ Directory requested without its trailing slash           │
    │  304   │ If-Modified-Since is not older than the file             │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  400   │ Malformed request line (transport)                       │
    │  401   │ Basic auth credential missing or wrong                   │
    │  403   │ Rejected/undecodable path, or not a regular file         │
    │  404   │ Missing, hidden, excluded, or symlinked entry            │
    │  405   │ Any method other than GET                                │
    │  408   │ Client too slow to send its request (transport)          │
    │  413   │ Request head over the size limit (transport)             │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  500   │ Unexpected I/O fault or handler exception                │
    │  503   │ Worker pool saturated (transport)                        │
    │  505   │ HTTP version other than 1.0/1.1 (transport)              │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200

    # 3xx REDIRECTION
    FOUND = 302
    NOT_MODIFIED = 304

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── phrase
                      └───────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def allows_body(self) -> bool:
        """304 responses must not carry a message body (RFC 7230 3.3.3)."""
        return self != HTTPStatus.NOT_MODIFIED

    @property
    def is_server_error(self) -> bool:
        """Check if this is a 5xx status code."""
        return 500 <= self < 600


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
