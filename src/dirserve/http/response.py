"""
=============================================================================
HTTP RESPONSE MODEL
=============================================================================

Responses built by the file handler and decorated by middleware.

=============================================================================
RESPONSE BODIES
=============================================================================

A response body is one of three shapes:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          BODY VARIANTS                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   None          errors, redirects, 304, CORS preflight              │
    │                                                                      │
    │   BytesBody     directory listings (small, rendered in memory)     │
    │                                                                      │
    │   FileBody      a reference to a file on disk: path, size, mtime.  │
    │                 The bytes are never read by the pipeline; the      │
    │                 transport streams them with socket.sendfile().     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Middleware looks at the body type to decide whether it applies: the cache
and MIME stages only touch 200 responses with a FileBody.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from .status_codes import HTTPStatus


@dataclass(frozen=True)
class BytesBody:
    """An in-memory body."""

    data: bytes

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class FileBody:
    """
    A body backed by a regular file.

    Attributes:
        path:  Absolute path, already vetted by the path resolver.
        size:  File size in bytes at classification time.
        mtime: Last modification time, whole seconds since the epoch.
    """

    path: str
    size: int
    mtime: int

    def __len__(self) -> int:
        return self.size


Body = Union[BytesBody, FileBody, None]


# Every error answer tells the transport to hang up after flushing.
ERROR_HEADERS = {
    "Content-Type": "text/plain; charset=UTF-8",
    "Connection": "close",
}


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response on its way back through the pipeline.

    Header names are stored as given; ``get_header`` and ``has_header``
    compare case-insensitively so stages don't depend on each other's
    capitalization.

    Attributes:
        status:   Status code.
        headers:  Header name -> value.
        body:     None, BytesBody or FileBody.
        compress: Set by the compression stage; the transport gzips the
                  body on the way out when true.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: Body = None
    compress: bool = False
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {HTTPStatus(self.status).phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, replacing any existing one regardless of case."""
        self.remove_header(name)
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        key = name.lower()
        for existing, value in self.headers.items():
            if existing.lower() == key:
                return value
        return default

    def has_header(self, name: str) -> bool:
        return self.get_header(name) is not None

    def remove_header(self, name: str) -> None:
        key = name.lower()
        for existing in [k for k in self.headers if k.lower() == key]:
            del self.headers[existing]

    @property
    def closes_connection(self) -> bool:
        return (self.get_header("Connection") or "").lower() == "close"

    def serialize_head(self) -> bytes:
        """
        Serialize the status line and headers.

            HTTP/1.1 200 OK\\r\\n
            Content-Type: text/plain; charset=UTF-8\\r\\n
            Content-Length: 17\\r\\n
            \\r\\n

        The body is written separately by the transport.
        """
        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in self.headers.items())
        lines.append("")
        return ("\r\n".join(lines) + "\r\n").encode("utf-8")


# =============================================================================
# FACTORIES
# =============================================================================
#
# One function per response shape the file handler produces.
#
# =============================================================================

def file_response(path: str, size: int, mtime: int) -> HTTPResponse:
    """200 OK referencing a file. Content-Type is added later, by MIME stage."""
    return HTTPResponse(HTTPStatus.OK, body=FileBody(path, size, mtime))


def text_response(text: str, content_type: str) -> HTTPResponse:
    """200 OK with an in-memory UTF-8 body."""
    return HTTPResponse(
        HTTPStatus.OK,
        headers={"Content-Type": content_type},
        body=BytesBody(text.encode("utf-8")),
    )


def redirect(location: str) -> HTTPResponse:
    """302 Found with a Location header and no body."""
    return HTTPResponse(HTTPStatus.FOUND, headers={"Location": location})


def not_modified() -> HTTPResponse:
    """304 Not Modified, no headers of its own and no body."""
    return HTTPResponse(HTTPStatus.NOT_MODIFIED)


def error_response(status: HTTPStatus, headers: Optional[Dict[str, str]] = None) -> HTTPResponse:
    """
    An empty error response.

    Args:
        status: 401, 403, 404, 405, 500...
        headers: Extra headers merged over ERROR_HEADERS
                 (WWW-Authenticate for 401, for example).
    """
    merged = dict(ERROR_HEADERS)
    if headers:
        merged.update(headers)
    return HTTPResponse(status, headers=merged)


# =============================================================================
# HTTP DATES
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231 IMF-fixdate).

    Example: Wed, 01 Jan 2026 12:00:00 GMT

    Args:
        dt: Datetime in UTC.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def http_date(timestamp: float) -> str:
    """HTTP-date for a POSIX timestamp."""
    return format_http_date(datetime.fromtimestamp(timestamp, tz=timezone.utc))
