"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Exceptions raised inside dirserve. Every request-time error is turned into
an HTTP response by the stage that raised it; none of them reach the
transport.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        EXCEPTION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   DirserveError                                                     │
    │     ├── ConfigError          bad startup configuration (exit 1)     │
    │     └── ClientPathError      request path unusable (403)            │
    │           ├── DecodeError    malformed percent-encoding             │
    │           └── PathRejected   traversal / injection shape            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Transport-level parse errors live next to the parser
(``dirserve.http.request.HTTPParseError``).

=============================================================================
"""

from .http.status_codes import HTTPStatus


class DirserveError(Exception):
    """Base class for all dirserve errors."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR


class ConfigError(DirserveError, ValueError):
    """
    Raised when the server configuration is invalid.

    Also a ValueError.
    """


class ClientPathError(DirserveError):
    """
    The request path cannot be mapped onto the served directory.

    Both subclasses are answered with 403 Forbidden. A rejected path never
    touches the disk.
    """

    status = HTTPStatus.FORBIDDEN

    def __init__(self, message: str, raw_path: str = ""):
        super().__init__(message)
        self.raw_path = raw_path


class DecodeError(ClientPathError):
    """Percent-encoding is malformed or does not decode as UTF-8."""


class PathRejected(ClientPathError):
    """The decoded path has a traversal or markup-injection shape."""
