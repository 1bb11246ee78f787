"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Message types shared by the transport and the pipeline.

    ┌──────────────────┬──────────────────────────────────────────────────┐
    │ request.py       │ HTTPRequest, RequestParser, HTTPParseError       │
    │ response.py      │ HTTPResponse, body variants, response factories  │
    │ negotiation.py   │ Accept header parsing, listing type choice       │
    │ status_codes.py  │ HTTPStatus enum with reason phrases              │
    │ mime_types.py    │ detect(path) -> media type or None               │
    └──────────────────┴──────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    BytesBody,
    FileBody,
    file_response,
    text_response,
    redirect,
    not_modified,
    error_response,
    format_http_date,
    http_date,
)
from .negotiation import AcceptEntry, parse_accept, preferred_listing_type
from .status_codes import HTTPStatus
from .mime_types import detect

__all__ = [
    # Request
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Response
    "HTTPResponse",
    "BytesBody",
    "FileBody",
    "file_response",
    "text_response",
    "redirect",
    "not_modified",
    "error_response",
    "format_http_date",
    "http_date",

    # Negotiation
    "AcceptEntry",
    "parse_accept",
    "preferred_listing_type",

    # Status / MIME
    "HTTPStatus",
    "detect",
]
