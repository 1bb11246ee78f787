"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses a raw HTTP/1.x request head into an HTTPRequest.

=============================================================================
WHAT THE PARSER DOES NOT DO
=============================================================================

The request target is kept exactly as the client sent it, still
percent-encoded. Decoding belongs to the path resolver, which must see the
raw bytes to reject malformed escapes and traversal attempts. A parser
that "helpfully" unquotes here would turn ``/%2e%2e/secret`` into
``/../secret`` before anyone had a chance to refuse it.

    GET /docs/My%20File.txt?download=1 HTTP/1.1
        ─────────┬───────── ────┬─────
                 │              │
          path (raw)      query (raw)

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from .negotiation import AcceptEntry, parse_accept


class HTTPParseError(Exception):
    """
    Raised when a request head cannot be parsed.

    Carries the status code the transport answers with:

        400 Bad Request                 - malformed request line
        405 Method Not Allowed          - unknown method token
        413 Payload Too Large           - head over the size limit
        505 HTTP Version Not Supported  - anything but HTTP/1.0 and 1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Headers are stored with lowercase names; ``get_header`` lowercases the
    name it is given, which makes lookups case-insensitive.

    Attributes:
        method:         Request method token ("GET", "OPTIONS", ...).
        path:           Raw, percent-encoded path without the query string.
        query:          Raw query string, "" when absent.
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Lowercase header name -> value.
        body:           Request body bytes (normally empty).
        client_address: (ip, port) of the peer, for logging.
    """

    method: str
    path: str
    query: str = ""
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)

    # Parsed on first access.
    _accept: Optional[List[AcceptEntry]] = field(default=None, repr=False, compare=False)

    @property
    def accept(self) -> List[AcceptEntry]:
        """Entries of the Accept header, in the order the client sent them."""
        if self._accept is None:
            self._accept = parse_accept(self.headers.get("accept"))
        return self._accept

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

        HTTP/1.1 keeps alive unless told ``Connection: close``;
        HTTP/1.0 closes unless told ``Connection: keep-alive``.
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$
        METHOD SP REQUEST-TARGET SP HTTP-VERSION

    HEADER_PATTERN: ^([^:]+):\\s*(.*)$
        field-name ":" OWS field-value
    """

    VALID_METHODS = {
        "GET", "HEAD", "POST", "PUT", "DELETE",
        "PATCH", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 64 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse one request.

        Args:
            data: Request head plus any body, as read by the connection.
            client_address: Peer address, copied onto the request.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        head = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = head.split("\r\n")
        method, path, query, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", "0"))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length")

        return HTTPRequest(
            method=method,
            path=path,
            query=query,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        if target.startswith("/"):
            # origin-form
            target = target.split("#", 1)[0]
            path, _, query = target.partition("?")
        else:
            # absolute-form (proxies) or asterisk-form; keep only the path
            parts = urlsplit(target)
            path, query = parts.path or "/", parts.query

        return method, path, query, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """
        Parse header lines; names lowercased, repeated headers comma-joined.

        Obsolete line folding (continuation lines starting with whitespace)
        is appended to the previous header.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
