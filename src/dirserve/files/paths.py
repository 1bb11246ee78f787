"""
=============================================================================
PATH RESOLVER
=============================================================================

Maps a raw request path onto a candidate path under the served root, or
refuses to.

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /%2e%2e/%2e%2e/etc/passwd HTTP/1.1                            │
    │                                                                      │
    │  1. percent-decode (strict UTF-8)   → /../../etc/passwd            │
    │  2. shape check on the STRING       → contains "/." → REJECTED     │
    │                                                                      │
    │  The filesystem is never consulted for a rejected path, so there   │
    │  is nothing to race and nothing to leak through timing.            │
    └─────────────────────────────────────────────────────────────────────┘

A path is rejected when, after decoding, it

    - is empty or does not start with "/"
    - starts with ".." or ends with "."
    - contains "<sep>." or ".<sep>" (covers "..", "./" and dot-files)
    - contains any of  <  >  &  "   (markup/header injection)
    - contains a NUL byte (cannot name a file on any OS)

Accepted paths are only concatenated with the root. No canonicalization
happens here: symlinks are the entity classifier's business, where the
follow-symlinks policy is applied explicitly.

=============================================================================
DECODING
=============================================================================

Decoding is strict: "%zz", a lone "%" or bytes that are not UTF-8 raise
DecodeError rather than being passed through or replaced. "+" stays a
literal plus sign; form encoding does not apply to paths.

=============================================================================
"""

import os
import re
from dataclasses import dataclass
from urllib.parse import unquote_to_bytes

from ..errors import DecodeError, PathRejected


INSECURE_URI = re.compile(r'.*[<>&"].*', re.DOTALL)

# Names embedded into HTML listings must match this in full.
ALLOWED_FILE_NAME = re.compile(r'[^-\\._]?[^<>&\\"]*')

BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class SafePath:
    """
    A candidate path that passed the resolver.

    Attributes:
        path: Served root + decoded request path, OS separators.
        uri:  The decoded request path, "/" separators.
    """

    path: str
    uri: str


def decode_path(raw_path: str) -> str:
    """
    Percent-decode a request path as UTF-8.

    Raises:
        DecodeError: on a malformed escape or invalid UTF-8.
    """
    if BAD_ESCAPE.search(raw_path):
        raise DecodeError(f"Malformed percent-escape in {raw_path!r}", raw_path)
    try:
        return unquote_to_bytes(raw_path).decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Path is not valid UTF-8: {e}", raw_path) from e


def is_secure_path(path: str, sep: str = os.sep) -> bool:
    """
    Shape check on a decoded, separator-normalized path.

        >>> is_secure_path("/docs/readme.txt", "/")
        True
        >>> is_secure_path("/docs/../secret", "/")
        False
        >>> is_secure_path("/<script>", "/")
        False
    """
    return (
        sep + "." not in path
        and "." + sep not in path
        and not path.startswith("..")
        and not path.endswith(".")
        and "\x00" not in path
        and INSECURE_URI.fullmatch(path) is None
    )


def is_allowed_file_name(name: str) -> bool:
    """Whether a file name may be embedded in an HTML listing."""
    return ALLOWED_FILE_NAME.fullmatch(name) is not None


def resolve(root: str, raw_path: str) -> SafePath:
    """
    Resolve a raw request path against the served root.

    Args:
        root: Absolute, canonical served directory.
        raw_path: Request path as received (percent-encoded, no query).

    Returns:
        SafePath under ``root``.

    Raises:
        DecodeError: if the path does not decode.
        PathRejected: if the decoded path fails the shape check.
    """
    uri = decode_path(raw_path)

    if not uri.strip() or not uri.startswith("/"):
        raise PathRejected(f"Path must be absolute: {uri!r}", raw_path)

    native = uri.replace("/", os.sep)
    if not is_secure_path(native):
        raise PathRejected(f"Insecure path: {uri!r}", raw_path)

    return SafePath(path=root.rstrip(os.sep) + native, uri=uri)
