"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Best-guess content type for a file on disk, or None when there is no
reasonable guess.

=============================================================================
DETECTION ORDER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         detect(path)                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Extension table      "report.pdf"  → application/pdf           │
    │          │ unknown extension                                        │
    │          ▼                                                          │
    │   2. Magic numbers        b"%PDF-"      → application/pdf           │
    │          │ no signature matched                                     │
    │          ▼                                                          │
    │   3. UTF-8 text sniff     decodes, no NUL → text/plain              │
    │          │ binary or unreadable                                     │
    │          ▼                                                          │
    │   4. None                 Content-Type is left out entirely         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Returning None instead of application/octet-stream lets the browser do its
own sniffing, which is what a directory browser wants for unknown files.

Text types get a ``; charset=utf-8`` parameter.

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union


# =============================================================================
# EXTENSION TABLE
# =============================================================================

MIME_TYPES = {
    # text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".json": "application/json",
    ".xml": "application/xml",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".toml": "text/x-toml",
    ".py": "text/x-python",
    ".sh": "text/x-shellscript",
    ".c": "text/x-c",
    ".h": "text/x-c",

    # images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".bmp": "image/bmp",

    # fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # audio / video
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",

    # documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
    ".7z": "application/x-7z-compressed",
    ".wasm": "application/wasm",
}


# =============================================================================
# MAGIC NUMBERS
# =============================================================================
#
# Leading-byte signatures for files whose name says nothing useful
# (no extension, or an extension missing from the table above).
#
MAGIC_NUMBERS = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
    (b"\x00asm", "application/wasm"),
)

HTML_MARKERS = (b"<!doctype html", b"<html")

SNIFF_SIZE = 512

TEXT_TYPES = {
    "application/json",
    "application/xml",
    "image/svg+xml",
}


# =============================================================================
# PUBLIC FUNCTIONS
# =============================================================================

def detect(path: Union[str, Path]) -> Optional[str]:
    """
    Return the media type of a file, or None if it cannot be determined.

    Args:
        path: Path to an existing regular file.

    Returns:
        A Content-Type value (with charset for text types) or None.

    Examples:
        >>> detect("/srv/site/index.html")
        'text/html; charset=utf-8'
        >>> detect("/srv/blob.unknownext") is None   # random bytes
        True
    """
    mime_type = MIME_TYPES.get(Path(path).suffix.lower())
    if mime_type is None:
        mime_type = sniff(path)
    if mime_type is None:
        return None
    if is_text_type(mime_type):
        return f"{mime_type}; charset=utf-8"
    return mime_type


def sniff(path: Union[str, Path]) -> Optional[str]:
    """
    Guess a media type from the first bytes of a file.

    Unreadable files yield None; the caller then omits Content-Type.
    """
    try:
        with open(path, "rb") as f:
            head = f.read(SNIFF_SIZE)
    except OSError:
        return None

    for signature, mime_type in MAGIC_NUMBERS:
        if head.startswith(signature):
            return mime_type

    lowered = head.lstrip().lower()
    if lowered.startswith(HTML_MARKERS):
        return "text/html"

    if head and _looks_like_text(head):
        return "text/plain"

    return None


def is_text_type(mime_type: str) -> bool:
    """
    Check if a MIME type represents text content.

        >>> is_text_type("text/css")
        True
        >>> is_text_type("application/json")
        True
        >>> is_text_type("image/png")
        False
    """
    base = mime_type.split(";")[0].strip().lower()
    return base.startswith("text/") or base in TEXT_TYPES


def _looks_like_text(head: bytes) -> bool:
    if b"\x00" in head:
        return False
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte sequence cut by the sniff window is still text.
        return e.reason == "unexpected end of data"
    return True
