"""
Filesystem side of the server.

    paths.py     request path  → SafePath (or refusal)
    entities.py  SafePath      → NotFound | Forbidden | File | Directory
    listing.py   Directory     → sorted names → text/plain or text/html
    handler.py   the GET state machine tying the three together
"""

from .entities import Directory, Entity, File, Forbidden, NotFound, classify
from .handler import FileHandler
from .listing import GlobMatcher, ListingPolicy, list_directory, render
from .paths import SafePath, decode_path, is_secure_path, resolve

__all__ = [
    "Directory",
    "Entity",
    "File",
    "FileHandler",
    "Forbidden",
    "GlobMatcher",
    "ListingPolicy",
    "NotFound",
    "SafePath",
    "classify",
    "decode_path",
    "is_secure_path",
    "list_directory",
    "render",
    "resolve",
]
