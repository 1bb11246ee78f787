"""
Filesystem entity classification.

Turns a SafePath into one of NotFound, Forbidden, File or Directory. This is
the only place File and Directory values are created, and it only accepts
paths that went through the resolver.
"""

import os
import stat
from dataclasses import dataclass
from typing import Union

from .paths import SafePath


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Forbidden:
    """Exists but must not be served: a device, socket, FIFO or unreadable path."""

    is_hidden: bool = False
    is_symlink: bool = False


@dataclass(frozen=True)
class File:
    path: str
    size: int
    mtime: int
    is_hidden: bool = False
    is_symlink: bool = False


@dataclass(frozen=True)
class Directory:
    path: str
    is_hidden: bool = False
    is_symlink: bool = False


Entity = Union[NotFound, Forbidden, File, Directory]

NOT_FOUND = NotFound()


def is_hidden(name: str, st: os.stat_result) -> bool:
    """Dot-files everywhere, plus the hidden attribute on Windows."""
    attributes = getattr(st, "st_file_attributes", 0)
    return name.startswith(".") or bool(attributes & stat.FILE_ATTRIBUTE_HIDDEN)


def classify(safe_path: SafePath, root: str) -> Entity:
    """
    Classify a resolved path.

    ``is_symlink`` is true when the entry itself is a link or when any
    directory between the root and the entry is one; either way the
    canonical location differs from the requested one.

    Args:
        safe_path: Output of ``resolve``.
        root: Canonical served root.

    Raises:
        TypeError: if given anything but a SafePath.
        OSError: unexpected I/O failures (not missing, not permission).
    """
    if not isinstance(safe_path, SafePath):
        raise TypeError(f"classify() needs a SafePath, got {type(safe_path).__name__}")

    path = os.path.normpath(safe_path.path)

    try:
        lst = os.lstat(path)
        st = os.stat(path) if stat.S_ISLNK(lst.st_mode) else lst
    except (FileNotFoundError, NotADirectoryError):
        return NOT_FOUND  # dangling links included
    except PermissionError:
        return Forbidden()

    is_link = stat.S_ISLNK(lst.st_mode) or os.path.realpath(path) != path
    hidden = path != root and is_hidden(os.path.basename(path), lst)

    if stat.S_ISDIR(st.st_mode):
        return Directory(path, is_hidden=hidden, is_symlink=is_link)
    if stat.S_ISREG(st.st_mode):
        return File(path, st.st_size, int(st.st_mtime), is_hidden=hidden, is_symlink=is_link)
    return Forbidden(is_hidden=hidden, is_symlink=is_link)
