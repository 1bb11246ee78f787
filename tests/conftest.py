"""
pytest configuration and fixtures.
"""

import os
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dirserve.config import ServerConfig
from dirserve.http.request import HTTPRequest


# Fixed modification time for files in the served tree:
# Sun, 01 Mar 2026 12:00:00 GMT
FIXED_MTIME = 1772366400


@pytest.fixture
def served_tree(tmp_path: Path) -> Path:
    """
    A small directory tree to serve:

        root/
        ├── bar.html
        ├── foo.txt          "foo\\n"
        ├── .secret
        └── docs/
            ├── index.html
            └── notes.md
    """
    root = tmp_path / "root"
    root.mkdir()
    (root / "bar.html").write_text("<p>bar</p>\n")
    (root / "foo.txt").write_text("foo\n")
    (root / ".secret").write_text("hidden\n")
    docs = root / "docs"
    docs.mkdir()
    (docs / "index.html").write_text("<h1>docs</h1>\n")
    (docs / "notes.md").write_text("# notes\n")

    for path in (root / "bar.html", root / "foo.txt", root / ".secret",
                 docs / "index.html", docs / "notes.md"):
        os.utime(path, (FIXED_MTIME, FIXED_MTIME))

    return root


@pytest.fixture
def fixed_mtime() -> int:
    """Modification time of every file in ``served_tree``."""
    return FIXED_MTIME


@pytest.fixture
def config(served_tree: Path) -> ServerConfig:
    """Default configuration serving ``served_tree``."""
    return ServerConfig(
        root=str(served_tree),
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=0.5,
        log_level="WARNING",
    )


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Factory for GET requests with lowercase header names."""

    def _make(
        path: str = "/",
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        version: str = "HTTP/1.1",
    ) -> HTTPRequest:
        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            client_address=("127.0.0.1", 54321),
        )

    return _make
