"""
Unit tests for the file handler state machine.
"""

import os
import sys
from dataclasses import replace
from pathlib import Path

import pytest

from dirserve.config import IndexMode, ServerConfig
from dirserve.files.handler import FileHandler
from dirserve.http.response import BytesBody, FileBody
from dirserve.http.status_codes import HTTPStatus


@pytest.fixture
def handler(config: ServerConfig, served_tree: Path) -> FileHandler:
    return FileHandler(config, cwd=str(served_tree))


def make_handler(config: ServerConfig, served_tree: Path, **changes) -> FileHandler:
    return FileHandler(replace(config, **changes), cwd=str(served_tree))


class TestMethods:
    """Only GET is served."""

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD", "OPTIONS"])
    def test_other_methods_405(self, handler: FileHandler, make_request, method: str):
        response = handler(make_request("/foo.txt", method=method))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.get_header("Allow") == "GET"
        assert response.get_header("Connection") == "close"

    def test_405_even_for_missing_path(self, handler: FileHandler, make_request):
        response = handler(make_request("/does/not/exist", method="POST"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED


class TestFiles:
    """Tests for file responses."""

    def test_file(self, handler: FileHandler, make_request, served_tree: Path, fixed_mtime: int):
        response = handler(make_request("/foo.txt"))

        assert response.status == HTTPStatus.OK
        assert response.body == FileBody(
            os.path.join(os.path.realpath(served_tree), "foo.txt"), 4, fixed_mtime
        )
        # type and cache headers come from later stages
        assert response.headers == {}

    def test_missing(self, handler: FileHandler, make_request):
        response = handler(make_request("/nope.txt"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.get_header("Content-Type") == "text/plain; charset=UTF-8"

    @pytest.mark.parametrize("path", [
        "/../etc/passwd",
        "/%2e%2e/%2e%2e/etc/passwd",
        "/docs/%2E%2E/%2E%2E/x",
        "/%zz",
        "/.secret",
    ])
    def test_refused_paths_403(self, handler: FileHandler, make_request, path: str):
        assert handler(make_request(path)).status == HTTPStatus.FORBIDDEN

    def test_excluded_file_404(self, config, served_tree: Path, make_request):
        handler = make_handler(config, served_tree, excluded_globs=frozenset({"*.txt"}))

        assert handler(make_request("/foo.txt")).status == HTTPStatus.NOT_FOUND
        assert handler(make_request("/bar.html")).status == HTTPStatus.OK

    def test_excluded_ancestor_404(self, config, served_tree: Path, make_request):
        handler = make_handler(config, served_tree, excluded_globs=frozenset({"docs"}))

        assert handler(make_request("/docs/notes.md")).status == HTTPStatus.NOT_FOUND

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX symlinks")
    def test_symlink_policy(self, config, served_tree: Path, make_request):
        os.symlink(served_tree / "foo.txt", served_tree / "link.txt")

        plain = make_handler(config, served_tree)
        following = make_handler(config, served_tree, follow_symlinks=True)

        assert plain(make_request("/link.txt")).status == HTTPStatus.NOT_FOUND
        assert following(make_request("/link.txt")).status == HTTPStatus.OK


class TestExclusionScope:
    """Exclusion globs are relative to the working directory, not the root."""

    def test_root_relative_glob_does_not_apply_outside_cwd(self, config, served_tree: Path, make_request):
        handler = FileHandler(
            replace(config, excluded_globs=frozenset({"foo.txt"})),
            cwd=str(served_tree.parent),
        )

        assert handler(make_request("/foo.txt")).status == HTTPStatus.OK
        assert b"foo.txt" in handler(make_request("/")).body.data

    def test_cwd_relative_glob_excludes(self, config, served_tree: Path, make_request):
        handler = FileHandler(
            replace(config, excluded_globs=frozenset({f"{served_tree.name}/foo.txt"})),
            cwd=str(served_tree.parent),
        )

        assert handler(make_request("/foo.txt")).status == HTTPStatus.NOT_FOUND
        assert b"foo.txt" not in handler(make_request("/")).body.data

    def test_cwd_with_glob_characters(self, config, tmp_path: Path, make_request):
        project = tmp_path / "proj[1]{x"
        site = project / "site"
        site.mkdir(parents=True)
        (site / "secret.txt").write_text("s\n")
        (site / "public.txt").write_text("p\n")

        handler = FileHandler(
            replace(config, root=str(site), excluded_globs=frozenset({"site/secret.txt"})),
            cwd=str(project),
        )

        assert handler(make_request("/secret.txt")).status == HTTPStatus.NOT_FOUND
        assert handler(make_request("/public.txt")).status == HTTPStatus.OK
        assert handler(make_request("/")).body.data == b"public.txt\r\n"


class TestDirectories:
    """Tests for directory handling."""

    def test_redirect_without_slash(self, handler: FileHandler, make_request):
        response = handler(make_request("/docs"))

        assert response.status == HTTPStatus.FOUND
        assert response.get_header("Location") == "/docs/"
        assert response.body is None

    def test_redirect_keeps_encoding(self, config, served_tree: Path, make_request):
        (served_tree / "a b").mkdir()
        handler = make_handler(config, served_tree)

        assert handler(make_request("/a%20b")).get_header("Location") == "/a%20b/"

    def test_text_listing_by_default(self, handler: FileHandler, make_request):
        response = handler(make_request("/"))

        assert response.status == HTTPStatus.OK
        assert response.get_header("Content-Type") == "text/plain; charset=UTF-8"
        assert response.body == BytesBody(b"bar.html\r\ndocs\r\nfoo.txt\r\n")

    def test_html_listing_when_accepted(self, handler: FileHandler, make_request):
        response = handler(make_request("/docs/", headers={"Accept": "text/html"}))

        assert response.get_header("Content-Type") == "text/html; charset=UTF-8"
        body = response.body.data.decode("utf-8")
        assert "<h2>Directory listing for: /docs/</h3>" in body
        assert '<li><a href="../">..</a></li>' in body
        assert '<li><a href="index.html">index.html</a></li>' in body

    def test_listing_includes_hidden_when_enabled(self, config, served_tree: Path, make_request):
        handler = make_handler(config, served_tree, include_hidden=True)

        assert b".secret" in handler(make_request("/")).body.data

    def test_index_disabled(self, config, served_tree: Path, make_request):
        handler = make_handler(config, served_tree, index_mode=IndexMode.DISABLED)

        assert handler(make_request("/")).status == HTTPStatus.NOT_FOUND
        assert handler(make_request("/docs")).status == HTTPStatus.NOT_FOUND
        assert handler(make_request("/foo.txt")).status == HTTPStatus.OK

    def test_index_document(self, config, served_tree: Path, make_request):
        handler = make_handler(
            config, served_tree, index_mode=IndexMode.DOCUMENT, index_document="docs/index.html"
        )

        response = handler(make_request("/"))

        assert response.status == HTTPStatus.OK
        assert response.body.path.endswith(os.path.join("docs", "index.html"))

    def test_index_document_missing(self, config, served_tree: Path, make_request):
        handler = make_handler(
            config, served_tree, index_mode=IndexMode.DOCUMENT, index_document="nope.html"
        )

        assert handler(make_request("/")).status == HTTPStatus.NOT_FOUND

    def test_index_document_still_redirects(self, config, served_tree: Path, make_request):
        handler = make_handler(
            config, served_tree, index_mode=IndexMode.DOCUMENT, index_document="bar.html"
        )

        assert handler(make_request("/docs")).status == HTTPStatus.FOUND


class TestDefaultDocument:
    """Tests for the not-found fallback document."""

    def test_serves_default_for_missing(self, config, served_tree: Path, make_request):
        handler = make_handler(config, served_tree, default_document="bar.html")

        response = handler(make_request("/app/route/42"))

        assert response.status == HTTPStatus.OK
        assert response.body.path.endswith("bar.html")

    def test_default_not_used_for_refused(self, config, served_tree: Path, make_request):
        handler = make_handler(config, served_tree, default_document="bar.html")

        assert handler(make_request("/../x")).status == HTTPStatus.FORBIDDEN

    def test_hidden_default_document_404(self, config, served_tree: Path, make_request):
        handler = make_handler(config, served_tree, default_document=".secret")

        assert handler(make_request("/nope")).status == HTTPStatus.NOT_FOUND


class TestIOErrors:
    """Unexpected filesystem errors become 500."""

    def test_listing_error(self, handler: FileHandler, make_request, monkeypatch):
        def broken(*args, **kwargs):
            raise OSError("disk on fire")

        monkeypatch.setattr("dirserve.files.handler.list_directory", broken)

        assert handler(make_request("/")).status == HTTPStatus.INTERNAL_SERVER_ERROR
