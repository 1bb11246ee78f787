"""
Unit tests for command-line parsing.
"""

import pytest

from dirserve.__main__ import build_config, build_parser, main
from dirserve.config import IndexMode, ServerConfig


@pytest.fixture
def defaults() -> ServerConfig:
    return ServerConfig()


def parse(defaults: ServerConfig, *argv: str) -> ServerConfig:
    return build_config(build_parser(defaults).parse_args(list(argv)), defaults)


class TestBuildConfig:
    """Tests for build_parser and build_config."""

    def test_port_and_dir(self, defaults, served_tree):
        config = parse(defaults, "3000", "--dir", str(served_tree), "--bind", "127.0.0.1")

        assert config.port == 3000
        assert config.root == str(served_tree)
        assert config.host == "127.0.0.1"
        assert config.index_mode is IndexMode.ENABLED
        assert config.cors is None
        assert config.auth is None

    def test_no_index(self, defaults, served_tree):
        config = parse(defaults, "--dir", str(served_tree), "--no-index")

        assert config.index_mode is IndexMode.DISABLED

    def test_index_document(self, defaults, served_tree):
        config = parse(defaults, "--dir", str(served_tree), "--index-document-path", "docs/index.html")

        assert config.index_mode is IndexMode.DOCUMENT
        assert config.index_document == "docs/index.html"

    def test_tree_flags(self, defaults, served_tree):
        config = parse(
            defaults, "--dir", str(served_tree),
            "--exclude", "**/*.bak", "--exclude", "private/**",
            "--follow-symlink", "--include-hidden",
            "--default-document-path", "bar.html",
        )

        assert config.excluded_globs == frozenset({"**/*.bak", "private/**"})
        assert config.follow_symlinks
        assert config.include_hidden
        assert config.default_document == "bar.html"

    def test_feature_flags(self, defaults, served_tree):
        config = parse(defaults, "--dir", str(served_tree), "--no-cache", "--no-compression")

        assert not config.cache_enabled
        assert not config.compression_enabled

    def test_cors(self, defaults, served_tree):
        config = parse(
            defaults, "--dir", str(served_tree), "--cors",
            "--cors-origin", "https://app.example",
            "--cors-methods", "GET, OPTIONS, HEAD",
            "--cors-allow-headers", "Authorization",
        )

        assert config.cors.origin == "https://app.example"
        assert config.cors.methods == ("GET", "OPTIONS", "HEAD")
        assert config.cors.allow_headers == ("Authorization",)

    def test_auth_with_password(self, defaults, served_tree):
        config = parse(defaults, "--dir", str(served_tree), "--auth", "alice:s3cret", "--realm", "files")

        assert config.auth.user == "alice"
        assert config.auth_realm == "files"

    def test_workers_and_logging(self, defaults, served_tree):
        config = parse(defaults, "--dir", str(served_tree), "-w", "2", "--log-level", "debug", "--log-format", "json")

        assert config.max_workers == 2
        assert config.min_workers == 2
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_bad_log_level_rejected(self, defaults):
        with pytest.raises(SystemExit):
            build_parser(defaults).parse_args(["--log-level", "loud"])


class TestMain:
    """Tests for the entry point's failure paths."""

    def test_missing_directory(self, tmp_path, capsys):
        assert main(["--dir", str(tmp_path / "missing")]) == 1
        assert "Not a directory" in capsys.readouterr().err

    def test_bad_port(self, served_tree, capsys):
        assert main(["70000", "--dir", str(served_tree)]) == 1
        assert "Invalid port" in capsys.readouterr().err

    @pytest.mark.parametrize("glob", ["*.{bak", "[z-a]"])
    def test_bad_exclude_glob(self, served_tree, capsys, glob):
        assert main(["--dir", str(served_tree), "--exclude", glob]) == 1
        assert capsys.readouterr().err.startswith("dirserve: Invalid glob")
