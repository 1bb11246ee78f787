"""
Unit tests for configuration loading and validation.
"""

import io
from dataclasses import replace

import pytest

from dirserve.config import (
    BasicAuthCredential,
    IndexMode,
    ServerConfig,
    read_credential,
)
from dirserve.errors import ConfigError


class FakeTerminal(io.StringIO):
    def isatty(self) -> bool:
        return True


class TestFromEnv:
    """Tests for ServerConfig.from_env."""

    def test_defaults(self):
        config = ServerConfig.from_env({})

        assert config.root == "."
        assert config.host == "0.0.0.0"
        assert config.port == 8000
        assert config.cache_enabled
        assert config.compression_enabled
        assert config.index_mode is IndexMode.ENABLED

    def test_overrides(self):
        config = ServerConfig.from_env({
            "DIRSERVE_DIR": "/srv",
            "DIRSERVE_BIND": "127.0.0.1",
            "DIRSERVE_PORT": "9000",
            "DIRSERVE_WORKERS": "2",
            "DIRSERVE_NO_CACHE": "1",
            "DIRSERVE_NO_COMPRESS": "true",
            "DIRSERVE_LOG_FORMAT": "json",
        })

        assert config.root == "/srv"
        assert config.host == "127.0.0.1"
        assert config.port == 9000
        assert config.max_workers == 2
        assert config.min_workers == 2
        assert not config.cache_enabled
        assert not config.compression_enabled
        assert config.log_format == "json"

    def test_bad_number(self):
        with pytest.raises(ConfigError):
            ServerConfig.from_env({"DIRSERVE_PORT": "eighty"})


class TestValidate:
    """Tests for ServerConfig.validate."""

    def test_valid(self, config):
        config.validate()

    @pytest.mark.parametrize("changes", [
        {"port": 70000},
        {"port": -1},
        {"min_workers": 0},
        {"min_workers": 4, "max_workers": 2},
        {"buffer_size": 10},
        {"timeout": 0},
        {"log_format": "xml"},
        {"index_mode": IndexMode.DOCUMENT, "index_document": None},
    ])
    def test_invalid(self, config, changes):
        with pytest.raises(ConfigError):
            replace(config, **changes).validate()

    def test_root_must_be_directory(self, config, served_tree):
        with pytest.raises(ConfigError, match="Not a directory"):
            replace(config, root=str(served_tree / "foo.txt")).validate()

    def test_config_error_is_value_error(self, config):
        with pytest.raises(ValueError):
            replace(config, port=70000).validate()

    @pytest.mark.parametrize("glob", ["*.{bak", "[z-a].txt"])
    def test_malformed_exclude_glob(self, config, glob):
        with pytest.raises(ConfigError, match="Invalid glob"):
            replace(config, excluded_globs=frozenset({glob})).validate()

    def test_well_formed_exclude_globs(self, config):
        replace(config, excluded_globs=frozenset({"**/*.bak", "site/{a,b}/[!x]*"})).validate()


class TestReadCredential:
    """Tests for read_credential."""

    def test_user_and_password(self):
        credential = read_credential("alice:s3cret")

        assert credential == BasicAuthCredential.from_pair("alice", "s3cret")

    def test_password_may_contain_colon(self):
        credential = read_credential("alice:a:b")

        assert credential == BasicAuthCredential.from_pair("alice", "a:b")

    def test_prompts_on_terminal(self):
        prompts = []

        def prompt(message):
            prompts.append(message)
            return "s3cret"

        credential = read_credential("alice", prompt=prompt, stdin=FakeTerminal())

        assert prompts == ["Password for alice: "]
        assert credential.encoded == "Basic YWxpY2U6czNjcmV0"

    def test_no_terminal_fails(self):
        def prompt(message):
            raise AssertionError("must not prompt")

        with pytest.raises(ConfigError, match="not a terminal"):
            read_credential("alice", prompt=prompt, stdin=io.StringIO())

    def test_empty_user(self):
        with pytest.raises(ConfigError):
            read_credential(":s3cret")
