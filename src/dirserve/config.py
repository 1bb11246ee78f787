"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

A single immutable snapshot of everything the server needs, built once at
startup and handed to every stage of the pipeline.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── dirserve 3000 --dir ./public --no-cache                   │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── DIRSERVE_PORT=3000 dirserve                               │
    │                                                                      │
    │   3. Defaults (this module)                                         │
    │      └── port 8000, current directory, listings on                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The dataclass is frozen: no stage may change the configuration while the
server runs. Derived variants are made with ``dataclasses.replace``.

=============================================================================
"""

import base64
import getpass
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Mapping, Optional, TextIO, Tuple

from .errors import ConfigError


class IndexMode(Enum):
    """What a request for a directory (with trailing slash) returns."""

    ENABLED = "enabled"      # render a listing
    DISABLED = "disabled"    # 404, directories are not browsable
    DOCUMENT = "document"    # serve ServerConfig.index_document instead


@dataclass(frozen=True)
class CORSPolicy:
    """
    Cross-origin policy advertised on every response.

    Only one origin is supported, which is what a directory server needs:
    either "*" or the single front-end that consumes the files.
    """

    origin: str = "*"
    methods: Tuple[str, ...] = ("GET", "OPTIONS")
    allow_headers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BasicAuthCredential:
    """
    A pre-encoded ``Authorization`` header value.

    The password itself is never stored; only ``Basic base64(user:pass)``,
    which is what gets compared against incoming requests.
    """

    user: str
    encoded: str = field(repr=False)

    @classmethod
    def from_pair(cls, user: str, password: str) -> "BasicAuthCredential":
        token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
        return cls(user=user, encoded=f"Basic {token}")


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the directory server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    SERVED TREE
    - root, index_mode, index_document, default_document,
      excluded_globs, follow_symlinks, include_hidden

    PROTOCOL FEATURES
    - cache_enabled, compression_enabled, cors, auth, auth_realm

    NETWORK / TRANSPORT
    - host, port, backlog, buffer_size, timeout, keep_alive_timeout,
      max_request_size, min_workers, max_workers

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # SERVED TREE
    # ─────────────────────────────────────────────────────────────────────

    root: str = "."
    """Directory to expose. Canonicalized by the file handler."""

    index_mode: IndexMode = IndexMode.ENABLED

    index_document: Optional[str] = None
    """Root-relative document served for directories in DOCUMENT mode."""

    default_document: Optional[str] = None
    """Root-relative document served instead of 404 for missing paths."""

    excluded_globs: FrozenSet[str] = frozenset()
    """Glob patterns, relative to the working directory, never served."""

    follow_symlinks: bool = False
    include_hidden: bool = False

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL FEATURES
    # ─────────────────────────────────────────────────────────────────────

    cache_enabled: bool = True
    compression_enabled: bool = True
    cors: Optional[CORSPolicy] = None
    auth: Optional[BasicAuthCredential] = None
    auth_realm: str = "dirserve"

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK / TRANSPORT
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    port: int = 8000
    """0 asks the OS for a free port (used by the test suite)."""

    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 64 * 1024
    """GET requests carry no body, so this only bounds the request head."""

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """'text' for one human-readable line per request, 'json' for one object."""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        DIRSERVE_DIR          Served directory (default: .)
        DIRSERVE_BIND         Bind address (default: 0.0.0.0)
        DIRSERVE_PORT         Port (default: 8000)
        DIRSERVE_WORKERS      Max worker threads (default: 16)
        DIRSERVE_NO_CACHE     "1" disables cache headers
        DIRSERVE_NO_COMPRESS  "1" disables gzip
        DIRSERVE_LOG_LEVEL    Logging level (default: INFO)
        DIRSERVE_LOG_FORMAT   text | json (default: text)

        =====================================================================
        """
        env = os.environ if environ is None else environ
        try:
            port = int(env.get("DIRSERVE_PORT", "8000"))
            max_workers = int(env.get("DIRSERVE_WORKERS", "16"))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric environment value: {e}") from e

        return cls(
            root=env.get("DIRSERVE_DIR", "."),
            host=env.get("DIRSERVE_BIND", "0.0.0.0"),
            port=port,
            min_workers=min(4, max_workers),
            max_workers=max_workers,
            cache_enabled=not _flag(env.get("DIRSERVE_NO_CACHE")),
            compression_enabled=not _flag(env.get("DIRSERVE_NO_COMPRESS")),
            log_level=env.get("DIRSERVE_LOG_LEVEL", "INFO"),
            log_format=env.get("DIRSERVE_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Runs once at startup so that a typo in a flag stops the process
        immediately instead of surfacing on the first request.

        Raises:
            ConfigError: describing the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not os.path.isdir(self.root):
            raise ConfigError(f"Not a directory: {self.root}")

        if self.index_mode is IndexMode.DOCUMENT and not self.index_document:
            raise ConfigError("index_mode DOCUMENT requires index_document")

        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ConfigError(f"Unknown log format: {self.log_format}")

        # files/ imports this module
        from .files.listing import GlobMatcher

        try:
            GlobMatcher.rooted_at(os.sep, self.excluded_globs)
        except ValueError as e:
            raise ConfigError(str(e)) from e


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def read_credential(
    value: str,
    prompt: Callable[[str], str] = getpass.getpass,
    stdin: Optional[TextIO] = None,
) -> BasicAuthCredential:
    """
    Turn a ``--auth`` argument into a credential.

    ``user:password`` is used as is. A bare ``user`` asks for the password
    on the terminal, so it does not end up in shell history; without a
    terminal there is nobody to ask and startup fails.

    Args:
        value: ``user`` or ``user:password``.
        prompt: Password reader, ``getpass.getpass`` unless testing.
        stdin: Stream checked for a TTY (defaults to ``sys.stdin``).

    Raises:
        ConfigError: empty user, or password needed but stdin is not a TTY.
    """
    user, sep, password = value.partition(":")
    if not user:
        raise ConfigError("--auth requires a user name")

    if not sep:
        stream = sys.stdin if stdin is None else stdin
        if stream is None or not stream.isatty():
            raise ConfigError(
                f"No password given for user {user!r} and stdin is not a terminal"
            )
        password = prompt(f"Password for {user}: ")

    return BasicAuthCredential.from_pair(user, password)
