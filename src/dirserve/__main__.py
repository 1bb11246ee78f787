"""
=============================================================================
DIRSERVE COMMAND LINE
=============================================================================

    python -m dirserve                 serve the current directory on :8000
    python -m dirserve 3000            ... on :3000
    dirserve --dir ./public --cors     console-script form

Flag defaults come from ``ServerConfig.from_env()``, so DIRSERVE_PORT and
friends apply whenever the flag is not given.

Startup problems (bad port, missing directory, a password needed with no
terminal to ask on) print one line to stderr and exit with status 1.

SIGINT and SIGTERM stop the server gracefully: the socket stops accepting,
requests in flight finish, then the process exits.

=============================================================================
"""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .config import CORSPolicy, IndexMode, ServerConfig, read_credential
from .errors import ConfigError
from .pipeline import build_handler
from .server import start_server, stop_server


logger = logging.getLogger("dirserve")


def _split(value: str) -> tuple:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dirserve",
        description="Serve a directory over HTTP with zero configuration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dirserve                               # current directory on port 8000
  dirserve 3000 --dir ./public           # ./public on port 3000
  dirserve --no-index --exclude '**/*.bak'
  dirserve --cors --cors-origin https://app.example
  dirserve --auth alice                  # prompts for the password
        """
    )

    parser.add_argument(
        "port", nargs="?", type=int, default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )
    parser.add_argument("--dir", "-d", default=defaults.root, help="Directory to serve (default: current)")
    parser.add_argument("--bind", "-b", default=defaults.host, help=f"Address to bind (default: {defaults.host})")

    tree = parser.add_argument_group("served tree")
    tree.add_argument("--no-index", action="store_true", help="Answer 404 for directories instead of listing them")
    tree.add_argument("--index-document-path", metavar="PATH",
                      help="Serve this root-relative document for every directory")
    tree.add_argument("--default-document-path", metavar="PATH",
                      help="Serve this root-relative document instead of 404")
    tree.add_argument("--exclude", metavar="GLOB", action="append", default=[],
                      help="Never serve paths matching GLOB, relative to the working directory (repeatable)")
    tree.add_argument("--follow-symlink", action="store_true", help="Serve symbolic links")
    tree.add_argument("--include-hidden", action="store_true", help="List and serve hidden files")

    features = parser.add_argument_group("protocol features")
    features.add_argument("--no-cache", action="store_true", default=not defaults.cache_enabled,
                          help="Send no cache headers and never answer 304")
    features.add_argument("--no-compression", action="store_true", default=not defaults.compression_enabled,
                          help="Never gzip responses")
    features.add_argument("--cors", action="store_true", help="Send CORS headers and answer preflights")
    features.add_argument("--cors-origin", default="*", help="Access-Control-Allow-Origin (default: *)")
    features.add_argument("--cors-methods", default="GET,OPTIONS",
                          help="Access-Control-Allow-Methods, comma separated")
    features.add_argument("--cors-allow-headers", default="",
                          help="Access-Control-Allow-Headers, comma separated")
    features.add_argument("--auth", metavar="USER[:PASSWORD]", help="Require HTTP Basic auth")
    features.add_argument("--realm", default=defaults.auth_realm, help="Basic auth realm")

    runtime = parser.add_argument_group("runtime")
    runtime.add_argument("--workers", "-w", type=int, default=defaults.max_workers,
                         help=f"Maximum worker threads (default: {defaults.max_workers})")
    runtime.add_argument("--log-level", "-l", default=defaults.log_level,
                         choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper,
                         help="Logging level (default: INFO)")
    runtime.add_argument("--log-format", default=defaults.log_format, choices=["text", "json"],
                         help="Access log format (default: text)")
    parser.add_argument("--version", "-V", action="version", version=f"dirserve {__version__}")

    return parser


def build_config(args: argparse.Namespace, defaults: ServerConfig) -> ServerConfig:
    """
    Merge parsed arguments over ``defaults`` and validate.

    Raises:
        ConfigError: on any invalid combination.
    """
    if args.index_document_path:
        index_mode = IndexMode.DOCUMENT
    elif args.no_index:
        index_mode = IndexMode.DISABLED
    else:
        index_mode = IndexMode.ENABLED

    cors = None
    if args.cors:
        cors = CORSPolicy(
            origin=args.cors_origin,
            methods=_split(args.cors_methods),
            allow_headers=_split(args.cors_allow_headers),
        )

    auth = read_credential(args.auth) if args.auth else None

    config = replace(
        defaults,
        root=args.dir,
        host=args.bind,
        port=args.port,
        index_mode=index_mode,
        index_document=args.index_document_path,
        default_document=args.default_document_path,
        excluded_globs=frozenset(args.exclude),
        follow_symlinks=args.follow_symlink,
        include_hidden=args.include_hidden,
        cache_enabled=not args.no_cache,
        compression_enabled=not args.no_compression,
        cors=cors,
        auth=auth,
        auth_realm=args.realm,
        min_workers=max(1, min(defaults.min_workers, args.workers)),
        max_workers=args.workers,
        log_level=args.log_level,
        log_format=args.log_format,
    )
    config.validate()
    return config


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: Optional[List[str]] = None) -> int:
    try:
        defaults = ServerConfig.from_env()
        args = build_parser(defaults).parse_args(argv)
        config = build_config(args, defaults)
    except ConfigError as e:
        print(f"dirserve: {e}", file=sys.stderr)
        return 1

    _setup_logging(config.log_level)

    try:
        handle = start_server(build_handler(config), config)
    except OSError as e:
        print(f"dirserve: cannot listen on {config.host}:{config.port}: {e}", file=sys.stderr)
        return 1

    logger.info("Serving HTTP on %s port %d", handle.host, handle.port)

    stop_requested = threading.Event()

    def request_stop(signum, frame):
        logger.info("Received %s, shutting down...", signal.Signals(signum).name)
        stop_requested.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    # Short waits keep the main thread responsive to signals
    while not stop_requested.is_set() and not handle.wait(0.5):
        pass

    stop_server(handle)
    return 0


if __name__ == "__main__":
    sys.exit(main())
