"""
=============================================================================
DIRSERVE - Zero-Configuration HTTP Directory Server
=============================================================================

Point it at a directory and browse or download its files over HTTP.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   1. TRANSPORT                                                      │
    │      - TCP accept loop, worker thread pool                          │
    │      - HTTP/1.0 and 1.1 parsing, keep-alive                         │
    │      - sendfile() for files, gzip streaming for text                │
    │                                                                      │
    │   2. PIPELINE                                                       │
    │      - Middleware stages composed once at startup                   │
    │      - Access log, CORS, Basic auth, compression, conditional GET,  │
    │        content type and length                                      │
    │                                                                      │
    │   3. FILES                                                          │
    │      - Path resolver refusing traversal before touching the disk    │
    │      - Hidden, symlinked and excluded entries kept out of sight     │
    │      - Directory listings as text/plain or text/html                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    dirserve/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m dirserve)
    ├── config.py            # ServerConfig, CORSPolicy, credentials
    ├── errors.py            # Exception hierarchy
    ├── pipeline.py          # build_stages(), build_handler()
    ├── server.py            # start_server(), stop_server()
    ├── core/                # Socket server, connection, thread pool
    ├── http/                # Request, response, negotiation, MIME
    ├── files/               # Resolver, classifier, listings, handler
    └── middleware/          # Pipeline stages

=============================================================================
QUICK START
=============================================================================

    from dirserve import ServerConfig, build_handler, start_server, stop_server

    config = ServerConfig(root="./public", port=8080)
    handle = start_server(build_handler(config), config)
    ...
    stop_server(handle)

=============================================================================
"""

__version__ = "1.0.0"

from .config import BasicAuthCredential, CORSPolicy, IndexMode, ServerConfig
from .errors import ConfigError, DirserveError
from .pipeline import build_handler, build_stages
from .server import ServerHandle, start_server, stop_server

__all__ = [
    "BasicAuthCredential",
    "CORSPolicy",
    "ConfigError",
    "DirserveError",
    "IndexMode",
    "ServerConfig",
    "ServerHandle",
    "build_handler",
    "build_stages",
    "start_server",
    "stop_server",
]
