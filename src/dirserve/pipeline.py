"""
=============================================================================
PIPELINE ASSEMBLY
=============================================================================

Builds the request handler once, at startup, from the configuration.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   AccessLogMiddleware                                               │
    │    └─ ServerNameMiddleware                                          │
    │        └─ ContentLengthMiddleware                                   │
    │            └─ CORSMiddleware              (--cors)                  │
    │                └─ BasicAuthMiddleware     (--auth)                  │
    │                    └─ CompressionMiddleware   (unless --no-compress)│
    │                        └─ ConditionalGetMiddleware (unless --no-cache)│
    │                            └─ MimeTypeMiddleware                    │
    │                                └─ FileHandler                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Server identity and content length sit outside access control, so 401 and
preflight answers carry them too. The access log is outermost and sees
every request, refused ones included.

The result is a plain callable. It holds no per-request state and is
shared by every worker thread.

=============================================================================
"""

from typing import List, Optional

from .config import ServerConfig
from .files.handler import FileHandler
from .middleware.auth import BasicAuthMiddleware
from .middleware.base import Middleware, MiddlewarePipeline, NextHandler
from .middleware.caching import ConditionalGetMiddleware
from .middleware.compression import CompressionMiddleware
from .middleware.content import ContentLengthMiddleware, MimeTypeMiddleware, ServerNameMiddleware
from .middleware.cors import CORSMiddleware
from .middleware.logging import AccessLogMiddleware


def build_stages(config: ServerConfig) -> List[Middleware]:
    """The ordered stage list for ``config``, outermost first."""
    stages: List[Middleware] = [
        AccessLogMiddleware(log_format=config.log_format),
        ServerNameMiddleware(),
        ContentLengthMiddleware(),
    ]
    if config.cors is not None:
        stages.append(CORSMiddleware(config.cors))
    if config.auth is not None:
        stages.append(BasicAuthMiddleware(config.auth, realm=config.auth_realm))
    if config.compression_enabled:
        stages.append(CompressionMiddleware())
    if config.cache_enabled:
        stages.append(ConditionalGetMiddleware())
    stages.append(MimeTypeMiddleware())
    return stages


def build_handler(config: ServerConfig, cwd: Optional[str] = None) -> NextHandler:
    """
    Compose the full request handler.

    Args:
        config: Server configuration.
        cwd: Base directory for exclusion globs (defaults to os.getcwd()).

    Returns:
        A callable taking an HTTPRequest and returning an HTTPResponse.
    """
    return MiddlewarePipeline().use(*build_stages(config)).wrap(FileHandler(config, cwd=cwd))
