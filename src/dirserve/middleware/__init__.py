"""
Middleware stages wrapped around the file handler.

    ┌────────────────────────┬──────────────────────────────────────────┐
    │ Stage                  │ Concern                                  │
    ├────────────────────────┼──────────────────────────────────────────┤
    │ AccessLogMiddleware    │ one log line per request                 │
    │ ServerNameMiddleware   │ Server header                            │
    │ ContentLengthMiddleware│ Content-Length header                    │
    │ CORSMiddleware         │ CORS headers, preflight answers          │
    │ BasicAuthMiddleware    │ 401 without the configured credential    │
    │ CompressionMiddleware  │ gzip Content-Encoding                    │
    │ ConditionalGetMiddleware│ Last-Modified, If-Modified-Since → 304  │
    │ MimeTypeMiddleware     │ Content-Type for files                   │
    └────────────────────────┴──────────────────────────────────────────┘
"""

from .auth import BasicAuthMiddleware
from .base import FunctionMiddleware, Middleware, MiddlewarePipeline, NextHandler, function_middleware
from .caching import ConditionalGetMiddleware
from .compression import CompressionMiddleware
from .content import ContentLengthMiddleware, MimeTypeMiddleware, ServerNameMiddleware
from .cors import CORSMiddleware
from .logging import AccessLogMiddleware, RequestLog

__all__ = [
    "AccessLogMiddleware",
    "BasicAuthMiddleware",
    "CORSMiddleware",
    "CompressionMiddleware",
    "ConditionalGetMiddleware",
    "ContentLengthMiddleware",
    "FunctionMiddleware",
    "Middleware",
    "MiddlewarePipeline",
    "MimeTypeMiddleware",
    "NextHandler",
    "RequestLog",
    "ServerNameMiddleware",
    "function_middleware",
]
