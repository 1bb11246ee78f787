"""
=============================================================================
FILE HANDLER
=============================================================================

The innermost stage of the pipeline: decides what a GET for a path means
and builds the response. Every other concern (MIME type, cache headers,
length, CORS, auth, logging) is layered on by middleware.

=============================================================================
DECISION ORDER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   method != GET ─────────────────────────────────────► 405          │
    │        │                                                             │
    │   resolve(root, path) fails ─────────────────────────► 403          │
    │        │                                                             │
    │   classify(safe_path)                                                │
    │        │                                                             │
    │   hidden, hidden not included ───────────────────────► 404          │
    │   missing ───────────────────► default document, else 404           │
    │   excluded by glob ──────────────────────────────────► 404          │
    │   symlink, symlinks not followed ────────────────────► 404          │
    │   directory, indexing disabled ──────────────────────► 404          │
    │   directory, path ends in "/" ──► listing / index document          │
    │   directory, no trailing "/" ────────────────────────► 302 path/    │
    │   not a regular file ────────────────────────────────► 403          │
    │   regular file ──────────────────────────────────────► 200 file     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Hidden, excluded and symlinked entries answer 404, not 403, so their
existence is not disclosed.

=============================================================================
"""

import logging
import os
from typing import Optional
from urllib.parse import quote

from ..config import IndexMode, ServerConfig
from ..errors import ClientPathError
from ..http.negotiation import preferred_listing_type
from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse,
    error_response,
    file_response,
    redirect,
    text_response,
)
from ..http.status_codes import HTTPStatus
from .entities import Directory, File, Forbidden, NotFound, classify
from .listing import GlobMatcher, ListingPolicy, list_directory, render
from .paths import resolve


logger = logging.getLogger(__name__)


class FileHandler:
    """
    Serves files and directory listings from ``config.root``.

    Instances hold only read-only state derived from the configuration, so
    one handler serves all worker threads.

    Usage:
        handler = FileHandler(ServerConfig(root="/srv/files"))
        response = handler(request)
    """

    def __init__(self, config: ServerConfig, cwd: Optional[str] = None):
        """
        Args:
            config: Server configuration.
            cwd: Base directory for exclusion globs. Defaults to the process
                 working directory at construction time.
        """
        self.config = config
        self.root = os.path.realpath(config.root)
        base = os.path.realpath(cwd or os.getcwd())
        self.policy = ListingPolicy(
            follow_symlinks=config.follow_symlinks,
            include_hidden=config.include_hidden,
            excluded=GlobMatcher.rooted_at(base, config.excluded_globs),
        )

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        if request.method != "GET":
            return error_response(HTTPStatus.METHOD_NOT_ALLOWED, {"Allow": "GET"})

        try:
            safe_path = resolve(self.root, request.path)
        except ClientPathError as e:
            logger.debug("Refused path %r: %s", request.path, e)
            return error_response(HTTPStatus.FORBIDDEN)

        try:
            return self._respond(request, classify(safe_path, self.root))
        except OSError:
            logger.exception("I/O error while serving %s", request.path)
            return error_response(HTTPStatus.INTERNAL_SERVER_ERROR)

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def _respond(self, request: HTTPRequest, entity) -> HTTPResponse:
        if getattr(entity, "is_hidden", False) and not self.config.include_hidden:
            return error_response(HTTPStatus.NOT_FOUND)

        if isinstance(entity, NotFound):
            if self.config.default_document:
                return self._document(self.config.default_document)
            return error_response(HTTPStatus.NOT_FOUND)

        if isinstance(entity, (File, Directory)) and self._excluded(entity.path):
            return error_response(HTTPStatus.NOT_FOUND)

        if entity.is_symlink and not self.config.follow_symlinks:
            return error_response(HTTPStatus.NOT_FOUND)

        if isinstance(entity, Directory):
            return self._directory(request, entity)

        if isinstance(entity, Forbidden):
            return error_response(HTTPStatus.FORBIDDEN)

        return file_response(entity.path, entity.size, entity.mtime)

    def _directory(self, request: HTTPRequest, directory: Directory) -> HTTPResponse:
        mode = self.config.index_mode

        if mode is IndexMode.DISABLED:
            return error_response(HTTPStatus.NOT_FOUND)

        if not request.path.endswith("/"):
            return redirect(request.path + "/")

        if mode is IndexMode.DOCUMENT:
            return self._document(self.config.index_document)

        names = list_directory(directory.path, self.policy)
        body, content_type = render(
            request.path, names, preferred_listing_type(request.accept)
        )
        return text_response(body, content_type)

    def _document(self, relative: str) -> HTTPResponse:
        """
        Serve a configured document (index or default), root-relative.

        The document goes through the same resolver and the same
        hidden/symlink rules as a request would.
        """
        uri = quote("/" + relative.replace(os.sep, "/").lstrip("/"))
        try:
            entity = classify(resolve(self.root, uri), self.root)
        except ClientPathError as e:
            logger.warning("Configured document %r is not servable: %s", relative, e)
            return error_response(HTTPStatus.NOT_FOUND)

        if (
            not isinstance(entity, File)
            or (entity.is_hidden and not self.config.include_hidden)
            or (entity.is_symlink and not self.config.follow_symlinks)
        ):
            return error_response(HTTPStatus.NOT_FOUND)

        return file_response(entity.path, entity.size, entity.mtime)

    def _excluded(self, path: str) -> bool:
        return self.policy.excluded.matches_any_ancestor(path, self.root)
