"""
Content enrichers: headers derived from the response itself.

    MimeTypeMiddleware       Content-Type for files, by extension or sniffing
    ContentLengthMiddleware  Content-Length from the body
    ServerNameMiddleware     Server: dirserve
"""

import logging

from ..http.mime_types import detect
from ..http.request import HTTPRequest
from ..http.response import BytesBody, FileBody, HTTPResponse
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)

SERVER_NAME = "dirserve"


class MimeTypeMiddleware(Middleware):
    """
    Sets Content-Type on file responses that don't have one.

    Unknown types leave the header absent; browsers then sniff on their own.
    """

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        response = next(request)

        if (
            response.status == HTTPStatus.OK
            and isinstance(response.body, FileBody)
            and not response.has_header("Content-Type")
        ):
            mime_type = detect(response.body.path)
            if mime_type:
                response.set_header("Content-Type", mime_type)
            else:
                logger.debug("No content type for %s", response.body.path)

        return response


class ContentLengthMiddleware(Middleware):
    """
    Sets Content-Length from the body.

    A file marked for streaming compression has no known length up front
    and is sent chunked instead.
    """

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        response = next(request)
        body = response.body

        if isinstance(body, BytesBody):
            response.set_header("Content-Length", str(len(body.data)))
        elif isinstance(body, FileBody) and not response.compress:
            response.set_header("Content-Length", str(body.size))

        return response


class ServerNameMiddleware(Middleware):
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        response = next(request)
        response.set_header("Server", SERVER_NAME)
        return response
