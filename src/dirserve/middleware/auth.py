"""
=============================================================================
BASIC AUTH MIDDLEWARE
=============================================================================

HTTP Basic authentication against a single configured credential.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Authorization: Basic dXNlcjpwYXNz                                 │
    │        │                                                             │
    │        ├── equal to the configured value ──► next(request)          │
    │        │                                                             │
    │        └── missing or different ──────────► 401 Unauthorized        │
    │                                              WWW-Authenticate:       │
    │                                              Basic realm="dirserve" │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The header is compared in its encoded form with ``hmac.compare_digest``,
so the time taken does not depend on how many leading bytes match. On
a mismatch the inner pipeline is never invoked: a wrong password cannot
tell a missing file from a present one.

Basic auth sends the password in the clear on every request. Put the
server behind TLS when that matters.

=============================================================================
"""

import hmac
import logging

from ..config import BasicAuthCredential
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, error_response
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)


class BasicAuthMiddleware(Middleware):
    """
    Rejects requests without the configured Basic credential.

    Usage:
        credential = BasicAuthCredential.from_pair("alice", "s3cret")
        pipeline.add(BasicAuthMiddleware(credential, realm="files"))
    """

    def __init__(self, credential: BasicAuthCredential, realm: str = "dirserve"):
        self.credential = credential
        self.realm = realm
        self._expected = credential.encoded.encode("utf-8")

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        supplied = request.get_header("authorization", "")

        if hmac.compare_digest(supplied.encode("utf-8"), self._expected):
            return next(request)

        # No inner stage runs on a mismatch, so the rejected header goes no further.
        logger.debug("Rejected credentials from %s for %s", request.client_address[0], request.path)
        return error_response(
            HTTPStatus.UNAUTHORIZED,
            {"WWW-Authenticate": f'Basic realm="{self.realm}"'},
        )
