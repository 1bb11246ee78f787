"""
=============================================================================
CORS MIDDLEWARE
=============================================================================

Cross-Origin Resource Sharing for a read-only file server.

=============================================================================
PREFLIGHT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Browser                              dirserve                     │
    │      │                                     │                         │
    │      │  OPTIONS /data.json                 │                         │
    │      │  Origin: https://app.example        │                         │
    │      │  Access-Control-Request-Method: GET │                         │
    │      │────────────────────────────────────►│                         │
    │      │                                     │  answered here, the    │
    │      │  200 OK                             │  file is never looked  │
    │      │  Access-Control-Allow-Origin: *     │  up (it need not       │
    │      │  Access-Control-Allow-Methods: ...  │  exist)                │
    │      │◄────────────────────────────────────│                         │
    │      │                                     │                         │
    │      │  GET /data.json                     │                         │
    │      │────────────────────────────────────►│  inner pipeline runs,  │
    │      │                                     │  same headers merged   │
    │      │◄────────────────────────────────────│  into its response     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

CORS sits outside auth: a preflight carries no credentials, so it must be
answered before the auth stage would refuse it.

An OPTIONS request without ``Access-Control-Request-Method`` is not a
preflight. It goes down the pipeline like any other request and ends as a
405 from the file handler.

=============================================================================
"""

from typing import Dict

from ..config import CORSPolicy
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


class CORSMiddleware(Middleware):
    """
    Adds the configured CORS headers and answers preflight requests.

    Usage:
        pipeline.add(CORSMiddleware(CORSPolicy(origin="https://app.example")))
    """

    def __init__(self, policy: CORSPolicy):
        self.policy = policy
        self._headers = self._build_headers(policy)

    @staticmethod
    def _build_headers(policy: CORSPolicy) -> Dict[str, str]:
        headers = {
            "Access-Control-Allow-Origin": policy.origin,
            "Access-Control-Allow-Methods": ", ".join(policy.methods),
            "Access-Control-Allow-Credentials": "true",
        }
        if policy.allow_headers:
            headers["Access-Control-Allow-Headers"] = ", ".join(policy.allow_headers)
        return headers

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if self._is_preflight(request):
            return HTTPResponse(HTTPStatus.OK, headers=dict(self._headers))

        response = next(request)
        for name, value in self._headers.items():
            response.set_header(name, value)
        return response

    @staticmethod
    def _is_preflight(request: HTTPRequest) -> bool:
        return (
            request.method == "OPTIONS"
            and request.get_header("access-control-request-method") is not None
        )
