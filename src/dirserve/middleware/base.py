"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Defines the middleware protocol and the pipeline that chains stages around
the file handler.

=============================================================================
REQUEST FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Request ────────────────────────────────────────────────►         │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐     │
    │   │  Access  │───►│   CORS   │───►│   Auth   │───►│   File   │     │
    │   │   Log    │    │          │    │          │    │ Handler  │     │
    │   └────┬─────┘    └────┬─────┘    └────┬─────┘    └────┬─────┘     │
    │        ▼               ▼               ▼               ▼            │
    │   [before]        [preflight?]    [credential?]    [resolve,        │
    │   start timer     answer early    401 early         classify]       │
    │                                                                      │
    │   ◄──────────────────────────────────────────────── Response        │
    │                                                                      │
    │   [after]          [after]         [after]                          │
    │   log line         add headers     nothing                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A stage that answers without calling ``next`` short-circuits everything
inside it. Stages outside it still see the response on its way out.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from functools import reduce
from typing import Callable, Iterator, List, Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# A handler takes a request and returns a response
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    One stage of the request pipeline.

    =========================================================================
    THE MIDDLEWARE CONTRACT
    =========================================================================

        def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse

    Call ``next(request)`` to continue down the chain, or return a response
    of your own to short-circuit. Stages must not keep per-request state on
    ``self``; one instance serves every worker thread.

    =========================================================================
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: Parsed request, never mutated in place
            next: The next handler in the chain

        Returns:
            The inner response, possibly decorated, or one built here
        """

    @property
    def name(self) -> str:
        """Stage name used in debug logs."""
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    First added is outermost:

        pipeline = MiddlewarePipeline()
        pipeline.add(AccessLogMiddleware())     # sees the request first
        pipeline.add(CompressionMiddleware())   # sees the response first
        handler = pipeline.wrap(FileHandler(config))
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """
        Append a stage; it runs inside every stage added before it.

        Returns:
            Self for method chaining
        """
        self._middleware.append(middleware)
        logger.debug("Added middleware: %s", middleware.name)
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """Add several middleware at once, in order."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Compose the stages around ``handler``.

        Given [MW1, MW2, MW3] the result calls MW1 → MW2 → MW3 → handler,
        so wrapping happens in reverse.

        Args:
            handler: Innermost callable, normally a FileHandler

        Returns:
            A single callable running every stage, then ``handler``
        """
        return reduce(self._create_wrapped_handler, reversed(self._middleware), handler)

    @staticmethod
    def _create_wrapped_handler(next_handler: NextHandler, middleware: Middleware) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)

        wrapped.__name__ = middleware.name
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)


class FunctionMiddleware(Middleware):
    """
    Wraps a plain function as middleware.

    Usage:
        def no_store(request, next):
            response = next(request)
            response.set_header("Cache-Control", "no-store")
            return response

        pipeline.add(FunctionMiddleware(no_store))
    """

    def __init__(
        self,
        func: Callable[[HTTPRequest, NextHandler], HTTPResponse],
        name: Optional[str] = None
    ):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        return self._func(request, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(
    func: Callable[[HTTPRequest, NextHandler], HTTPResponse]
) -> FunctionMiddleware:
    """
    Decorator form of FunctionMiddleware.

        @function_middleware
        def stamp(request, next):
            response = next(request)
            response.set_header("X-Stamp", "1")
            return response
    """
    return FunctionMiddleware(func)
