"""Request middleware for authenticated bunq calls.

Every authenticated request passes through an ordered list of middlewares
before it is sent. Each one gets the ``PreparedRequest`` and the next handler
in the chain and must return the response of that handler (or raise).

The standard pipeline is::

    SessionRefreshMiddleware -> SigningMiddleware -> session.send

Refreshing has to come first: the signing middleware stamps the current
session token onto the request.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import timedelta

import requests

from bunqsys.context import ManagedApiContext
from bunqsys.core.api_config import ApiConfig
from bunqsys.errors import BunqError, SessionRefreshError
from bunqsys.handshake import SessionNegotiator, refresh_session
from bunqsys.signing import sign

logger = logging.getLogger(__name__)

Handler = Callable[[requests.PreparedRequest], requests.Response]


class Middleware:
    def handle(self, request: requests.PreparedRequest, next_handler: Handler) -> requests.Response:
        raise NotImplementedError


class SessionRefreshMiddleware(Middleware):
    """Negotiates a new session when the current one is about to expire."""

    def __init__(self, api_context: ManagedApiContext, negotiator: SessionNegotiator):
        self.api_context = api_context
        self.negotiator = negotiator
        self.buffer = timedelta(seconds=negotiator.config.refresh_buffer_seconds)

    def handle(self, request: requests.PreparedRequest, next_handler: Handler) -> requests.Response:
        if self.api_context.needs_refresh(buffer=self.buffer):
            try:
                refresh_session(self.api_context, self.negotiator)
            except (BunqError, ValueError, TypeError) as exc:
                raise SessionRefreshError(f"Failed to create a new session: {exc}") from exc
        return next_handler(request)


class SigningMiddleware(Middleware):
    """Adds the session token and, for requests with a body, its signature."""

    def __init__(self, api_context: ManagedApiContext, config: ApiConfig):
        self.api_context = api_context
        self.config = config

    def handle(self, request: requests.PreparedRequest, next_handler: Handler) -> requests.Response:
        context = self.api_context.snapshot()

        body = request.body
        if body:
            if isinstance(body, str):
                body = body.encode("utf-8")
                request.body = body
            logger.debug(f"Signing request to {request.url}")
            request.headers[self.config.signature_header] = sign(
                body, context.installation_context.private_key_client
            )

        request.headers[self.config.authentication_header] = context.session_context.token
        return next_handler(request)


class MiddlewarePipeline:
    def __init__(self, middlewares: Sequence[Middleware], send: Handler):
        self.middlewares = list(middlewares)
        self.send = send

    def __call__(self, request: requests.PreparedRequest) -> requests.Response:
        handler = self.send
        for middleware in reversed(self.middlewares):
            handler = _bind(middleware, handler)
        return handler(request)


def _bind(middleware: Middleware, next_handler: Handler) -> Handler:
    def handler(request: requests.PreparedRequest) -> requests.Response:
        return middleware.handle(request, next_handler)

    return handler


__all__ = [
    "Handler",
    "Middleware",
    "MiddlewarePipeline",
    "SessionRefreshMiddleware",
    "SigningMiddleware",
]
