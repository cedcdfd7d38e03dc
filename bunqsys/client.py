from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from bunqsys.context import ApiContext, ManagedApiContext, SetupContext
from bunqsys.core.api_config import ApiConfig
from bunqsys.envelope import SuccessEnvelope, VariantParser
from bunqsys.errors import CredentialStoreError, TransportError
from bunqsys.handshake import SessionNegotiator
from bunqsys.http import JSON_CONTENT_TYPE, decode_response, encode_body, unauthenticated_session
from bunqsys.middleware import MiddlewarePipeline, SessionRefreshMiddleware, SigningMiddleware
from bunqsys.store import get_api_context, load_api_context


@dataclass
class BunqClient:
    """Authenticated bunq client.

    Requests are prepared on a ``requests.Session`` and run through the
    refresh and signing middlewares before being sent. The wrapped
    ManagedApiContext may be shared with other clients or threads.
    """

    api_context: ManagedApiContext
    config: ApiConfig | None = None

    def __post_init__(self) -> None:
        if self.config is None:
            self.config = ApiConfig.for_environment(self.api_context.snapshot().environment)
        self.session = unauthenticated_session(self.config)
        self.pipeline = MiddlewarePipeline(
            [
                SessionRefreshMiddleware(self.api_context, SessionNegotiator(self.config, self.session)),
                SigningMiddleware(self.api_context, self.config),
            ],
            send=self._send,
        )

    @classmethod
    def from_context(cls, context: ApiContext, config: ApiConfig | None = None) -> BunqClient:
        return cls(api_context=ManagedApiContext(context), config=config)

    @classmethod
    def from_store(cls, path: str | Path, config: ApiConfig | None = None) -> BunqClient:
        """Client for a bundle persisted earlier; raises if there is none."""
        context = load_api_context(path)
        if context is None:
            raise CredentialStoreError(path, "no credential file, run the setup first")
        return cls.from_context(context, config)

    @classmethod
    def from_env(cls) -> BunqClient:
        """Load or bootstrap the bundle described by BUNQ_* environment variables."""
        setup = SetupContext.from_env()
        return cls.from_context(get_api_context(setup))

    @property
    def user_id(self) -> int:
        return self.api_context.snapshot().session_context.user_id

    def _send(self, request: requests.PreparedRequest) -> requests.Response:
        try:
            return self.session.send(request, timeout=self.config.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"{request.method} {request.url} failed: {exc}") from exc

    def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        json: Mapping[str, Any] | None = None,
    ) -> requests.Response:
        headers = {}
        data = None
        if json is not None:
            data = encode_body(json)
            headers["Content-Type"] = JSON_CONTENT_TYPE
        req = requests.Request(
            method, self.config.url(path), params=dict(params or {}), data=data, headers=headers
        )
        return self.pipeline(self.session.prepare_request(req))

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> requests.Response:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Mapping[str, Any]) -> requests.Response:
        return self.request("POST", path, json=json)

    def get_envelope(
        self,
        path: str,
        variants: Mapping[str, VariantParser] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> SuccessEnvelope:
        return decode_response(self.get(path, params=params), variants)

    def get_paginated(
        self,
        path: str,
        variants: Mapping[str, VariantParser] | None = None,
        params: Mapping[str, Any] | None = None,
        max_pages: int | None = None,
    ) -> list[Any]:
        """Fetch all pages and return the decoded entry values.

        bunq returns ``Pagination.older_url`` (a path with its own query
        string) while older items exist; it is followed until absent.
        """
        envelope = self.get_envelope(path, variants, params)
        values = envelope.values()
        pages = 1
        while envelope.pagination and envelope.pagination.older_url:
            if max_pages is not None and pages >= max_pages:
                break
            envelope = self.get_envelope(_strip_version(envelope.pagination.older_url), variants)
            values += envelope.values()
            pages += 1
        return values


def _strip_version(url: str) -> str:
    """bunq pagination URLs start with ``/v1``, which the base URL already holds."""
    return url[len("/v1") :] if url.startswith("/v1/") else url
