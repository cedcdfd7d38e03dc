"""HTTP plumbing shared by the handshake and the authenticated client."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import requests

from bunqsys.core.api_config import ApiConfig
from bunqsys.envelope import SuccessEnvelope, VariantParser, decode_success
from bunqsys.errors import ResponseDeserializationError, TransportError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


def unauthenticated_session(config: ApiConfig) -> requests.Session:
    """A plain session for the handshake; no retries, bunq calls are not idempotent."""
    sess = requests.Session()
    sess.headers.update({"User-Agent": config.user_agent, "Cache-Control": "no-cache"})
    return sess


def encode_body(payload: Mapping[str, Any]) -> bytes:
    """Serialize a request body once; the same bytes are signed and sent."""
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def send(
    session: requests.Session,
    method: str,
    url: str,
    *,
    data: bytes | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float = 30.0,
) -> requests.Response:
    try:
        return session.request(method, url, data=data, headers=dict(headers or {}), timeout=timeout)
    except requests.RequestException as exc:
        raise TransportError(f"{method} {url} failed: {exc}") from exc


def decode_response(
    response: requests.Response,
    variants: Mapping[str, VariantParser] | None = None,
    *,
    strict: bool = False,
) -> SuccessEnvelope:
    """Decode a bunq response, raising ProviderError for Error envelopes.

    The status code is not consulted: bunq reports failures in the body.
    """
    try:
        return decode_success(response.content, variants, strict=strict)
    except ResponseDeserializationError:
        logger.debug(f"Undecodable response with status {response.status_code} from {response.url}")
        raise


__all__ = ["JSON_CONTENT_TYPE", "decode_response", "encode_body", "send", "unauthenticated_session"]
