"""Error types raised by the bunq client."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path


class BunqError(RuntimeError):
    """Base class for every error raised by bunqsys."""

    pass


class InvalidEnvironmentError(BunqError):
    def __init__(self, raw: str):
        super().__init__(f"Invalid environment: {raw!r}")
        self.raw = raw


class TransportError(BunqError):
    """Network level failure (connection refused, timeout, TLS, ...)."""

    pass


class ResponseDeserializationError(BunqError):
    """The provider answered with something that is not a valid envelope."""

    def __init__(self, message: str):
        super().__init__(f"Response deserialization error: {message}")
        self.raw_message = message


class MissingExpectedVariantError(BunqError):
    def __init__(self, variant: str):
        super().__init__(f"{variant} not found in response")
        self.variant = variant


@dataclass(frozen=True)
class ErrorDetail:
    """A single entry of an ``{"Error": [...]}`` envelope."""

    error_description: str
    error_description_translated: str


class ProviderError(BunqError):
    """The provider answered with an Error envelope.

    All entries are kept in ``errors``; the message joins their descriptions.
    """

    def __init__(self, errors: Iterable[ErrorDetail]):
        self.errors = list(errors)
        joined = "; ".join(e.error_description for e in self.errors) or "unknown error"
        super().__init__(f"Provider error: {joined}")


class IncompleteCredentialBundleError(BunqError):
    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(f"Missing data to build api context: {', '.join(self.missing)}")


class CredentialStoreError(BunqError):
    """The credential file exists but cannot be read back into an ApiContext."""

    def __init__(self, path: str | Path, reason: str):
        super().__init__(f"Cannot load api context from {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class SessionRefreshError(BunqError):
    pass


class AuthError(BunqError):
    pass


__all__ = [
    "AuthError",
    "BunqError",
    "CredentialStoreError",
    "ErrorDetail",
    "IncompleteCredentialBundleError",
    "InvalidEnvironmentError",
    "MissingExpectedVariantError",
    "ProviderError",
    "ResponseDeserializationError",
    "SessionRefreshError",
    "TransportError",
]
