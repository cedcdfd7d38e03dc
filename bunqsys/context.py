"""Credential bundle data model.

An :class:`ApiContext` holds everything needed to make authenticated calls
without repeating the handshake: the access token (``api_key``), the
installation keys and token, and the current session. It is immutable; a
session refresh produces a new ApiContext via :meth:`ApiContext.with_session_context`
and swaps it into the shared :class:`ManagedApiContext`.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from bunqsys.core.utils.env import load_env_file_if_present
from bunqsys.errors import IncompleteCredentialBundleError, InvalidEnvironmentError

logger = logging.getLogger(__name__)

# Refresh a little before the provider expires the session to absorb clock
# skew and the time a request spends in transit.
REFRESH_BUFFER = timedelta(seconds=10)

DEFAULT_STORAGE_PATH = ".bunq-context.json"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Environment(str, Enum):
    SANDBOX = "SANDBOX"
    PRODUCTION = "PRODUCTION"

    @classmethod
    def parse(cls, raw: Environment | str) -> Environment:
        """Parse a user supplied environment name.

        An empty string selects the sandbox.
        """
        if isinstance(raw, Environment):
            return raw
        if raw in ("SANDBOX", "sandbox", "sb", ""):
            return cls.SANDBOX
        if raw in ("PRODUCTION", "production", "prod", "PROD"):
            return cls.PRODUCTION
        raise InvalidEnvironmentError(raw)


@dataclass(frozen=True)
class InstallationContext:
    token: str
    private_key_client: str
    public_key_client: str
    public_key_server: str

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> InstallationContext:
        return cls(
            token=str(data["token"]),
            private_key_client=str(data["private_key_client"]),
            public_key_client=str(data["public_key_client"]),
            public_key_server=str(data["public_key_server"]),
        )


@dataclass(frozen=True)
class UserInformation:
    id: int
    display_name: str
    public_nick_name: str
    session_timeout: int

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> UserInformation:
        return cls(
            id=int(data["id"]),
            display_name=str(data["display_name"]),
            public_nick_name=str(data["public_nick_name"]),
            session_timeout=int(data["session_timeout"]),
        )


@dataclass(frozen=True)
class SessionUserApiKey:
    id: int
    # The user that owns the OAuth application, most likely you.
    requested_by_user: UserInformation
    # The user that granted the application access.
    granted_by_user: UserInformation

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> SessionUserApiKey:
        return cls(
            id=int(data["id"]),
            requested_by_user=UserInformation.from_mapping(data["requested_by_user"]),
            granted_by_user=UserInformation.from_mapping(data["granted_by_user"]),
        )


@dataclass(frozen=True)
class SessionContext:
    """A short lived session; its token authenticates ordinary API calls."""

    token: str
    valid_until: datetime
    user_id: int
    user_api_key: SessionUserApiKey

    def needs_to_be_refreshed(
        self, now: datetime | None = None, buffer: timedelta = REFRESH_BUFFER
    ) -> bool:
        """True once ``now + buffer`` reaches ``valid_until``."""
        now = now or utcnow()
        return now + buffer >= self.valid_until

    def as_json(self) -> dict[str, Any]:
        data = asdict(self)
        data["valid_until"] = self.valid_until.isoformat()
        return data

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> SessionContext:
        valid_until = datetime.fromisoformat(str(data["valid_until"]).replace("Z", "+00:00"))
        if valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=timezone.utc)
        return cls(
            token=str(data["token"]),
            valid_until=valid_until,
            user_id=int(data["user_id"]),
            user_api_key=SessionUserApiKey.from_mapping(data["user_api_key"]),
        )


@dataclass(frozen=True)
class ApiContext:
    api_key: str
    environment: Environment
    installation_context: InstallationContext
    session_context: SessionContext

    def with_session_context(self, session_context: SessionContext) -> ApiContext:
        """Return a copy carrying a new session; everything else is shared."""
        return replace(self, session_context=session_context)

    def as_json(self) -> dict[str, Any]:
        return {
            "api_key": self.api_key,
            "environment": self.environment.value,
            "installation_context": asdict(self.installation_context),
            "session_context": self.session_context.as_json(),
        }

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ApiContext:
        """Rebuild a context from :meth:`as_json` output.

        Raises KeyError, TypeError or ValueError on incomplete data; the
        credential store turns those into CredentialStoreError.
        """
        return cls(
            api_key=str(data["api_key"]),
            environment=Environment.parse(data["environment"]),
            installation_context=InstallationContext.from_mapping(data["installation_context"]),
            session_context=SessionContext.from_mapping(data["session_context"]),
        )


class ManagedApiContext:
    """The ApiContext shared by every request, behind one lock.

    Each access takes the lock on its own; nothing holds it across a network
    call. Two threads that both see an expiring session will therefore both
    negotiate a new one and the later write wins.
    """

    def __init__(self, context: ApiContext):
        self._context = context
        self._lock = threading.Lock()

    def snapshot(self) -> ApiContext:
        with self._lock:
            return self._context

    def needs_refresh(self, now: datetime | None = None, buffer: timedelta = REFRESH_BUFFER) -> bool:
        with self._lock:
            return self._context.session_context.needs_to_be_refreshed(now=now, buffer=buffer)

    def replace_session(self, session_context: SessionContext) -> ApiContext:
        with self._lock:
            self._context = self._context.with_session_context(session_context)
            return self._context


class ContextBuilder:
    """Collects the results of the handshake steps into an ApiContext.

    The device id is recorded for logging only; it is not part of the bundle.
    """

    def __init__(self, environment: Environment):
        self.environment = environment
        self.api_key: str | None = None
        self.installation_context: InstallationContext | None = None
        self.device_id: int | None = None
        self.session_context: SessionContext | None = None

    def set_access_token(self, access_token: str) -> ContextBuilder:
        self.api_key = access_token
        return self

    def set_installation_context(self, installation_context: InstallationContext) -> ContextBuilder:
        self.installation_context = installation_context
        return self

    def set_device_id(self, device_id: int) -> ContextBuilder:
        self.device_id = device_id
        return self

    def set_session_context(self, session_context: SessionContext) -> ContextBuilder:
        self.session_context = session_context
        return self

    def build(self) -> ApiContext:
        missing = [
            name
            for name, value in (
                ("api_key", self.api_key),
                ("installation_context", self.installation_context),
                ("session_context", self.session_context),
            )
            if value is None
        ]
        if missing:
            raise IncompleteCredentialBundleError(missing)
        return ApiContext(
            api_key=self.api_key,
            environment=self.environment,
            installation_context=self.installation_context,
            session_context=self.session_context,
        )


@dataclass(frozen=True)
class SetupContext:
    """Inputs of the one-time bootstrap."""

    environment: Environment
    client_id: str
    client_secret: str
    storage_path: str = DEFAULT_STORAGE_PATH

    @classmethod
    def from_env(cls, dotenv: bool = True) -> SetupContext:
        """Read BUNQ_ENVIRONMENT, BUNQ_CLIENT_ID, BUNQ_CLIENT_SECRET and BUNQ_CONTEXT_PATH."""
        if dotenv:
            load_env_file_if_present()
        return cls(
            environment=Environment.parse(os.getenv("BUNQ_ENVIRONMENT", "")),
            client_id=os.getenv("BUNQ_CLIENT_ID", ""),
            client_secret=os.getenv("BUNQ_CLIENT_SECRET", ""),
            storage_path=os.getenv("BUNQ_CONTEXT_PATH", DEFAULT_STORAGE_PATH),
        )


__all__ = [
    "ApiContext",
    "ContextBuilder",
    "DEFAULT_STORAGE_PATH",
    "Environment",
    "InstallationContext",
    "ManagedApiContext",
    "REFRESH_BUFFER",
    "SessionContext",
    "SessionUserApiKey",
    "SetupContext",
    "UserInformation",
    "utcnow",
]
