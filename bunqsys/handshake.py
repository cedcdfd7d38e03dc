"""The three-step bunq handshake: installation, device registration, session.

Each step is a small class bound to an :class:`ApiConfig` and a
``requests.Session``. :func:`bootstrap_api_context` runs all three to build a
complete :class:`ApiContext`; :func:`refresh_session` reruns only the session
step for an existing bundle.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import requests

from bunqsys.context import (
    ApiContext,
    ContextBuilder,
    Environment,
    InstallationContext,
    ManagedApiContext,
    SessionContext,
    SessionUserApiKey,
    UserInformation,
    utcnow,
)
from bunqsys.core.api_config import ApiConfig
from bunqsys.envelope import SuccessEnvelope, VariantParser
from bunqsys.http import JSON_CONTENT_TYPE, decode_response, encode_body, send, unauthenticated_session
from bunqsys.signing import KeyPair, generate_keypair, sign

logger = logging.getLogger(__name__)


# Response variants ---------------------------------------------------------


@dataclass(frozen=True)
class Id:
    id: int

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Id:
        return cls(id=int(data["id"]))


@dataclass(frozen=True)
class Token:
    token: str
    id: int | None = None
    created: str | None = None
    updated: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Token:
        return cls(
            token=str(data["token"]),
            id=int(data["id"]) if data.get("id") is not None else None,
            created=data.get("created"),
            updated=data.get("updated"),
        )


@dataclass(frozen=True)
class ServerPublicKey:
    server_public_key: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ServerPublicKey:
        return cls(server_public_key=str(data["server_public_key"]))


def _untag(data: Mapping[str, Any]) -> Mapping[str, Any]:
    """Unwrap a nested single-key variant such as ``{"UserPerson": {...}}``."""
    if len(data) != 1:
        raise ValueError(f"expected a single tagged object, got keys {sorted(data)}")
    (value,) = data.values()
    if not isinstance(value, Mapping):
        raise TypeError(f"tagged value must be an object, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class UserApiKey:
    id: int
    requested_by_user: UserInformation
    granted_by_user: UserInformation

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> UserApiKey:
        return cls(
            id=int(data["id"]),
            requested_by_user=UserInformation.from_mapping(_untag(data["requested_by_user"])),
            granted_by_user=UserInformation.from_mapping(_untag(data["granted_by_user"])),
        )


INSTALLATION_VARIANTS: dict[str, VariantParser] = {
    "Id": Id.from_mapping,
    "Token": Token.from_mapping,
    "ServerPublicKey": ServerPublicKey.from_mapping,
}
DEVICE_VARIANTS: dict[str, VariantParser] = {"Id": Id.from_mapping}
SESSION_VARIANTS: dict[str, VariantParser] = {
    "Id": Id.from_mapping,
    "Token": Token.from_mapping,
    "UserApiKey": UserApiKey.from_mapping,
}


# Steps ---------------------------------------------------------------------


@dataclass
class _HandshakeStep:
    config: ApiConfig
    http: requests.Session | None = None

    def __post_init__(self) -> None:
        if self.http is None:
            self.http = unauthenticated_session(self.config)

    def _post(
        self,
        path: str,
        payload: Mapping[str, Any],
        variants: Mapping[str, VariantParser],
        *,
        token: str | None = None,
        private_key_pem: str | None = None,
    ) -> SuccessEnvelope:
        body = encode_body(payload)
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        if token is not None:
            headers[self.config.authentication_header] = token
        if private_key_pem is not None:
            headers[self.config.signature_header] = sign(body, private_key_pem)
        response = send(
            self.http, "POST", self.config.url(path), data=body, headers=headers, timeout=self.config.timeout
        )
        return decode_response(response, variants)


class InstallationRegistrar(_HandshakeStep):
    """Registers a freshly generated public key with bunq."""

    def register(self, keypair: KeyPair | None = None) -> InstallationContext:
        logger.info("Generating keys for a new installation")
        keypair = keypair or generate_keypair()
        envelope = self._post(
            "/installation", {"client_public_key": keypair.public_key_pem}, INSTALLATION_VARIANTS
        )
        token = envelope.require("Token")
        server_public_key = envelope.require("ServerPublicKey")
        logger.info("Installation created")
        return InstallationContext(
            token=token.token,
            private_key_client=keypair.private_key_pem,
            public_key_client=keypair.public_key_pem,
            public_key_server=server_public_key.server_public_key,
        )


class DeviceRegistrar(_HandshakeStep):
    """Binds the access token to this running instance."""

    def register(self, api_key: str, installation_token: str, private_key_pem: str) -> int:
        # An empty permitted_ips list lets bunq bind the caller's current IP.
        payload = {
            "description": self.config.device_description,
            "secret": api_key,
            "permitted_ips": [],
        }
        envelope = self._post(
            "/device-server",
            payload,
            DEVICE_VARIANTS,
            token=installation_token,
            private_key_pem=private_key_pem,
        )
        device_id = envelope.require("Id").id
        logger.info(f"Device server registered with id {device_id}")
        return device_id


class SessionNegotiator(_HandshakeStep):
    """Exchanges the access token for a session token and user profile."""

    def negotiate(
        self,
        api_key: str,
        installation_token: str,
        private_key_pem: str,
        now: datetime | None = None,
    ) -> SessionContext:
        envelope = self._post(
            "/session-server",
            {"secret": api_key},
            SESSION_VARIANTS,
            token=installation_token,
            private_key_pem=private_key_pem,
        )
        token = envelope.require("Token")
        user_api_key = envelope.require("UserApiKey")

        started = now or utcnow()
        timeout = user_api_key.requested_by_user.session_timeout
        logger.info(f"Session created, valid for {timeout} seconds")
        return SessionContext(
            token=token.token,
            valid_until=started + timedelta(seconds=timeout),
            user_id=user_api_key.id,
            user_api_key=SessionUserApiKey(
                id=user_api_key.id,
                requested_by_user=user_api_key.requested_by_user,
                granted_by_user=user_api_key.granted_by_user,
            ),
        )

    def negotiate_for(self, context: ApiContext) -> SessionContext:
        """Negotiate a new session reusing the installation of ``context``."""
        return self.negotiate(
            context.api_key,
            context.installation_context.token,
            context.installation_context.private_key_client,
        )


def bootstrap_api_context(
    api_key: str,
    environment: Environment,
    config: ApiConfig | None = None,
    http: requests.Session | None = None,
) -> ApiContext:
    """Run installation, device registration and session creation.

    Any failing step raises and nothing is returned, so no partial bundle
    can reach the credential store.
    """
    config = config or ApiConfig.for_environment(environment)
    http = http or unauthenticated_session(config)
    builder = ContextBuilder(environment).set_access_token(api_key)

    installation = InstallationRegistrar(config, http).register()
    builder.set_installation_context(installation)

    device_id = DeviceRegistrar(config, http).register(
        api_key, installation.token, installation.private_key_client
    )
    builder.set_device_id(device_id)

    session = SessionNegotiator(config, http).negotiate(
        api_key, installation.token, installation.private_key_client
    )
    builder.set_session_context(session)

    logger.info("Handshake complete")
    return builder.build()


def refresh_session(api_context: ManagedApiContext, negotiator: SessionNegotiator) -> SessionContext:
    """Negotiate a new session for the shared bundle and commit it.

    The lock is only held to take the snapshot and to commit; a failure leaves
    the current session in place.
    """
    logger.info("Refreshing session")
    snapshot = api_context.snapshot()
    session = negotiator.negotiate_for(snapshot)
    api_context.replace_session(session)
    return session


__all__ = [
    "DeviceRegistrar",
    "Id",
    "InstallationRegistrar",
    "ServerPublicKey",
    "SessionNegotiator",
    "Token",
    "UserApiKey",
    "bootstrap_api_context",
    "refresh_session",
]
