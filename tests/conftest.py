from __future__ import annotations

import base64
import json
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from bunqsys.context import (
    ApiContext,
    Environment,
    InstallationContext,
    SessionContext,
    SessionUserApiKey,
    UserInformation,
)
from bunqsys.core.api_config import ApiConfig
from bunqsys.signing import generate_keypair


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep BUNQ_* settings of the developer machine out of the tests."""
    for key in list(os.environ):
        if key.startswith("BUNQ_"):
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture(scope="session")
def keypair():
    """One RSA keypair for the whole run; generating 2048 bit keys is slow."""
    return generate_keypair()


@pytest.fixture
def verify_signature():
    """Check a base64 request signature the way bunq does on its side."""

    def _verify(data: bytes, signature_b64: str, public_key_pem: str) -> bool:
        key = serialization.load_pem_public_key(public_key_pem.encode("ascii"))
        try:
            key.verify(base64.b64decode(signature_b64), data, padding.PKCS1v15(), hashes.SHA256())
        except InvalidSignature:
            return False
        return True

    return _verify


@pytest.fixture
def config():
    return ApiConfig.for_environment(Environment.SANDBOX)


@pytest.fixture
def make_response():
    """Build a mocked requests.Response carrying ``payload`` as JSON."""

    def _make(payload, status_code: int = 200, url: str = "https://mock.bunq/v1"):
        response = Mock()
        response.status_code = status_code
        response.url = url
        response.content = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        response.json.return_value = payload
        return response

    return _make


@pytest.fixture
def user_api_key_payload():
    """UserApiKey variant as returned by POST /session-server."""
    return {
        "id": 42,
        "requested_by_user": {
            "UserPerson": {
                "id": 7,
                "display_name": "A",
                "public_nick_name": "a",
                "session_timeout": 3600,
            }
        },
        "granted_by_user": {
            "UserPerson": {
                "id": 8,
                "display_name": "B",
                "public_nick_name": "b",
                "session_timeout": 3600,
            }
        },
    }


@pytest.fixture
def session_response_payload(user_api_key_payload):
    return {
        "Response": [
            {"Id": {"id": 1001}},
            {
                "Token": {
                    "id": 555,
                    "created": "2026-01-01 10:00:00.000000",
                    "updated": "2026-01-01 10:00:00.000000",
                    "token": "S1",
                }
            },
            {"UserApiKey": user_api_key_payload},
        ]
    }


@pytest.fixture
def installation_response_payload():
    return {
        "Response": [
            {"Id": {"id": 1}},
            {"Token": {"token": "T1"}},
            {"ServerPublicKey": {"server_public_key": "PK1"}},
        ]
    }


@pytest.fixture
def make_session():
    def _make(token: str = "S1", valid_until: datetime | None = None) -> SessionContext:
        return SessionContext(
            token=token,
            valid_until=valid_until or datetime.now(timezone.utc) + timedelta(hours=1),
            user_id=42,
            user_api_key=SessionUserApiKey(
                id=42,
                requested_by_user=UserInformation(7, "A", "a", 3600),
                granted_by_user=UserInformation(8, "B", "b", 3600),
            ),
        )

    return _make


@pytest.fixture
def api_context(keypair, make_session):
    return ApiContext(
        api_key="access-token",
        environment=Environment.SANDBOX,
        installation_context=InstallationContext(
            token="T1",
            private_key_client=keypair.private_key_pem,
            public_key_client=keypair.public_key_pem,
            public_key_server="PK1",
        ),
        session_context=make_session(),
    )
