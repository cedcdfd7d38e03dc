from __future__ import annotations

import os
from urllib.parse import urlencode

import requests

from bunqsys.context import SetupContext
from bunqsys.core.api_config import ApiConfig
from bunqsys.core.utils.env import load_env_file_if_present
from bunqsys.errors import AuthError


def load_access_token(env_key: str = "BUNQ_ACCESS_TOKEN", dotenv: bool = True) -> str:
    """Return a previously obtained bunq OAuth access token from environment or .env.

    Raises AuthError if missing.
    """
    if dotenv:
        load_env_file_if_present()
    token = os.getenv(env_key)
    if not token:
        raise AuthError(f"Missing access token. Set {env_key} in environment or .env")
    return token


def create_auth_url(setup: SetupContext, config: ApiConfig) -> str:
    """URL the user opens to grant this application access to their account."""
    query = urlencode(
        {
            "response_type": "code",
            "client_id": setup.client_id,
            "redirect_uri": config.redirect_uri,
        }
    )
    return f"{config.oauth_authorize_url}?{query}"


def exchange_code(code: str, setup: SetupContext, config: ApiConfig) -> str:
    """Exchange the authorization code from the redirect for an access token.

    bunq expects every field as a query parameter on a POST to the token
    endpoint and answers with ``{"access_token": ..., "token_type": ...}``.
    """
    params = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": setup.client_id,
        "client_secret": setup.client_secret,
        "redirect_uri": config.redirect_uri,
    }
    try:
        res = requests.post(config.oauth_token_url, params=params, timeout=config.timeout)
    except requests.RequestException as exc:
        raise AuthError(f"Token exchange failed: {exc}") from exc
    if res.status_code != 200:
        try:
            detail = res.json()
        except ValueError:
            detail = res.text
        raise AuthError(f"Token exchange failed: {res.status_code} {detail}")
    try:
        data = res.json()
    except ValueError as exc:
        raise AuthError(f"Token exchange returned a non-JSON body: {res.text[:200]}") from exc
    if not isinstance(data, dict):
        raise AuthError(f"Token exchange returned unexpected JSON: {data!r}")
    access_token = data.get("access_token")
    if not access_token:
        raise AuthError("Token exchange succeeded but access_token missing in response")
    return access_token
