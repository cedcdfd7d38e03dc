"""bunq API endpoint configuration.

This module defines the CONFIGURATION dict which maps profile names to the
values every collaborator needs: base URL, header names, OAuth URLs and
timeouts. One profile exists per :class:`~bunqsys.context.Environment`.

Example usage:
    from bunqsys.core.api_config import ApiConfig
    from bunqsys.context import Environment

    config = ApiConfig.for_environment(Environment.SANDBOX)
    config.url("/installation")

Environment overrides:
    # Point every profile at a different API host (e.g. a local mock)
    export BUNQ_API_URL=http://127.0.0.1:8080/v1

Configuration inheritance:
    "sandbox": {
        "__inherits__": "production",   # everything not overridden is shared
        "base_url": "https://public-api.sandbox.bunq.com/v1",
    }
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from bunqsys.context import Environment
from bunqsys.core.utils.config import ConfigError, load_and_resolve_config, resolve_config_inheritance

CONFIGURATION: dict[str, dict[str, Any]] = {
    "production": {
        "base_url": "https://api.bunq.com/v1",
        "oauth_authorize_url": "https://oauth.bunq.com/auth",
        "oauth_token_url": "https://api.oauth.bunq.com/v1/token",
        "redirect_uri": "http://127.0.0.1:5454",
        "header_prefix": "X-Bunq-Client",
        "user_agent": "bunqsys",
        "device_description": "bunqsys",
        "timeout": 30.0,
        "refresh_buffer_seconds": 10,
    },
    "sandbox": {
        "__inherits__": "production",
        "base_url": "https://public-api.sandbox.bunq.com/v1",
        "oauth_authorize_url": "https://oauth.sandbox.bunq.com/auth",
        "oauth_token_url": "https://api-oauth.sandbox.bunq.com/v1/token",
    },
}


@dataclass(frozen=True)
class ApiConfig:
    base_url: str
    oauth_authorize_url: str
    oauth_token_url: str
    redirect_uri: str
    header_prefix: str = "X-Bunq-Client"
    user_agent: str = "bunqsys"
    device_description: str = "bunqsys"
    timeout: float = 30.0
    refresh_buffer_seconds: int = 10

    @property
    def authentication_header(self) -> str:
        return f"{self.header_prefix}-Authentication"

    @property
    def signature_header(self) -> str:
        return f"{self.header_prefix}-Signature"

    def url(self, path: str) -> str:
        """Join ``path`` onto the base URL; absolute URLs are returned as-is."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ApiConfig:
        try:
            return cls(
                base_url=str(data["base_url"]),
                oauth_authorize_url=str(data["oauth_authorize_url"]),
                oauth_token_url=str(data["oauth_token_url"]),
                redirect_uri=str(data["redirect_uri"]),
                header_prefix=str(data.get("header_prefix", "X-Bunq-Client")),
                user_agent=str(data.get("user_agent", "bunqsys")),
                device_description=str(data.get("device_description", "bunqsys")),
                timeout=float(data.get("timeout", 30.0)),
                refresh_buffer_seconds=int(data.get("refresh_buffer_seconds", 10)),
            )
        except KeyError as e:
            raise ConfigError(f"API profile is missing {e.args[0]!r}") from e

    @classmethod
    def for_environment(
        cls,
        environment: Environment | str,
        configuration: dict[str, dict[str, Any]] | None = None,
        config_module: str = __name__,
    ) -> ApiConfig:
        """Build the config of ``environment`` from the named profiles.

        Args:
            environment: Environment (or its name) selecting the profile
            configuration: Raw profiles; when omitted they are loaded from
                ``config_module.CONFIGURATION``
            config_module: Dotted path of the module holding the profiles
        """
        env = Environment.parse(environment)
        if configuration is None:
            profiles = load_and_resolve_config(config_module)
        else:
            profiles = resolve_config_inheritance(configuration)

        name = env.value.lower()
        if name not in profiles:
            raise ConfigError(f"No API profile configured for environment '{name}'")

        data = dict(profiles[name])
        override = os.environ.get("BUNQ_API_URL")
        if override:
            data["base_url"] = override
        return cls.from_mapping(data)
