"""Persistence of the credential bundle.

The bundle is written as UTF-8 JSON and then made owner-read-only. There is
no encryption at rest; file permissions are the only protection.
"""

from __future__ import annotations

import json
import logging
import os
import stat
from collections.abc import Callable
from pathlib import Path

from bunqsys.context import ApiContext, SetupContext
from bunqsys.core.api_config import ApiConfig
from bunqsys.data.auth import load_access_token
from bunqsys.errors import CredentialStoreError, InvalidEnvironmentError
from bunqsys.handshake import bootstrap_api_context
from bunqsys.signing import load_private_key

logger = logging.getLogger(__name__)

OWNER_READ_ONLY = 0o400


def _set_read_only(path: Path) -> None:
    if os.name == "posix":
        os.chmod(path, OWNER_READ_ONLY)
    else:
        # Only the read-only attribute is available elsewhere.
        os.chmod(path, stat.S_IREAD)


def _discard(path: Path) -> None:
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD)
    path.unlink()


def persist_api_context(context: ApiContext, path: str | Path) -> Path:
    """Write ``context`` to ``path`` and restrict it to the owner.

    The JSON goes to a sibling temp file which is locked down before being
    moved over ``path``, so a failure never leaves a half-written bundle
    behind. OSErrors (write or chmod) propagate to the caller.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")

    logger.debug("Persisting api context")
    if tmp.exists():
        # Left read-only by an interrupted earlier write.
        _discard(tmp)
    try:
        tmp.write_text(json.dumps(context.as_json(), ensure_ascii=False, indent=2), encoding="utf-8")
        _set_read_only(tmp)
        os.replace(tmp, path)
    except OSError:
        if tmp.exists():
            _discard(tmp)
        raise

    logger.info(f"Persisted api context to {path}")
    return path


def load_api_context(path: str | Path) -> ApiContext | None:
    """Load a persisted bundle, or None when ``path`` does not exist.

    Raises:
        CredentialStoreError: If the file cannot be read or does not hold a
            complete bundle.
    """
    path = Path(path)
    if not path.exists():
        return None

    logger.debug(f"Context file {path} exists, using it to recreate the api context")
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CredentialStoreError(path, f"unreadable ({exc})") from exc

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise CredentialStoreError(path, f"not valid JSON ({exc})") from exc
    if not isinstance(data, dict):
        raise CredentialStoreError(path, "expected a JSON object")

    try:
        context = ApiContext.from_mapping(data)
    except KeyError as exc:
        raise CredentialStoreError(path, f"missing field {exc.args[0]!r}") from exc
    except (TypeError, ValueError, InvalidEnvironmentError) as exc:
        raise CredentialStoreError(path, str(exc)) from exc

    try:
        load_private_key(context.installation_context.private_key_client)
    except (TypeError, ValueError) as exc:
        raise CredentialStoreError(path, f"unusable client private key ({exc})") from exc
    return context


Bootstrap = Callable[[SetupContext, ApiConfig], ApiContext]


def bootstrap_from_env(setup: SetupContext, config: ApiConfig) -> ApiContext:
    """Run the handshake with the access token found in BUNQ_ACCESS_TOKEN or .env."""
    return bootstrap_api_context(load_access_token(), setup.environment, config)


def get_api_context(
    setup: SetupContext,
    bootstrap: Bootstrap = bootstrap_from_env,
    config: ApiConfig | None = None,
) -> ApiContext:
    """Load the bundle from ``setup.storage_path`` or create and persist one.

    Args:
        setup: Bootstrap inputs including where the bundle lives
        bootstrap: Callable running the full handshake; only invoked when no
            bundle is stored yet. Defaults to :func:`bootstrap_from_env`.
        config: API configuration; defaults to the profile of ``setup.environment``
    """
    stored = load_api_context(setup.storage_path)
    if stored is not None:
        return stored

    config = config or ApiConfig.for_environment(setup.environment)
    context = bootstrap(setup, config)
    persist_api_context(context, setup.storage_path)
    return context


__all__ = [
    "OWNER_READ_ONLY",
    "bootstrap_from_env",
    "get_api_context",
    "load_api_context",
    "persist_api_context",
]
