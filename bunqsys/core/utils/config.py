"""Configuration loading utilities using importlib.

Profiles are plain dicts stored under a module-level name (``CONFIGURATION``
by default) so they can be swapped by pointing at another module.

Supports profile inheritance using the "__inherits__" key.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

logger = logging.getLogger(__name__)

INHERITS_KEY = "__inherits__"


class ConfigError(Exception):
    """Raised when configuration loading or resolution fails."""

    pass


def load_config_from_module(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: Any | None = None,
) -> Any:
    """Load a configuration object from a Python module using importlib.

    Args:
        module_path: Dotted module path (e.g., "bunqsys.core.api_config")
        config_name: Name of the configuration object to retrieve
        default: Value returned when the module or attribute is missing

    Examples:
        >>> profiles = load_config_from_module("bunqsys.core.api_config")
        >>> custom = load_config_from_module("myapp.bunq_profiles", "PROFILES")
    """
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        logger.warning(f"Could not import module '{module_path}': {e}")
        return default

    if not hasattr(module, config_name):
        logger.warning(f"Module '{module_path}' does not have attribute '{config_name}'")
        return default

    logger.debug(f"Loaded configuration from {module_path}.{config_name}")
    return getattr(module, config_name)


def resolve_config_inheritance(config_dict: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Resolve "__inherits__" links between named profiles.

    A child profile starts from a copy of its fully resolved parent and then
    overrides the keys it sets itself. The "__inherits__" key never survives
    into the result.

    Raises:
        ConfigError: If circular inheritance is detected or a parent is missing

    Examples:
        >>> config = {
        ...     "production": {"base_url": "https://api.bunq.com/v1", "timeout": 30.0},
        ...     "sandbox": {"__inherits__": "production", "base_url": "https://sandbox/v1"},
        ... }
        >>> resolve_config_inheritance(config)["sandbox"]["timeout"]
        30.0
    """
    resolved_configs: dict[str, dict[str, Any]] = {}

    def _resolve_single(name: str, chain: tuple[str, ...]) -> dict[str, Any]:
        if name in chain:
            raise ConfigError(f"Circular inheritance detected: {' -> '.join(chain + (name,))}")

        if name in resolved_configs:
            return resolved_configs[name]

        config = config_dict[name]
        parent_name = config.get(INHERITS_KEY)
        if parent_name is None:
            resolved = dict(config)
        else:
            if parent_name not in config_dict:
                raise ConfigError(
                    f"Configuration '{name}' inherits from '{parent_name}', "
                    f"but '{parent_name}' not found"
                )
            resolved = dict(_resolve_single(parent_name, chain + (name,)))
            resolved.update({k: v for k, v in config.items() if k != INHERITS_KEY})
            logger.debug(f"Resolved inheritance for '{name}' from '{parent_name}'")

        resolved_configs[name] = resolved
        return resolved

    for name in config_dict:
        _resolve_single(name, ())

    return resolved_configs


def load_and_resolve_config(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: dict[str, dict[str, Any]] | None = None,
) -> dict[str, dict[str, Any]]:
    """Load profiles from a module and resolve all inheritance relationships."""
    raw_config = load_config_from_module(module_path, config_name, default)

    if raw_config is None or not isinstance(raw_config, dict):
        logger.warning(f"Invalid configuration loaded from {module_path}, using default")
        return default or {}

    try:
        resolved = resolve_config_inheritance(raw_config)
    except ConfigError as e:
        logger.error(f"Failed to resolve configuration inheritance: {e}")
        raise
    logger.debug(f"Loaded and resolved {len(resolved)} profiles from {module_path}")
    return resolved
