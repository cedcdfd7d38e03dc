from __future__ import annotations

import os
from pathlib import Path


def _parse_line(line: str) -> tuple[str, str] | None:
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    if line.startswith("export "):
        line = line[len("export ") :]
    key, value = line.split("=", 1)
    return key.strip(), value.strip().strip('"').strip("'")


def load_env_file_if_present(path: str | Path = ".env", override: bool = False) -> dict[str, str]:
    """Load simple KEY=VALUE pairs from a .env file if present.

    Used for BUNQ_ACCESS_TOKEN, BUNQ_CLIENT_ID/SECRET and friends so the
    scripts work without exporting anything. Lines starting with '#' are
    ignored, an ``export`` prefix is accepted and quoted values are unquoted.

    Returns the pairs found in the file. ``os.environ`` is updated too, without
    touching keys that are already set unless ``override`` is True.
    """
    env_path = Path(path)
    loaded: dict[str, str] = {}
    if not env_path.exists():
        return loaded

    for raw in env_path.read_text(encoding="utf-8").splitlines():
        parsed = _parse_line(raw)
        if parsed is None:
            continue
        key, value = parsed
        if override or key not in os.environ:
            os.environ[key] = value
        loaded[key] = value
    return loaded
