from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

DEFAULTS: dict[str, Any] = {
    "server": {"host": "127.0.0.1", "port": 8001},
    "database": {"path": "db.sqlite"},
    "status_filter": "strict",
    "logging": {"level": "INFO", "file": "api.log"},
}

# Environment variables that override a single settings key.
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "TASKTRACKER_DB": ("database", "path"),
    "TASKTRACKER_STATUS_FILTER": ("status_filter",),
    "TASKTRACKER_LOG_LEVEL": ("logging", "level"),
}


def load_settings(path: Path, environ: dict[str, str] | None = None) -> dict[str, Any]:
    settings = _deep_copy_dict(DEFAULTS)
    if path.exists():
        with open(path) as f:
            _deep_merge(settings, json.load(f))
    env = os.environ if environ is None else environ
    for var, keys in ENV_OVERRIDES.items():
        if env.get(var):
            _set_path(settings, keys, env[var])
    return settings


def resolve_path(data_dir: Path, value: str | None) -> Path | None:
    """Resolve a settings path relative to the data directory."""
    if not value:
        return None
    p = Path(value).expanduser()
    return p if p.is_absolute() else (data_dir / p).resolve()


def strict_status(settings: dict[str, Any]) -> bool:
    return settings.get("status_filter", "strict") != "lenient"


def _deep_copy_dict(d: dict) -> dict:
    return {k: _deep_copy_dict(v) if isinstance(v, dict) else v for k, v in d.items()}


def _deep_merge(base: dict, override: dict) -> None:
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v


def _set_path(d: dict, keys: tuple[str, ...], value: Any) -> None:
    for k in keys[:-1]:
        d = d.setdefault(k, {})
    d[keys[-1]] = value
