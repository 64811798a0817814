"""
Configuration loader for interlude.

Loads interceptor settings from:
1. Project-level: ./interlude.toml or ./interlude.yaml
2. User-level: ~/.interlude/config.toml or ~/.interlude/config.yaml
3. Environment variables (INTERLUDE_<TYPE>_<FIELD>, highest priority)
4. .env files (automatically loaded from current directory)

Priority: Environment vars > Config file > Interceptor defaults

Example ``interlude.toml``:

    [interceptors]
    chain = ["logging", "retry", "cache", "token_limit"]

    [interceptors.retry]
    max_attempts = 5
    initial_delay_ms = 500

    [interceptors.token_limit]
    limit = 4000
"""

from __future__ import annotations

import dataclasses
import os
import tomllib
import warnings
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from interlude.interceptors.base import Interceptor
from interlude.interceptors.budget import CostTracker
from interlude.interceptors.cache import CacheInterceptor
from interlude.interceptors.context import SlidingWindow, TokenLimiter
from interlude.interceptors.logging import LoggingInterceptor
from interlude.interceptors.ratelimit import RateLimiter
from interlude.interceptors.retry import RetryInterceptor
from interlude.interceptors.timeout import TimeoutInterceptor

# Auto-load .env file if it exists
load_dotenv()

ENV_PREFIX = "INTERLUDE"

INTERCEPTOR_TYPES: dict[str, type[Interceptor]] = {
    "retry": RetryInterceptor,
    "cache": CacheInterceptor,
    "rate_limit": RateLimiter,
    "token_limit": TokenLimiter,
    "sliding_window": SlidingWindow,
    "logging": LoggingInterceptor,
    "cost_tracking": CostTracker,
    "timeout": TimeoutInterceptor,
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def find_config_file() -> Path | None:
    """Find configuration file in standard locations.

    Checks in order:
    1. ./interlude.toml
    2. ./interlude.yaml
    3. ~/.interlude/config.toml
    4. ~/.interlude/config.yaml

    Returns:
        Path to config file or None if not found
    """
    project_dir = Path.cwd()
    user_dir = Path.home() / ".interlude"
    candidates = [
        project_dir / "interlude.toml",
        project_dir / "interlude.yaml",
        user_dir / "config.toml",
        user_dir / "config.yaml",
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


def load_toml(path: Path) -> dict[str, Any]:
    """Load TOML configuration file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration from file.

    Args:
        path: Explicit config file. Defaults to the first file found by
            find_config_file().

    Returns:
        Configuration dictionary or empty dict if no config found
    """
    config_path = Path(path) if path is not None else find_config_file()
    if not config_path:
        return {}

    try:
        if config_path.suffix == ".toml":
            return load_toml(config_path)
        elif config_path.suffix in (".yaml", ".yml"):
            return load_yaml(config_path)
        else:
            return {}
    except Exception as e:
        # Don't fail if config can't be loaded, just warn
        warnings.warn(f"Failed to load config from {config_path}: {e}")
        return {}


def _config_fields(cls: type[Interceptor]) -> dict[str, dataclasses.Field[Any]]:
    return {f.name: f for f in dataclasses.fields(cls) if f.init and f.name != "name"}


def _coerce(raw: str, f: dataclasses.Field[Any]) -> Any:
    """Convert an environment string to the type of a dataclass field."""
    default = f.default
    annotation = str(f.type)

    if isinstance(default, bool) or annotation.startswith("bool"):
        value = raw.strip().lower()
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        raise ValueError(f"Invalid boolean for {f.name}: {raw!r}")
    if annotation.startswith("float"):
        return float(raw)
    if annotation.startswith("int") or isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    if "set" in annotation:
        return {part.strip() for part in raw.split(",") if part.strip()}
    return raw


def get_interceptor_settings(
    interceptor_type: str,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Get settings for one interceptor type.

    Merges the ``[interceptors.<type>]`` table with environment overrides
    named ``INTERLUDE_<TYPE>_<FIELD>`` (e.g. ``INTERLUDE_RETRY_MAX_ATTEMPTS``).
    Environment values are converted to the field's type.

    Args:
        interceptor_type: Registered type name (see INTERCEPTOR_TYPES).
        config: Loaded configuration (default: load_config()).

    Returns:
        Keyword arguments for the interceptor class.
    """
    cls = INTERCEPTOR_TYPES.get(interceptor_type)
    if cls is None:
        raise ValueError(f"Unknown interceptor type: {interceptor_type!r}")

    if config is None:
        config = load_config()
    section = config.get("interceptors", {}) or {}
    settings = dict(section.get(interceptor_type, {}) or {})

    for field_name, f in _config_fields(cls).items():
        env_var = f"{ENV_PREFIX}_{interceptor_type}_{field_name}".upper()
        raw = os.environ.get(env_var)
        if raw is not None:
            settings[field_name] = _coerce(raw, f)

    return settings


def build_interceptor(interceptor_type: str, **settings: Any) -> Interceptor:
    """Instantiate a registered interceptor type with the given settings."""
    cls = INTERCEPTOR_TYPES.get(interceptor_type)
    if cls is None:
        raise ValueError(f"Unknown interceptor type: {interceptor_type!r}")

    unknown = set(settings) - set(_config_fields(cls))
    if unknown:
        raise ValueError(
            f"Unknown settings for {interceptor_type}: {', '.join(sorted(unknown))}"
        )
    return cls(**settings)


def interceptors_from_config(config: dict[str, Any] | None = None) -> list[Interceptor]:
    """Build an interceptor chain from configuration.

    Reads ``interceptors.chain``: a list of type names, or tables with a
    ``type`` key plus inline settings. Inline settings override the
    type's own table; environment overrides win over both.

    Returns:
        Interceptors in chain order (empty if no chain is configured).
    """
    if config is None:
        config = load_config()
    section = config.get("interceptors", {}) or {}

    interceptors: list[Interceptor] = []
    for entry in section.get("chain", []) or []:
        if isinstance(entry, str):
            interceptor_type, inline = entry, {}
        elif isinstance(entry, dict) and "type" in entry:
            inline = {k: v for k, v in entry.items() if k != "type"}
            interceptor_type = entry["type"]
        else:
            raise ValueError(f"Invalid chain entry: {entry!r}")

        settings = get_interceptor_settings(interceptor_type, config)
        env_keys = {
            k for k in settings
            if f"{ENV_PREFIX}_{interceptor_type}_{k}".upper() in os.environ
        }
        settings.update({k: v for k, v in inline.items() if k not in env_keys})
        interceptors.append(build_interceptor(interceptor_type, **settings))

    return interceptors


__all__ = [
    "INTERCEPTOR_TYPES",
    "find_config_file",
    "load_config",
    "load_toml",
    "load_yaml",
    "get_interceptor_settings",
    "build_interceptor",
    "interceptors_from_config",
]
