"""Frozen dataclasses for agent settings and YAML loader with env-var interpolation."""

from __future__ import annotations

import os
import re
import types
import typing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

SUPPORTED_PROVIDERS = ("exoscale",)


def _interpolate_env(value: str) -> str:
    """Replace ${ENV_VAR} placeholders with environment variable values."""

    def _replace(match: re.Match) -> str:
        env_key = match.group(1)
        env_val = os.environ.get(env_key)
        if env_val is None:
            raise ConfigError(f"Environment variable '{env_key}' is not set")
        return env_val

    return _ENV_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: Any) -> Any:
    """Recursively interpolate env vars in strings throughout a nested structure."""
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v) for v in obj]
    return obj


@dataclass(frozen=True)
class MetadataConfig:
    base_url: str = "http://169.254.169.254/latest"
    timeout_secs: int = 5


@dataclass(frozen=True)
class ExoscaleSettings:
    api_endpoint: str = "https://api-{zone}.exoscale.com"
    verify_ssl: bool = True


@dataclass(frozen=True)
class HostConfig:
    ssh_host_key_dir: str = "/var/lib/ssh"
    ssh_host_key_algorithms: list[str] = field(default_factory=lambda: ["ed25519"])
    home_base: str = "/home"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    provider: str = "exoscale"
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    exoscale: ExoscaleSettings = field(default_factory=ExoscaleSettings)
    host: HostConfig = field(default_factory=HostConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _get_dataclass_type(ft: Any) -> type | None:
    """Return the underlying dataclass type from a type annotation (handles Optional/X|None)."""
    if isinstance(ft, type) and hasattr(ft, "__dataclass_fields__"):
        return ft
    if isinstance(ft, types.UnionType) or getattr(ft, "__origin__", None) is typing.Union:
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    return None


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    if not isinstance(data, dict):
        return data
    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in hints:
            continue
        dc_type = _get_dataclass_type(hints[key])
        if dc_type is not None and isinstance(value, dict):
            kwargs[key] = _build_nested(dc_type, value)
        else:
            kwargs[key] = value
    return cls(**kwargs)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load and validate agent settings from a YAML file.

    Without a path the built-in defaults are returned, so the agent can run
    on a fresh image with no settings file at all.
    """
    if path is None:
        config = AppConfig()
        _validate(config)
        return config

    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    with open(path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Configuration file is not valid YAML: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _walk_and_interpolate(raw)
    config = _build_nested(AppConfig, raw)
    _validate(config)
    return config


def _validate(config: AppConfig) -> None:
    """Validate configuration values."""
    if config.provider not in SUPPORTED_PROVIDERS:
        raise ConfigError(
            f"provider must be one of {', '.join(SUPPORTED_PROVIDERS)} (got '{config.provider}')"
        )

    if not isinstance(config.metadata.timeout_secs, int) or config.metadata.timeout_secs <= 0:
        raise ConfigError("metadata.timeout_secs must be a positive integer")

    if "{zone}" not in config.exoscale.api_endpoint:
        raise ConfigError("exoscale.api_endpoint must contain a '{zone}' placeholder")
    endpoint = config.exoscale.api_endpoint
    try:
        formatted = endpoint.format(zone="zone")
    except (KeyError, IndexError, ValueError):
        formatted = None
    if formatted != endpoint.replace("{zone}", "zone"):
        raise ConfigError(f"exoscale.api_endpoint may only contain the '{{zone}}' placeholder (got '{endpoint}')")

    if not isinstance(config.host.ssh_host_key_algorithms, list):
        raise ConfigError("host.ssh_host_key_algorithms must be a list")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")
