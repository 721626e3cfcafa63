"""Data model for the user-data configuration document.

The document is TOML and has two optional top-level tables::

    [provider.exoscale]
    api_key = "EXO..."
    api_secret = "..."
    api_timeout_secs = 5        # optional
    api_retry_delay_secs = 5    # optional

    [host.user.alice.ssh]
    authorized_keys = ["ssh-ed25519 AAAA... alice@laptop"]

Every table may be absent; the model is then filled with defaults. Unknown
keys are ignored.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from typing import Any

from .exceptions import UserDataError
from .provider.exoscale_config import ExoscaleCloudProviderConfiguration


def _table(data: dict[str, Any], key: str, where: str) -> dict[str, Any]:
    """Return the sub-table ``key`` of ``data``, or an empty dict when absent."""
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise UserDataError(f"{where}{key} must be a table")
    return value


@dataclass(frozen=True)
class UserSSHConfiguration:
    authorized_keys: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], username: str) -> UserSSHConfiguration:
        keys = data.get("authorized_keys", [])
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            raise UserDataError(f"host.user.{username}.ssh.authorized_keys must be a list of strings")
        return cls(authorized_keys=list(keys))


@dataclass(frozen=True)
class UserConfiguration:
    ssh: UserSSHConfiguration = field(default_factory=UserSSHConfiguration)

    @classmethod
    def from_dict(cls, data: dict[str, Any], username: str) -> UserConfiguration:
        ssh = _table(data, "ssh", f"host.user.{username}.")
        return cls(ssh=UserSSHConfiguration.from_dict(ssh, username))


@dataclass(frozen=True)
class HostConfiguration:
    user: dict[str, UserConfiguration] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HostConfiguration:
        users = _table(data, "user", "host.")
        parsed: dict[str, UserConfiguration] = {}
        for username, user_data in users.items():
            if not isinstance(user_data, dict):
                raise UserDataError(f"host.user.{username} must be a table")
            parsed[username] = UserConfiguration.from_dict(user_data, username)
        return cls(user=parsed)


@dataclass(frozen=True)
class ProviderConfiguration:
    exoscale: ExoscaleCloudProviderConfiguration | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderConfiguration:
        if "exoscale" not in data:
            return cls()
        return cls(exoscale=ExoscaleCloudProviderConfiguration.from_dict(_table(data, "exoscale", "provider.")))


@dataclass(frozen=True)
class CloudConfiguration:
    provider: ProviderConfiguration = field(default_factory=ProviderConfiguration)
    host: HostConfiguration = field(default_factory=HostConfiguration)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CloudConfiguration:
        return cls(
            provider=ProviderConfiguration.from_dict(_table(data, "provider", "")),
            host=HostConfiguration.from_dict(_table(data, "host", "")),
        )

    @classmethod
    def from_str(cls, document: str) -> CloudConfiguration:
        """Parse a TOML user-data document. Raises UserDataError."""
        try:
            raw = tomllib.loads(document)
        except tomllib.TOMLDecodeError as exc:
            raise UserDataError(f"Error parsing configuration document: {exc}") from exc
        return cls.from_dict(raw)
