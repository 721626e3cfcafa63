"""The ``[provider.exoscale]`` section of the user-data document."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..exceptions import UserDataError

DEFAULT_API_TIMEOUT_SECS = 5
DEFAULT_API_RETRY_DELAY_SECS = 5


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        raise UserDataError(f"provider.exoscale.{key} is required")
    if not isinstance(value, str):
        raise UserDataError(f"provider.exoscale.{key} must be a string")
    return value


def _optional_secs(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise UserDataError(f"provider.exoscale.{key} must be a non-negative integer")
    return value


@dataclass(frozen=True)
class ExoscaleCloudProviderConfiguration:
    api_key: str
    api_secret: str = field(repr=False)
    api_timeout_secs: int = DEFAULT_API_TIMEOUT_SECS
    api_retry_delay_secs: int = DEFAULT_API_RETRY_DELAY_SECS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExoscaleCloudProviderConfiguration:
        return cls(
            api_key=_require_str(data, "api_key"),
            api_secret=_require_str(data, "api_secret"),
            api_timeout_secs=_optional_secs(data, "api_timeout_secs", DEFAULT_API_TIMEOUT_SECS),
            api_retry_delay_secs=_optional_secs(data, "api_retry_delay_secs", DEFAULT_API_RETRY_DELAY_SECS),
        )
