"""Exoscale API v2 request signing and the small subset of response shapes we read.

REF: https://openapi-v2.exoscale.com
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)

SIGNATURE_VALIDITY_SECS = 120
SIGNATURE_SCHEME = "EXO2-HMAC-SHA256"


@dataclass(frozen=True)
class ExoscaleAPICredentials:
    api_key: str
    api_secret: str = field(repr=False)


# ── Response shapes ─────────────────────────────────────────────────


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


@dataclass(frozen=True)
class ExoscaleInstanceManager:
    manager_type: str
    id: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExoscaleInstanceManager:
        return cls(manager_type=str(data["type"]), id=str(data["id"]))


@dataclass(frozen=True)
class ExoscaleInstance:
    id: str
    name: str
    manager: ExoscaleInstanceManager | None = None
    ipv4_address: str | None = None
    ipv6_address: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExoscaleInstance:
        """Raises KeyError, TypeError or ValueError on an unexpected shape."""
        manager = data.get("manager")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            manager=ExoscaleInstanceManager.from_dict(manager) if manager is not None else None,
            ipv4_address=_optional_str(data, "public-ip"),
            ipv6_address=_optional_str(data, "ipv6-address"),
        )


@dataclass(frozen=True)
class ExoscaleInstancePoolMember:
    id: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExoscaleInstancePoolMember:
        return cls(id=str(data["id"]))


@dataclass(frozen=True)
class ExoscaleInstancePool:
    size: int
    instances: list[ExoscaleInstancePoolMember] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExoscaleInstancePool:
        size = data["size"]
        if isinstance(size, bool) or not isinstance(size, int):
            raise ValueError("'size' must be an integer")
        members = data.get("instances") or []
        if not isinstance(members, list):
            raise ValueError("'instances' must be a list")
        return cls(size=size, instances=[ExoscaleInstancePoolMember.from_dict(m) for m in members])


# ── Signing ─────────────────────────────────────────────────────────


def split_query_params(
    params: Mapping[str, str] | Iterable[tuple[str, str]] | None,
) -> tuple[list[str], list[str]]:
    """Return (names, values) from a single pass over ``params``.

    Both lists come from the same enumeration, so ``names[i]`` is always the
    name of ``values[i]``.
    """
    if not params:
        return [], []
    pairs = list(params.items()) if isinstance(params, Mapping) else list(params)
    names = [name for name, _ in pairs]
    values = [value for _, value in pairs]
    return names, values


def build_expiration_timestamp(validity_secs: int = SIGNATURE_VALIDITY_SECS) -> int:
    try:
        expiration = int(time.time()) + validity_secs
    except (OverflowError, ValueError) as exc:
        logger.error("Error while building expiration timestamp: %s", exc)
        raise AuthenticationError("Unable to compute signature expiration") from exc
    if expiration <= 0:
        raise AuthenticationError("System clock is before the epoch")
    return expiration


def build_authentication_header(api_key: str, param_names: list[str], expiration: int, signature: str) -> str:
    parts = [f"credential={api_key}"]
    if param_names:
        parts.append(f"signed-query-args={':'.join(param_names)}")
    parts.append(f"expires={expiration}")
    parts.append(f"signature={signature}")
    return f"{SIGNATURE_SCHEME} {','.join(parts)}"


def build_signature(
    credentials: ExoscaleAPICredentials,
    method: str,
    path: str,
    body: str | None = None,
    query_params: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
    *,
    expires: int | None = None,
) -> str:
    """Build the ``Authorization`` header value for one API request.

    The signed message is::

        <METHOD> <PATH>
        <BODY>
        <query values joined by ':'>

        <expiration>

    ``expires`` defaults to now + 120s; pass it explicitly to get a
    reproducible header.
    """
    expiration = expires if expires is not None else build_expiration_timestamp()
    names, values = split_query_params(query_params)

    message = f"{method} {path}\n{body or ''}\n{':'.join(values)}\n\n{expiration}"

    try:
        mac = hmac.new(credentials.api_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256)
    except (AttributeError, TypeError, UnicodeEncodeError) as exc:
        logger.error("Error while building signature: %s", exc)
        raise AuthenticationError("Unable to sign request") from exc

    signature = base64.b64encode(mac.digest()).decode("ascii")
    return build_authentication_header(credentials.api_key, names, expiration, signature)
