"""Data models for the instance and instance group discovered from a provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from ..cloud_config import CloudConfiguration


@dataclass(frozen=True)
class CloudInstance:
    """The instance the agent runs on, or one member of its group."""

    instance_id: str
    hostname: str
    zone: str
    manager_id: str | None = None  # id of the owning instance group, if any
    ipv4_address: str | None = None
    ipv6_address: str | None = None


@dataclass(frozen=True)
class CloudInstanceGroup:
    """A provider-managed set of instances with a target size."""

    instance_group_id: str
    size: int
    instances: list[CloudInstance] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return len(self.instances) == self.size


class ProbeResult(NamedTuple):
    configuration: CloudConfiguration
    instance: CloudInstance
    instance_group: CloudInstanceGroup | None = None
