"""Cloud provider package: provider-agnostic Protocol and public exports."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import CloudInstance, CloudInstanceGroup, ProbeResult


@runtime_checkable
class CloudProvider(Protocol):
    """Protocol that every cloud provider backend must satisfy."""

    async def probe(self) -> ProbeResult:
        """Discover platform, configuration, instance and (optionally) its group."""
        ...

    async def get_metadata_userdata(self) -> str: ...

    async def get_metadata_cloud_identifier(self) -> str: ...

    async def get_metadata_zone(self) -> str: ...

    async def get_metadata_instance_id(self) -> str: ...

    async def get_metadata_hostname(self) -> str: ...

    async def get_instance(self, instance_id: str, zone: str) -> CloudInstance: ...

    async def get_instance_group(self, group_id: str, zone: str) -> CloudInstanceGroup: ...

    async def close(self) -> None:
        """Release network resources held by the backend."""
        ...


__all__ = ["CloudInstance", "CloudInstanceGroup", "CloudProvider", "ProbeResult"]
