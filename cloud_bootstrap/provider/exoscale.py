"""Exoscale backend: metadata discovery, signed API access and instance-pool readiness."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from ..cloud_config import CloudConfiguration
from ..config import AppConfig
from ..exceptions import (
    AuthenticationError,
    CloudProviderError,
    ConfigurationError,
    HttpError,
    NotAvailable,
    ResourceUnreachable,
    UserDataError,
)
from ..http_client import HttpClient
from .exoscale_api import ExoscaleAPICredentials, ExoscaleInstance, ExoscaleInstancePool, build_signature
from .models import CloudInstance, CloudInstanceGroup, ProbeResult

logger = logging.getLogger(__name__)

EXOSCALE_CLOUD_IDENTIFIER = "Exoscale Compute Platform"

EXOSCALE_METADATA_URL = "http://169.254.169.254/latest"
EXOSCALE_API_ENDPOINT = "https://api-{zone}.exoscale.com"
EXOSCALE_METADATA_DEFAULT_TIMEOUT_SECS = 5
EXOSCALE_API_DEFAULT_TIMEOUT_SECS = 5

Sleep = Callable[[float], Awaitable[Any]]


class ExoscaleCloudProvider:
    """Implements the CloudProvider protocol for Exoscale Compute.

    Holds one HTTP client for the metadata server and one for the API. API
    credentials are installed once, from the user-data document, during
    ``probe()``.
    """

    name = "exoscale"

    def __init__(
        self,
        *,
        metadata_url: str = EXOSCALE_METADATA_URL,
        api_endpoint: str = EXOSCALE_API_ENDPOINT,
        metadata_timeout: float = EXOSCALE_METADATA_DEFAULT_TIMEOUT_SECS,
        verify_ssl: bool = True,
        sleep: Sleep = asyncio.sleep,
    ):
        self._metadata_url = metadata_url.rstrip("/")
        self._api_endpoint = api_endpoint.rstrip("/")
        self._metadata_client = HttpClient(metadata_timeout)
        self._api_client = HttpClient(EXOSCALE_API_DEFAULT_TIMEOUT_SECS, verify_ssl=verify_ssl)
        self._credentials: ExoscaleAPICredentials | None = None
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: AppConfig) -> ExoscaleCloudProvider:
        return cls(
            metadata_url=config.metadata.base_url,
            api_endpoint=config.exoscale.api_endpoint,
            metadata_timeout=config.metadata.timeout_secs,
            verify_ssl=config.exoscale.verify_ssl,
        )

    def set_api_timeout(self, timeout_secs: float) -> None:
        self._api_client.set_timeout(timeout_secs)

    def set_api_credentials(self, credentials: ExoscaleAPICredentials) -> None:
        self._credentials = credentials

    # ── Probing ─────────────────────────────────────────────────────

    async def probe(self) -> ProbeResult:
        logger.debug("Probing Exoscale cloud provider")
        identifier = await self.get_metadata_cloud_identifier()
        if identifier != EXOSCALE_CLOUD_IDENTIFIER:
            logger.debug("Not running in Exoscale cloud (cloud-identifier=%r)", identifier)
            raise NotAvailable(f"Unexpected cloud identifier: {identifier!r}")

        logger.info("Loading configuration from user-data")
        user_data = await self.get_metadata_userdata()
        try:
            configuration = CloudConfiguration.from_str(user_data)
        except UserDataError as exc:
            logger.error("Unable to parse cloud configuration: %s", exc)
            raise ConfigurationError(str(exc)) from exc

        logger.info("Loading instance data from cloud metadata server")
        instance = await self.probe_basic_instance_data()

        if configuration.provider.exoscale is None:
            logger.info("No Exoscale provider configuration, skipping API lookups")
            return ProbeResult(configuration, instance, None)

        try:
            instance, group = await self.probe_advanced_instance_data(configuration, instance)
        except CloudProviderError as exc:
            logger.warning("Falling back to metadata-only instance data: %s", exc)
            group = None

        return ProbeResult(configuration, instance, group)

    async def probe_basic_instance_data(self) -> CloudInstance:
        instance_id = await self.get_metadata_instance_id()
        logger.debug("Found instance id = %s", instance_id)

        hostname = await self.get_metadata_hostname()
        logger.debug("Found hostname = %s", hostname)

        zone = await self.get_metadata_zone()
        logger.debug("Found zone = %s", zone)

        return CloudInstance(instance_id=instance_id, hostname=hostname, zone=zone)

    async def probe_advanced_instance_data(
        self, configuration: CloudConfiguration, instance: CloudInstance,
    ) -> tuple[CloudInstance, CloudInstanceGroup | None]:
        """Enrich ``instance`` from the API and wait for its instance pool, if any."""
        api_options = configuration.provider.exoscale
        if api_options is None:
            raise ConfigurationError("No Exoscale provider configuration")

        logger.info("Configuring Exoscale API client")
        self.set_api_credentials(ExoscaleAPICredentials(api_options.api_key, api_options.api_secret))
        self.set_api_timeout(api_options.api_timeout_secs)

        logger.info("Loading instance data from API", extra={"instance_id": instance.instance_id, "zone": instance.zone})
        details = await self.get_instance(instance.instance_id, instance.zone)
        instance = replace(
            instance,
            manager_id=details.manager_id,
            ipv4_address=details.ipv4_address,
            ipv6_address=details.ipv6_address,
        )

        if instance.manager_id is None:
            return instance, None

        group = await self.wait_for_instance_group(
            instance.manager_id, instance.zone, api_options.api_retry_delay_secs,
        )
        return instance, group

    async def wait_for_instance_group(self, group_id: str, zone: str, retry_delay_secs: float) -> CloudInstanceGroup:
        """Poll the instance pool until it has reached its target size.

        There is no upper bound on the number of attempts. A fetch failure is
        not retried and propagates to the caller.
        """
        logger.info("Waiting for all instances to be ready", extra={"group_id": group_id, "zone": zone})
        attempt = 0
        while True:
            attempt += 1
            group = await self.get_instance_group(group_id, zone)
            if group.is_complete:
                logger.info(
                    "Instance pool complete with %d instances", group.size,
                    extra={"group_id": group_id, "attempt": attempt},
                )
                return group
            logger.debug(
                "Not yet fully available (%d/%d)", len(group.instances), group.size,
                extra={"group_id": group_id, "attempt": attempt},
            )
            await self._sleep(retry_delay_secs)

    # ── Metadata ────────────────────────────────────────────────────

    async def _metadata_get(self, path: str) -> str:
        logger.debug("Retrieving metadata from path: %s", path)
        uri = f"{self._metadata_url}/{path}"
        try:
            return await self._metadata_client.request_get(uri)
        except HttpError as exc:
            raise ResourceUnreachable(f"Metadata {path} unreachable: {exc}") from exc

    async def get_metadata_userdata(self) -> str:
        return await self._metadata_get("user-data")

    async def get_metadata_cloud_identifier(self) -> str:
        return await self._metadata_get("meta-data/cloud-identifier")

    async def get_metadata_zone(self) -> str:
        return (await self._metadata_get("meta-data/availability-zone")).strip()

    async def get_metadata_instance_id(self) -> str:
        return (await self._metadata_get("meta-data/instance-id")).strip()

    async def get_metadata_hostname(self) -> str:
        return (await self._metadata_get("meta-data/local-hostname")).strip()

    # ── API ─────────────────────────────────────────────────────────

    async def _api_get(self, zone: str, resource: str) -> dict[str, Any]:
        logger.debug("Retrieving API data from path: %s", resource)
        path = f"/v2/{resource}"
        uri = self._api_endpoint.replace("{zone}", zone) + path

        if self._credentials is None:
            raise AuthenticationError("Exoscale API credentials are not configured")

        signature = build_signature(self._credentials, "GET", path)

        try:
            response = await self._api_client.request_get(uri, {"Authorization": signature})
        except HttpError as exc:
            raise ResourceUnreachable(f"API {path} unreachable: {exc}") from exc

        try:
            data = json.loads(response)
        except ValueError as exc:
            logger.error("Exoscale API deserialization: %s", exc)
            raise NotAvailable(f"Invalid JSON from {path}") from exc
        if not isinstance(data, dict):
            raise NotAvailable(f"Unexpected response shape from {path}")
        return data

    async def get_instance(self, instance_id: str, zone: str) -> CloudInstance:
        data = await self._api_get(zone, f"instance-pool/{instance_id}")
        try:
            instance = ExoscaleInstance.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.error("Exoscale API deserialization: %s", exc)
            raise NotAvailable(f"Unexpected instance shape for {instance_id}") from exc

        return CloudInstance(
            instance_id=instance.id,
            manager_id=instance.manager.id if instance.manager else None,
            hostname=instance.name,
            zone=zone,
            ipv4_address=instance.ipv4_address,
            ipv6_address=instance.ipv6_address,
        )

    async def get_instance_group(self, group_id: str, zone: str) -> CloudInstanceGroup:
        data = await self._api_get(zone, f"instance-pool/{group_id}")
        try:
            pool = ExoscaleInstancePool.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.error("Exoscale API deserialization: %s", exc)
            raise NotAvailable(f"Unexpected instance pool shape for {group_id}") from exc

        instances = []
        for member in pool.instances:
            instances.append(await self.get_instance(member.id, zone))

        return CloudInstanceGroup(instance_group_id=group_id, size=pool.size, instances=instances)

    # ── Lifecycle ───────────────────────────────────────────────────

    async def close(self) -> None:
        await self._metadata_client.close()
        await self._api_client.close()

    async def __aenter__(self) -> ExoscaleCloudProvider:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
