"""Bootstrap orchestrator: probe the provider, then configure the host."""

from __future__ import annotations

import logging
import os

from .cloud_config import CloudConfiguration
from .exceptions import CloudProviderError, HostError, NotAvailable
from .host import Host
from .provider import CloudProvider
from .provider.models import CloudInstance, ProbeResult

logger = logging.getLogger(__name__)


class Bootstrapper:
    """Single-run pipeline: probe -> set hostname -> host keys -> authorized keys."""

    def __init__(self, provider: CloudProvider, host: Host):
        self._provider = provider
        self._host = host
        self._provider_name = getattr(provider, "name", type(provider).__name__)

    async def probe(self) -> ProbeResult:
        """Run provider discovery. Raises CloudProviderError on a fatal failure."""
        result = await self._provider.probe()

        logger.info(
            "Loaded cloud init data from %s platform", self._provider_name,
            extra={"provider": self._provider_name, "instance_id": result.instance.instance_id},
        )
        if result.instance_group is not None:
            logger.info(
                "Instance belongs to group of %d instances", result.instance_group.size,
                extra={"group_id": result.instance_group.instance_group_id},
            )
        return result

    def configure_host(self, configuration: CloudConfiguration, instance: CloudInstance) -> None:
        """Apply hostname and SSH settings, best-effort.

        Each step logs its own failure and the run carries on with the next.
        """
        try:
            self._host.set_hostname(instance.hostname)
            logger.info("Hostname set to %s", instance.hostname)
        except HostError as exc:
            logger.warning("Unable to set hostname: %s", exc)

        try:
            self._host.ensure_directory(self._host.ssh_host_key_dir)
        except HostError as exc:
            logger.warning("Unable to prepare SSH host key directory: %s", exc)
        else:
            for algorithm in self._host.ssh_host_key_algorithms:
                try:
                    self._host.ensure_ssh_hostkey(algorithm)
                    logger.info("SSH %s host key ready", algorithm)
                except HostError as exc:
                    logger.warning("Unable to generate SSH %s host key: %s", algorithm, exc)

        for username, user_configuration in configuration.host.user.items():
            keys = user_configuration.ssh.authorized_keys
            if not keys:
                continue
            logger.info("Setting ssh keys for %s", username, extra={"username": username})
            try:
                ssh_dir = os.path.join(self._host.user_home(username), ".ssh")
                self._host.ensure_directory(ssh_dir)
                self._host.ensure_file(os.path.join(ssh_dir, "authorized_keys"), "\n".join(keys))
            except HostError as exc:
                logger.warning("Unable to set ssh keys for %s: %s", username, exc, extra={"username": username})

    async def run(self) -> int:
        """Probe, then configure the host. Returns the process exit code.

        Not running on the expected platform is a clean exit. Any other probe
        failure leaves the host untouched and exits non-zero.
        """
        try:
            result = await self.probe()
        except NotAvailable:
            logger.info("Not running on %s", self._provider_name, extra={"provider": self._provider_name})
            return 0
        except CloudProviderError as exc:
            logger.error("Probing %s failed: %s", self._provider_name, exc, extra={"provider": self._provider_name})
            return 1

        self.configure_host(result.configuration, result.instance)
        return 0
