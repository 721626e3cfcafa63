"""Tests for the bootstrap orchestrator."""

from __future__ import annotations

import subprocess
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cloud_bootstrap.bootstrap import Bootstrapper
from cloud_bootstrap.cloud_config import (
    CloudConfiguration,
    HostConfiguration,
    UserConfiguration,
    UserSSHConfiguration,
)
from cloud_bootstrap.config import HostConfig
from cloud_bootstrap.exceptions import (
    ConfigurationError,
    HostIOError,
    HostnameError,
    NotAvailable,
    ResourceUnreachable,
    SSHSetupError,
)
from cloud_bootstrap.host import Host
from cloud_bootstrap.provider.models import CloudInstance, CloudInstanceGroup, ProbeResult

INSTANCE = CloudInstance(instance_id="i-1", hostname="web-1", zone="ch-gva-2")


def _configuration(users: dict[str, list[str]]) -> CloudConfiguration:
    return CloudConfiguration(host=HostConfiguration(user={
        name: UserConfiguration(ssh=UserSSHConfiguration(authorized_keys=keys)) for name, keys in users.items()
    }))


def _mock_host() -> MagicMock:
    host = MagicMock(spec=Host)
    host.ssh_host_key_dir = "/var/lib/ssh"
    host.ssh_host_key_algorithms = ["ed25519"]
    host.user_home.side_effect = lambda name: f"/home/{name}"
    return host


def _provider(result=None, error=None) -> MagicMock:
    provider = MagicMock()
    provider.name = "exoscale"
    provider.probe = AsyncMock(return_value=result, side_effect=error)
    return provider


class TestConfigureHost:
    def test_full_sequence(self):
        host = _mock_host()
        Bootstrapper(_provider(), host).configure_host(_configuration({"alice": ["k1", "k2"]}), INSTANCE)

        host.set_hostname.assert_called_once_with("web-1")
        host.ensure_ssh_hostkey.assert_called_once_with("ed25519")
        host.ensure_directory.assert_any_call("/var/lib/ssh")
        host.ensure_directory.assert_any_call("/home/alice/.ssh")
        host.ensure_file.assert_called_once_with("/home/alice/.ssh/authorized_keys", "k1\nk2")

    def test_users_without_keys_are_skipped(self):
        host = _mock_host()
        Bootstrapper(_provider(), host).configure_host(_configuration({"bob": []}), INSTANCE)
        host.ensure_file.assert_not_called()

    def test_hostname_failure_is_not_fatal(self):
        host = _mock_host()
        host.set_hostname.side_effect = HostnameError("hostnamectl failed")
        Bootstrapper(_provider(), host).configure_host(_configuration({"alice": ["k1"]}), INSTANCE)
        host.ensure_file.assert_called_once()

    def test_host_key_failure_is_not_fatal(self):
        host = _mock_host()
        host.ensure_ssh_hostkey.side_effect = SSHSetupError("ssh-keygen failed")
        Bootstrapper(_provider(), host).configure_host(_configuration({"alice": ["k1"]}), INSTANCE)
        host.ensure_file.assert_called_once()

    def test_one_user_failure_does_not_stop_others(self):
        host = _mock_host()
        host.ensure_file.side_effect = [HostIOError("disk full"), None]
        Bootstrapper(_provider(), host).configure_host(_configuration({"alice": ["k1"], "bob": ["k2"]}), INSTANCE)
        assert host.ensure_file.call_count == 2


class TestRun:
    @pytest.mark.asyncio
    async def test_success_configures_host(self):
        host = _mock_host()
        result = ProbeResult(_configuration({}), INSTANCE, None)
        assert await Bootstrapper(_provider(result), host).run() == 0
        host.set_hostname.assert_called_once_with("web-1")

    @pytest.mark.asyncio
    async def test_with_group(self):
        host = _mock_host()
        group = CloudInstanceGroup(instance_group_id="pool-1", size=1, instances=[INSTANCE])
        result = ProbeResult(_configuration({}), INSTANCE, group)
        assert await Bootstrapper(_provider(result), host).run() == 0

    @pytest.mark.asyncio
    async def test_not_available_exits_cleanly_without_touching_host(self):
        host = _mock_host()
        assert await Bootstrapper(_provider(error=NotAvailable("nope")), host).run() == 0
        assert host.mock_calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ConfigurationError("bad"), ResourceUnreachable("down")])
    async def test_fatal_probe_failure_does_not_touch_host(self, error):
        host = _mock_host()
        assert await Bootstrapper(_provider(error=error), host).run() == 1
        assert host.mock_calls == []


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_metadata_only_bootstrap(self, provider, fake_exoscale, tmp_path):
        fake_exoscale.metadata["user-data"] = (
            '[host.user.alice.ssh]\nauthorized_keys = ["ssh-ed25519 AAAAC3Nza alice@laptop"]\n'
        )
        host = Host(HostConfig(ssh_host_key_dir=str(tmp_path / "ssh"), home_base=str(tmp_path / "home")))
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")

        bootstrapper = Bootstrapper(provider, host)
        with patch("cloud_bootstrap.host.subprocess.run", return_value=completed) as run, \
                patch("cloud_bootstrap.host.pwd.getpwnam", side_effect=KeyError("alice")):
            result = await bootstrapper.probe()
            assert result.instance_group is None
            assert await bootstrapper.run() == 0

        assert fake_exoscale.api_calls == []
        run.assert_any_call(["hostnamectl", "hostname", "--transient", "web-1"], capture_output=True, text=True, check=False)
        keys = tmp_path / "home" / "alice" / ".ssh" / "authorized_keys"
        assert keys.read_text() == "ssh-ed25519 AAAAC3Nza alice@laptop"
