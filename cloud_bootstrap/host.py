"""Host mutation: hostname, SSH host keys and authorized_keys files."""

from __future__ import annotations

import logging
import os
import pwd
import subprocess
from pathlib import Path

from .config import HostConfig
from .exceptions import HostIOError, HostnameError, SSHSetupError

logger = logging.getLogger(__name__)


class Host:
    """Applies already-computed values to the local operating system."""

    def __init__(self, settings: HostConfig):
        self._settings = settings

    @property
    def ssh_host_key_dir(self) -> str:
        return self._settings.ssh_host_key_dir

    @property
    def ssh_host_key_algorithms(self) -> list[str]:
        return list(self._settings.ssh_host_key_algorithms)

    def set_hostname(self, hostname: str) -> None:
        self._run(["hostnamectl", "hostname", "--transient", hostname], HostnameError)

    def ensure_ssh_hostkey(self, algorithm: str) -> None:
        """Generate ``ssh_host_<algorithm>_key`` unless it already exists."""
        key_path = os.path.join(self._settings.ssh_host_key_dir, f"ssh_host_{algorithm}_key")
        if os.path.exists(key_path):
            logger.debug("SSH host key %s already present", key_path)
            return
        self._run(["ssh-keygen", "-q", "-t", algorithm, "-f", key_path, "-N", ""], SSHSetupError)

    def user_home(self, username: str) -> str:
        try:
            return pwd.getpwnam(username).pw_dir
        except KeyError:
            if username == "root":
                return "/root"
            return os.path.join(self._settings.home_base, username)

    def ensure_directory(self, path: str) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise HostIOError(f"Unable to create directory {path}: {exc}") from exc

    def ensure_file(self, path: str, content: str) -> None:
        try:
            Path(path).write_text(content)
        except OSError as exc:
            raise HostIOError(f"Unable to write {path}: {exc}") from exc

    @staticmethod
    def _run(cmd: list[str], error: type[Exception]) -> None:
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as exc:
            logger.error("%s failed: %s", cmd[0], exc)
            raise error(f"{cmd[0]} failed: {exc}") from exc

        if result.returncode != 0:
            logger.error("%s failed: %s", cmd[0], result.stderr.strip())
            raise error(f"{cmd[0]} exited with status {result.returncode}")
