"""Maps provider names from the agent settings to backend factories."""

from __future__ import annotations

from collections.abc import Callable

from ..config import AppConfig
from ..exceptions import ConfigError
from . import CloudProvider
from .exoscale import ExoscaleCloudProvider

ProviderFactory = Callable[[AppConfig], CloudProvider]

PROVIDERS: dict[str, ProviderFactory] = {
    ExoscaleCloudProvider.name: ExoscaleCloudProvider.from_config,
}


def build_provider(config: AppConfig) -> CloudProvider:
    """Instantiate the cloud provider selected in ``config``."""
    try:
        factory = PROVIDERS[config.provider]
    except KeyError:
        raise ConfigError(f"Unknown cloud provider: {config.provider}") from None
    return factory(config)
