"""Argument parsing, settings loading, and agent bootstrap."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from .bootstrap import Bootstrapper
from .config import AppConfig, load_config
from .exceptions import CloudProviderError, ConfigError, NotAvailable
from .host import Host
from .logging_config import configure_logging
from .provider.registry import build_provider

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloud-bootstrap",
        description="First-boot agent: discover the cloud platform and configure this host",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to an optional YAML settings file",
    )
    parser.add_argument(
        "--probe-only",
        action="store_true",
        help="Probe the platform, print the discovered instance data and exit without touching the host",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the settings file and exit",
    )
    return parser


async def _probe_only(bootstrapper: Bootstrapper) -> int:
    try:
        result = await bootstrapper.probe()
    except NotAvailable:
        logger.info("Cloud platform not detected")
        return 0
    except CloudProviderError as exc:
        logger.error("Probe failed: %s", exc)
        return 1

    group = asdict(result.instance_group) if result.instance_group is not None else None
    print(json.dumps({"instance": asdict(result.instance), "instance_group": group}, indent=2))
    return 0


async def _run(config: AppConfig, probe_only: bool) -> int:
    provider = build_provider(config)
    bootstrapper = Bootstrapper(provider, Host(config.host))
    try:
        if probe_only:
            return await _probe_only(bootstrapper)
        return await bootstrapper.run()
    finally:
        await provider.close()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load config (minimal logging until config is loaded)
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    configure_logging(config.logging)

    if args.validate:
        logger.info("Configuration is valid")
        return 0

    try:
        return asyncio.run(_run(config, args.probe_only))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
