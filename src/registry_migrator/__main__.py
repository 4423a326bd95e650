from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from registry_migrator.apm import ManifestResolver, VersionStateReader
from registry_migrator.cache import HOUR_MS, FileSystemCacheStore
from registry_migrator.chain.range_fetcher import get_registry_on_range
from registry_migrator.chain.rpc import EthereumRpcClient
from registry_migrator.config import AppConfig, ConfigLoadRequest, YamlConfigLoader, prepare_data_dirs
from registry_migrator.ipfs import IpfsHttpClient
from registry_migrator.logging import init_logging
from registry_migrator.migration import MigrationPlanner
from registry_migrator.migration.plan_io import write_plan
from registry_migrator.migration.publish import DryRunPublisher, publish_plan
from registry_migrator.snapshot import RegistrySnapshotStore, records_from_events

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "data/config/config.yaml"
DEFAULT_DOTENV_PATH = "data/.env"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="registry-migrator", description="APM registry migration tool")
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config.yaml (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--env-file",
        default=DEFAULT_DOTENV_PATH,
        help=f"Optional .env file with APP__ overrides (default: {DEFAULT_DOTENV_PATH})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: fetch
    fetch_parser = subparsers.add_parser("fetch", help="Fetch registry packages and write the snapshots")
    fetch_parser.add_argument(
        "--registry",
        default=None,
        help="Only fetch this registry (default: every configured registry)",
    )

    # Command: plan
    plan_parser = subparsers.add_parser("plan", help="Build the migration plan of the configured namespace")
    plan_parser.add_argument(
        "--output",
        default=None,
        help="Where to write the plan JSON (default: <snapshot.plan_dir>/<namespace>.json)",
    )

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(yaml_path=args.config, dotenv_path=args.env_file)
    config = await loader.load(request)
    init_logging(config.logging)
    prepare_data_dirs(config)
    return config


async def _fetch_registries(args: argparse.Namespace) -> None:
    config = await _load_config(args)

    registry_names = [args.registry] if args.registry else sorted(config.registries)
    unknown = [name for name in registry_names if name not in config.registries]
    if unknown:
        raise ValueError(f"Unknown registry: {', '.join(unknown)}")

    snapshots = RegistrySnapshotStore(config.snapshot.data_dir)
    async with EthereumRpcClient(config.ethereum) as rpc:
        latest_block = await rpc.get_block_number()
        for registry_name in registry_names:
            deploy_block = config.registries[registry_name].deploy_block
            logger.info(
                "Fetching registry. registry=%s from_block=%s to_block=%s",
                registry_name,
                deploy_block,
                latest_block,
            )
            events = await get_registry_on_range(
                rpc,
                registry_name,
                deploy_block,
                latest_block + 1,
                settings=config.range_fetch,
            )
            snapshots.write(registry_name, records_from_events(events))


async def _plan_migration(args: argparse.Namespace) -> None:
    config = await _load_config(args)

    if not config.app.dry_run:
        raise ValueError("Live publishing is not supported by this tool; set app.dry_run to true")

    policy = config.selected_policy
    logger.info(
        "Planning migration. namespace=%s source=%s target=%s",
        policy.namespace,
        policy.source_registry,
        policy.target_registry,
    )
    records = RegistrySnapshotStore(config.snapshot.data_dir).read(policy.source_registry)
    store = FileSystemCacheStore(config.cache.dir)

    async with EthereumRpcClient(config.ethereum) as rpc, IpfsHttpClient(config.ipfs) as ipfs:
        planner = MigrationPlanner(
            VersionStateReader(rpc, store, version_count_ttl_ms=config.cache.version_count_ttl_hours * HOUR_MS),
            ManifestResolver(ipfs, store),
        )
        plan = await planner.plan(policy, records)

    output: Optional[str] = args.output
    output_path = Path(output) if output else Path(config.snapshot.plan_dir) / f"{policy.namespace}.json"
    write_plan(output_path, plan)

    publisher = DryRunPublisher()
    calls = await publish_plan(plan, publisher, dev_address=config.app.dev_address)
    logger.info("Dry run completed. namespace=%s calls=%d plan=%s", policy.namespace, calls, output_path)


async def _main_async() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "fetch":
        await _fetch_registries(args)
    elif args.command == "plan":
        await _plan_migration(args)


def main() -> None:
    try:
        asyncio.run(_main_async())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception:
        logger.exception("Command failed.")
        sys.exit(1)


if __name__ == "__main__":
    main()
