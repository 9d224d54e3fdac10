from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from .cleanup import clear_domains
from .collector import CollectionCoordinator
from .config.config_parser import StorescopeConfig, load_config
from .config.logging_config import init_logging
from .errors import ConfigError, StorescopeError
from .filtering.policy import FilterPolicyCache
from .filtering.settings_store import MemorySettingsStore, YamlSettingsStore
from .hosts.storage_state import StorageStateHost
from .stats import format_domains_csv, format_report_json

logger = logging.getLogger("storescope.main")


def build_filter(config: StorescopeConfig) -> FilterPolicyCache:
    """Brief: Build the filter holder for this run.

    Inputs:
      - config: Loaded StorescopeConfig.

    Outputs:
      - FilterPolicyCache reading from the inline ``domain_filter`` section
        when present, otherwise from the YAML settings store.
    """

    if config.domain_filter is not None:
        store = MemorySettingsStore(config.domain_filter)
    else:
        store = YamlSettingsStore(config.settings_store.resolved_path())
    return FilterPolicyCache(store, cache_ttl_seconds=config.cache_ttl_seconds)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storescope",
        description="Inventory browser client-side storage per domain",
    )
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument(
        "--state",
        action="append",
        default=[],
        metavar="PATH",
        help="Playwright storage_state JSON file (repeatable)",
    )
    parser.add_argument("--format", choices=("json", "csv"), default="json")
    parser.add_argument(
        "--filter-check",
        metavar="URL",
        default=None,
        help="Print whether the domain filter allows URL and exit",
    )
    parser.add_argument(
        "--clean",
        action="store_true",
        help="Plan cleanup of every collected domain the filter allows",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="With --clean, delete the storage and rewrite the state files",
    )
    parser.add_argument(
        "--unknown-keys",
        choices=("ignore", "warn", "error"),
        default="warn",
        help="Policy for config keys the schema does not describe",
    )
    return parser


def main(argv: List[str] | None = None) -> int:
    """
    Command-line entry point.

    Args:
        argv: Command-line arguments (default: sys.argv[1:]).

    Returns:
        0 on success, 1 on configuration or input errors, 2 when a collection
        cycle fails (cookie enumeration).

    Example use:
        storescope --state state.json --format csv
        storescope --config storescope.yaml --filter-check https://ads.example.com/
    """
    parser = _parser()
    args = parser.parse_args(argv)
    if args.apply and not args.clean:
        parser.error("--apply requires --clean")

    try:
        config, _raw = load_config(args.config, unknown_keys=args.unknown_keys)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    init_logging(config.logging.model_dump())
    if args.config:
        logger.info("Loaded config from %s", args.config)

    policy = build_filter(config)

    if args.filter_check is not None:
        allowed = policy.is_allowed(args.filter_check)
        print(json.dumps({"url": args.filter_check, "allowed": allowed, "mode": policy.get().mode.value}))
        return 0

    if not args.state:
        print("at least one --state file is required", file=sys.stderr)
        return 1

    try:
        host = StorageStateHost(args.state)
    except (OSError, ValueError) as exc:
        print(f"cannot read storage state: {exc}", file=sys.stderr)
        return 1

    coordinator = CollectionCoordinator(
        host,
        origin_sampler=config.scan.build_origin_sampler(),
        scan_filter=policy if config.scan.apply_filter else None,
        max_workers=config.scan.max_workers,
        top_n=config.scan.top_n,
    )
    try:
        domains, stats = coordinator.collect()
    except StorescopeError as exc:
        logger.error("Collection failed: %s", exc)
        return 2

    if args.format == "csv":
        sys.stdout.write(format_domains_csv(domains))
    else:
        sys.stdout.write(format_report_json(domains, stats) + "\n")

    if args.clean:
        result = clear_domains(host, domains, policy=policy, dry_run=not args.apply)
        if args.apply:
            for index, path in enumerate(args.state):
                host.save(path, index=index)
        print(
            json.dumps(
                {
                    "cleanup": {
                        "dry_run": result.dry_run,
                        "cleared": result.cleared,
                        "failed": result.failed,
                        "skipped": result.skipped,
                    }
                }
            ),
            file=sys.stderr,
        )
        if not result.ok:
            return 2

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
