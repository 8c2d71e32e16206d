#!/usr/bin/env python3
"""pilet-upgrade - upgrade a pilet to a newer version of its app shell."""

from __future__ import annotations

import argparse
import os
from pathlib import Path
import sys

from pilet_upgrade.application.ports.gateways import NPM_CLIENTS, Reporter, UpgradeGateways
from pilet_upgrade.application.use_cases.upgrade_pilet import (
    DEFAULT_CACHE_DIR,
    UpgradeOptions,
    upgrade_pilet,
)
from pilet_upgrade.domain.overwrite_policy import OverwritePolicy
from pilet_upgrade.engine.errors import UpgradeError
from pilet_upgrade.infrastructure.reporter import ConsoleReporter
from pilet_upgrade.infrastructure.wiring import build_gateways

CACHE_DIR_ENV = "PILET_UPGRADE_CACHE_DIR"


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="pilet-upgrade",
        description="Upgrade a pilet to a newer version of its app shell.",
    )
    p.add_argument("--base-dir", default=None, help="Base directory (default: current working directory).")
    p.add_argument("--target", default=".", help="Pilet directory relative to the base directory.")
    p.add_argument("--version", dest="version", default=None, help="App shell version to upgrade to (default: latest).")
    p.add_argument(
        "--force-overwrite",
        choices=[policy.value for policy in OverwritePolicy],
        default=OverwritePolicy.NO.value,
        help="What to do with template files that were changed locally.",
    )
    p.add_argument("--log-level", type=int, choices=range(1, 6), default=3, help="1=error ... 5=debug.")
    p.add_argument(
        "--install",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Reinstall all dependencies after the upgrade.",
    )
    p.add_argument("--npm-client", choices=NPM_CLIENTS, default=None, help="Package client to use.")
    return p.parse_args(argv)


def options_from_args(args: argparse.Namespace) -> UpgradeOptions:
    return UpgradeOptions(
        version=args.version,
        target=args.target,
        force_overwrite=OverwritePolicy.parse(args.force_overwrite),
        log_level=args.log_level,
        install=args.install,
        npm_client=args.npm_client,
    )


def run(
    argv: list[str],
    *,
    gateways: UpgradeGateways | None = None,
    reporter: Reporter | None = None,
) -> int:
    args = parse_args(argv)
    options = options_from_args(args)
    reporter = reporter or ConsoleReporter(options.log_level)
    gateways = gateways or build_gateways()
    base_dir = Path(args.base_dir) if args.base_dir else Path.cwd()
    cache_dir_name = os.environ.get(CACHE_DIR_ENV, "").strip() or DEFAULT_CACHE_DIR

    try:
        upgrade_pilet(base_dir, options, gateways=gateways, reporter=reporter, cache_dir_name=cache_dir_name)
    except UpgradeError as exc:
        prefix = f"{exc.phase}: " if exc.phase else ""
        reporter.fail(exc.reason_code, f"{prefix}{exc.message}")
        return 1
    return 0


def main() -> None:
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
