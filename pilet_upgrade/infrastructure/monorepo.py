"""Monorepo detection and bootstrapping."""

from __future__ import annotations

import os
from pathlib import Path

from pilet_upgrade.application.ports.gateways import MonorepoInfo, NpmClient
from pilet_upgrade.engine.errors import DependencyInstallFailure
from pilet_upgrade.infrastructure.manifest_store import MANIFEST_NAME, read_json_object
from pilet_upgrade.infrastructure.node_packages import find_installed_package_dir
from pilet_upgrade.infrastructure.npm_client import run_process


def detect_monorepo(root: Path) -> MonorepoInfo | None:
    """Walk upward from ``root`` looking for a lerna, pnpm or workspaces root."""

    start = root.resolve()
    for folder in (start, *start.parents):
        if (folder / "lerna.json").is_file():
            return MonorepoInfo(kind="lerna", root=folder)
        if (folder / "pnpm-workspace.yaml").is_file():
            return MonorepoInfo(kind="pnpm", root=folder)
        manifest = read_json_object(folder / MANIFEST_NAME)
        if manifest is not None and manifest.get("workspaces"):
            return MonorepoInfo(kind="workspaces", root=folder)
    return None


def bootstrap_argv(monorepo: MonorepoInfo, client: NpmClient) -> tuple[str, ...]:
    if monorepo.kind == "lerna":
        return ("npx", "lerna", "bootstrap")
    if monorepo.kind == "pnpm":
        return ("pnpm", "install")
    return (client, "install")


def bootstrap_monorepo(monorepo: MonorepoInfo, client: NpmClient) -> None:
    argv = bootstrap_argv(monorepo, client)
    result = run_process(argv, cwd=monorepo.root)
    if result.exit_code != 0:
        raise DependencyInstallFailure(argv, result.exit_code)


def is_monorepo_member(name: str, base_dir: Path) -> bool:
    """True when ``name`` resolves to a linked workspace package, not a registry install."""

    found = find_installed_package_dir(base_dir, name)
    if found is None:
        return False
    real = Path(os.path.realpath(found))
    return "node_modules" not in real.parts
