from __future__ import annotations

from pathlib import Path
from typing import Sequence

from pilet_upgrade.application.ports.gateways import (
    INSTALL_FLAG_NO_SAVE,
    MonorepoInfo,
    NpmClient,
    Reporter,
    UpgradeGateways,
)
from pilet_upgrade.domain.shell_package import TOPOLOGY_MONOREPO, TOPOLOGY_SINGLE, Topology


def install_shell_package(
    gateways: UpgradeGateways,
    reporter: Reporter,
    *,
    npm_client: NpmClient,
    package_ref: str,
    root: Path,
    flags: Sequence[str] = (),
) -> tuple[str, ...]:
    """Install the shell without recording it in the manifest's dependency list."""

    effective = (INSTALL_FLAG_NO_SAVE, *(flag for flag in flags if flag != INSTALL_FLAG_NO_SAVE))
    reporter.progress(f"Updating NPM package to {package_ref} ...")
    gateways.install_package(npm_client, package_ref, root, effective)
    return effective


def install_dependency_tree(
    gateways: UpgradeGateways,
    reporter: Reporter,
    *,
    npm_client: NpmClient,
    root: Path,
    monorepo: MonorepoInfo | None,
) -> Topology:
    reporter.progress("Updating dependencies ...")
    if monorepo is not None:
        reporter.debug(f"Bootstrapping {monorepo.kind} monorepo at {monorepo.root}")
        gateways.bootstrap_monorepo(monorepo, npm_client)
        return TOPOLOGY_MONOREPO
    gateways.install_all(npm_client, root)
    return TOPOLOGY_SINGLE
