"""Composition root for the upgrade pipeline's collaborators."""

from __future__ import annotations

import sys

from pilet_upgrade.application.ports.gateways import UpgradeGateways
from pilet_upgrade.infrastructure import fs_atomic, manifest_store, monorepo, node_packages, npm_client, tarball
from pilet_upgrade.infrastructure.script_runner import run_script


def is_interactive() -> bool:
    # conservative: require both stdin and stdout to be TTY
    return sys.stdin.isatty() and sys.stdout.isatty()


def prompt_overwrite(target: str) -> bool:
    try:
        resp = input(f"The file {target} was modified locally. Overwrite it? [y/N] ").strip().lower()
    except EOFError:
        return False
    return resp in {"y", "yes"}


def build_gateways(*, interactive: bool | None = None) -> UpgradeGateways:
    use_prompt = is_interactive() if interactive is None else interactive
    return UpgradeGateways(
        read_manifest=manifest_store.read_manifest,
        write_manifest=manifest_store.write_manifest,
        read_installed_package=node_packages.read_installed_package,
        installed_package_dir=node_packages.installed_package_dir,
        determine_npm_client=npm_client.determine_npm_client,
        resolve_registry_version=npm_client.resolve_registry_version,
        is_monorepo_member=monorepo.is_monorepo_member,
        detect_monorepo=monorepo.detect_monorepo,
        bootstrap_monorepo=monorepo.bootstrap_monorepo,
        install_package=npm_client.install_package,
        install_all=npm_client.install_all,
        run_script=run_script,
        extract_tarball=tarball.extract_tarball,
        copy_file=fs_atomic.atomic_copy_file,
        hash_file=fs_atomic.sha256_file,
        remove_directory=fs_atomic.remove_directory,
        prompt_overwrite=prompt_overwrite if use_prompt else None,
    )
