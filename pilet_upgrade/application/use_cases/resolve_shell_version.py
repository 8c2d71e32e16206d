from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pilet_upgrade.application.ports.gateways import NpmClient, UpgradeGateways
from pilet_upgrade.engine.errors import InvalidShellReference, RegistryResolutionFailure


DEFAULT_SELECTOR = "latest"

_GIT_PREFIXES: tuple[str, ...] = ("git+", "git://", "github:", "gitlab:", "bitbucket:")


@dataclass(frozen=True)
class ResolvedShell:
    package_ref: str
    version: str
    monorepo_local: bool


def is_git_reference(value: str) -> bool:
    return value.startswith(_GIT_PREFIXES) or value.endswith(".git")


def is_file_reference(value: str) -> bool:
    return value.startswith("file:")


def _is_verbatim_reference(value: str) -> bool:
    return is_git_reference(value) or is_file_reference(value)


def resolve_shell_version(
    gateways: UpgradeGateways,
    *,
    base_dir: Path,
    shell_name: str,
    current_version: str,
    requested_version: str | None,
    root: Path,
    npm_client: NpmClient,
) -> ResolvedShell:
    """Compute the installable shell reference and the version to record.

    Monorepo-local shells use the sibling package's own version. Git and
    ``file:`` references are returned verbatim. Everything else asks the
    registry, with ``requested_version`` taking precedence over ``latest``.
    """

    if not isinstance(shell_name, str) or not shell_name:
        raise InvalidShellReference("shell package name must be a non-empty string")
    if not isinstance(current_version, str) or not current_version:
        raise InvalidShellReference(f"version constraint for {shell_name!r} must be a non-empty string")

    if gateways.is_monorepo_member(shell_name, base_dir):
        local = gateways.read_installed_package(base_dir, shell_name) or {}
        version = local.get("version")
        if not isinstance(version, str) or not version:
            raise RegistryResolutionFailure(f"monorepo package {shell_name!r} declares no version")
        return ResolvedShell(package_ref=f"{shell_name}@{version}", version=version, monorepo_local=True)

    selector = requested_version.strip() if requested_version and requested_version.strip() else None
    if selector is None and _is_verbatim_reference(current_version):
        selector = current_version
    if selector is not None and _is_verbatim_reference(selector):
        return ResolvedShell(package_ref=selector, version=selector, monorepo_local=False)

    selector = selector or DEFAULT_SELECTOR
    version = gateways.resolve_registry_version(npm_client, shell_name, selector, root)
    if not version:
        raise RegistryResolutionFailure(f"no version of {shell_name!r} matches {selector!r}")
    return ResolvedShell(package_ref=f"{shell_name}@{version}", version=version, monorepo_local=False)
