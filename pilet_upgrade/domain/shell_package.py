"""Metadata read from an installed app-shell package."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from pilet_upgrade.domain.scaffold_files import ScaffoldDescriptorError, ScaffoldFile, parse_scaffold_files
from pilet_upgrade.engine.errors import ShellPackageInfoFailure


SyncMode = Literal["emulator", "scaffolding"]
Topology = Literal["monorepo", "single"]

SYNC_MODE_EMULATOR: SyncMode = "emulator"
SYNC_MODE_SCAFFOLDING: SyncMode = "scaffolding"
TOPOLOGY_MONOREPO: Topology = "monorepo"
TOPOLOGY_SINGLE: Topology = "single"


@dataclass(frozen=True)
class ShellPackageInfo:
    name: str
    version: str
    emulator: bool
    pre_upgrade: str | None = None
    post_upgrade: str | None = None
    files: tuple[ScaffoldFile, ...] = ()
    scripts: Mapping[str, str] = field(default_factory=dict)
    dev_dependencies: Mapping[str, str] = field(default_factory=dict)

    @property
    def sync_mode(self) -> SyncMode:
        return SYNC_MODE_EMULATOR if self.emulator else SYNC_MODE_SCAFFOLDING


def _optional_command(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _string_map(value: object) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def is_emulator_package(raw: Mapping[str, Any]) -> bool:
    marker = raw.get("piralCLI")
    return isinstance(marker, Mapping) and marker.get("generated") is True


def parse_shell_package_info(raw: Mapping[str, Any], *, fallback_name: str) -> ShellPackageInfo:
    pilets = raw.get("pilets")
    if pilets is None:
        pilets = {}
    if not isinstance(pilets, Mapping):
        raise ShellPackageInfoFailure(f"shell package {fallback_name!r} has a malformed 'pilets' section")

    files_raw = pilets.get("files") or []
    if not isinstance(files_raw, list):
        raise ShellPackageInfoFailure(f"shell package {fallback_name!r}: 'pilets.files' must be a list")
    try:
        files = parse_scaffold_files(files_raw)
    except ScaffoldDescriptorError as exc:
        raise ShellPackageInfoFailure(f"shell package {fallback_name!r}: {exc}") from exc

    name = raw.get("name")
    version = raw.get("version")
    return ShellPackageInfo(
        name=name if isinstance(name, str) and name else fallback_name,
        version=version if isinstance(version, str) else "",
        emulator=is_emulator_package(raw),
        pre_upgrade=_optional_command(pilets.get("preUpgrade")),
        post_upgrade=_optional_command(pilets.get("postUpgrade")),
        files=files,
        scripts=_string_map(pilets.get("scripts")),
        dev_dependencies=_string_map(pilets.get("devDependencies")),
    )
