"""Application ports for the pilet upgrade use-case.

This module defines pure contracts. Concrete bindings are assembled by
``pilet_upgrade.infrastructure.wiring`` and passed explicitly into the
use-cases; nothing here holds global state.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Literal, Mapping, Protocol, Sequence

NpmClient = Literal["npm", "yarn", "pnpm"]
MonorepoKind = Literal["lerna", "pnpm", "workspaces"]

NPM_CLIENTS: tuple[str, ...] = ("npm", "yarn", "pnpm")

# Passed on every targeted shell install so the manifest's dependency list is
# left to the patch step.
INSTALL_FLAG_NO_SAVE = "--no-save"


class Reporter(Protocol):
    def progress(self, message: str) -> None: ...
    def debug(self, message: str) -> None: ...
    def warn(self, message: str) -> None: ...
    def done(self, message: str) -> None: ...
    def fail(self, reason_code: str, message: str) -> None: ...


@dataclass(frozen=True)
class MonorepoInfo:
    kind: MonorepoKind
    root: Path


@dataclass(frozen=True)
class UpgradeGateways:
    """Collaborators the upgrade pipeline calls through."""

    read_manifest: Callable[[Path], dict[str, Any]]
    write_manifest: Callable[[Path, Mapping[str, Any]], None]
    read_installed_package: Callable[[Path, str], "dict[str, Any] | None"]
    installed_package_dir: Callable[[Path, str], Path]
    determine_npm_client: Callable[[Path, "str | None"], NpmClient]
    resolve_registry_version: Callable[[NpmClient, str, str, Path], str]
    is_monorepo_member: Callable[[str, Path], bool]
    detect_monorepo: Callable[[Path], "MonorepoInfo | None"]
    bootstrap_monorepo: Callable[[MonorepoInfo, NpmClient], None]
    install_package: Callable[[NpmClient, str, Path, Sequence[str]], None]
    install_all: Callable[[NpmClient, Path], None]
    run_script: Callable[[str, Path], int]
    extract_tarball: Callable[[Path, Path], list[str]]
    copy_file: Callable[[Path, Path], None]
    hash_file: Callable[[Path], str]
    remove_directory: Callable[[Path], None]
    prompt_overwrite: "Callable[[str], bool] | None" = None
