"""Template snapshot and reconciliation.

A snapshot is taken against the shell package that is installed *before* the
upgrade: for every template file that already exists in the pilet it records
the project file's hash and whether it differs from the old template. After
the new shell is installed, ``reconcile_files`` writes the new templates under
an overwrite policy, refreshing files the user never touched.

Synchronization is additive: files absent from the new template set are left
alone and nothing is ever deleted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import re
from typing import Iterable, Mapping

from pilet_upgrade.application.ports.gateways import Reporter, UpgradeGateways
from pilet_upgrade.domain.overwrite_policy import OverwritePolicy, decide_overwrite
from pilet_upgrade.domain.scaffold_files import candidate_files
from pilet_upgrade.domain.shell_package import (
    SYNC_MODE_EMULATOR,
    ShellPackageInfo,
    SyncMode,
    parse_shell_package_info,
)
from pilet_upgrade.engine.errors import FileSyncFailure, ShellPackageInfoFailure


EMULATOR_FILES_TAR = "files.tar"
EMULATOR_FILES_ONCE_TAR = "files_once.tar"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class SourceFile:
    source: Path
    target: str
    once: bool = False


@dataclass(frozen=True)
class SnapshotEntry:
    path: str
    sha256: str
    changed: bool


@dataclass(frozen=True)
class FileSnapshot:
    entries: Mapping[str, SnapshotEntry] = field(default_factory=dict)

    def is_shell_owned_unmodified(self, target: str) -> bool:
        entry = self.entries.get(target)
        return entry is not None and not entry.changed

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class ReconcileResult:
    written: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()


def shell_cache_dir(cache_dir: Path, shell_name: str) -> Path:
    return cache_dir / _UNSAFE_NAME_CHARS.sub("_", shell_name).strip("_")


def _expand(source: Path, target: str, once: bool) -> list[SourceFile]:
    if not source.is_dir():
        return [SourceFile(source=source, target=target, once=once)]
    expanded: list[SourceFile] = []
    for item in sorted(source.rglob("*")):
        if item.is_file():
            rel = item.relative_to(source).as_posix()
            expanded.append(SourceFile(source=item, target=f"{target}/{rel}", once=once))
    return expanded


def _emulator_sources(
    gateways: UpgradeGateways,
    *,
    package_dir: Path,
    extract_dir: Path,
) -> list[SourceFile]:
    sources: list[SourceFile] = []
    for tar_name, once in ((EMULATOR_FILES_TAR, False), (EMULATOR_FILES_ONCE_TAR, True)):
        tar_path = package_dir / tar_name
        if not tar_path.is_file():
            continue
        dest = extract_dir / tar_name.replace(".tar", "")
        try:
            members = gateways.extract_tarball(tar_path, dest)
        except OSError as exc:
            raise FileSyncFailure("cannot extract emulator files", path=tar_path) from exc
        sources.extend(SourceFile(source=dest / member, target=member, once=once) for member in sorted(members))
    return sources


def _scaffolding_sources(
    *,
    root: Path,
    package_dir: Path,
    info: ShellPackageInfo,
    strict: bool,
) -> list[SourceFile]:
    existing = [item.target for item in info.files if (root / item.target).exists()]
    sources: list[SourceFile] = []
    for item in candidate_files(info.files, existing):
        source = package_dir / item.source
        if not source.exists():
            if strict:
                raise FileSyncFailure("shell package does not contain scaffold file", path=source)
            continue
        sources.extend(_expand(source, item.target, item.once))
    return sources


def collect_template_sources(
    gateways: UpgradeGateways,
    *,
    root: Path,
    info: ShellPackageInfo,
    cache_dir: Path,
    label: str,
    strict: bool = True,
) -> tuple[SourceFile, ...]:
    """Resolve the template files a shell offers, per its sync mode."""

    package_dir = gateways.installed_package_dir(root, info.name)
    if info.sync_mode == SYNC_MODE_EMULATOR:
        extract_dir = shell_cache_dir(cache_dir, info.name) / label
        return tuple(_emulator_sources(gateways, package_dir=package_dir, extract_dir=extract_dir))
    return tuple(_scaffolding_sources(root=root, package_dir=package_dir, info=info, strict=strict))


def take_snapshot(
    gateways: UpgradeGateways,
    reporter: Reporter,
    *,
    root: Path,
    shell_name: str,
    cache_dir: Path,
) -> FileSnapshot:
    """Record the project's copies of the currently installed shell's templates.

    Must run before the new shell is installed. A shell that is not installed
    yet, or whose metadata cannot be read, yields an empty snapshot.
    """

    raw = gateways.read_installed_package(root, shell_name)
    if raw is None:
        reporter.debug(f"No installed copy of {shell_name}; starting from an empty snapshot")
        return FileSnapshot()
    try:
        previous = parse_shell_package_info(raw, fallback_name=shell_name)
        sources = collect_template_sources(
            gateways, root=root, info=previous, cache_dir=cache_dir, label="previous", strict=False
        )
    except (ShellPackageInfoFailure, FileSyncFailure) as exc:
        reporter.warn(f"Could not inspect the installed {shell_name}: {exc}")
        return FileSnapshot()

    entries: dict[str, SnapshotEntry] = {}
    for item in sources:
        target = root / item.target
        if not target.is_file():
            continue
        try:
            current_hash = gateways.hash_file(target)
            changed = gateways.hash_file(item.source) != current_hash
        except OSError as exc:
            raise FileSyncFailure("cannot read template file for snapshot", path=target) from exc
        entries[item.target] = SnapshotEntry(path=item.target, sha256=current_hash, changed=changed)
    reporter.debug(f"Snapshot recorded {len(entries)} existing template file(s)")
    return FileSnapshot(entries=entries)


def reconcile_files(
    gateways: UpgradeGateways,
    reporter: Reporter,
    *,
    mode: SyncMode,
    root: Path,
    policy: OverwritePolicy,
    snapshot: FileSnapshot,
    file_set: Iterable[SourceFile],
) -> ReconcileResult:
    written: list[str] = []
    skipped: list[str] = []
    unchanged: list[str] = []
    reporter.debug(f"Reconciling {mode} files with overwrite policy '{policy.value}'")

    for item in file_set:
        target = root / item.target
        try:
            exists = target.exists()
            if exists and target.is_file() and gateways.hash_file(target) == gateways.hash_file(item.source):
                unchanged.append(item.target)
                continue
            decision = decide_overwrite(
                target=item.target,
                target_exists=exists,
                shell_owned_unmodified=snapshot.is_shell_owned_unmodified(item.target),
                policy=policy,
                once=item.once,
                prompter=gateways.prompt_overwrite,
            )
            if not decision.write:
                reporter.debug(f"Keeping {item.target} ({decision.detail})")
                skipped.append(item.target)
                continue
            gateways.copy_file(item.source, target)
        except OSError as exc:
            raise FileSyncFailure(f"cannot synchronize template file ({exc.strerror or exc})", path=target) from exc
        written.append(item.target)

    return ReconcileResult(written=tuple(written), skipped=tuple(skipped), unchanged=tuple(unchanged))
