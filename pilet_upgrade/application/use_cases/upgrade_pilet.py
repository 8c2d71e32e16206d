"""Upgrade a pilet to a newer version of its app shell.

The pipeline is a strict sequence of phases. Each phase depends on the
file-system effects of the previous one, so the first failure aborts the run
and is re-raised with the failing phase attached. Validation phases run
before any mutation. Work already written by earlier phases is not rolled
back; only the transient cache directory is removed on every exit path once
the pipeline has started touching the project. A cleanup error after a failed
phase is only warned about, so the phase error stays the reported one.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from pilet_upgrade.application.ports.gateways import (
    MonorepoInfo,
    NpmClient,
    Reporter,
    UpgradeGateways,
)
from pilet_upgrade.application.use_cases.file_sync import (
    FileSnapshot,
    ReconcileResult,
    collect_template_sources,
    reconcile_files,
    take_snapshot,
)
from pilet_upgrade.application.use_cases.install_dependencies import (
    install_dependency_tree,
    install_shell_package,
)
from pilet_upgrade.application.use_cases.resolve_shell_version import ResolvedShell, resolve_shell_version
from pilet_upgrade.application.use_cases.run_hook import run_hook
from pilet_upgrade.domain.overwrite_policy import OverwritePolicy
from pilet_upgrade.domain.project_manifest import ProjectManifest, parse_project_manifest, patch_manifest
from pilet_upgrade.domain.shell_package import (
    TOPOLOGY_MONOREPO,
    TOPOLOGY_SINGLE,
    ShellPackageInfo,
    SyncMode,
    Topology,
    parse_shell_package_info,
)
from pilet_upgrade.engine.errors import FileSyncFailure, InvalidOption, InvalidTarget, ShellPackageInfoFailure, UpgradeError


DEFAULT_CACHE_DIR = ".cache"

PHASE_VALIDATE_TARGET = "validate-target"
PHASE_READ_MANIFEST = "read-manifest"
PHASE_VALIDATE_SHELL = "validate-shell-reference"
PHASE_RESOLVE_VERSION = "resolve-version"
PHASE_SNAPSHOT = "snapshot-files"
PHASE_INSTALL_SHELL = "install-shell"
PHASE_READ_SHELL_INFO = "read-shell-info"
PHASE_PRE_UPGRADE = "preUpgrade"
PHASE_PATCH_MANIFEST = "patch-manifest"
PHASE_RECONCILE = "reconcile-files"
PHASE_INSTALL_DEPENDENCIES = "install-dependencies"
PHASE_POST_UPGRADE = "postUpgrade"
PHASE_REMOVE_CACHE = "remove-cache"

PIPELINE_PHASES: tuple[str, ...] = (
    PHASE_VALIDATE_TARGET,
    PHASE_READ_MANIFEST,
    PHASE_VALIDATE_SHELL,
    PHASE_RESOLVE_VERSION,
    PHASE_SNAPSHOT,
    PHASE_INSTALL_SHELL,
    PHASE_READ_SHELL_INFO,
    PHASE_PRE_UPGRADE,
    PHASE_PATCH_MANIFEST,
    PHASE_RECONCILE,
    PHASE_INSTALL_DEPENDENCIES,
    PHASE_POST_UPGRADE,
    PHASE_REMOVE_CACHE,
)


@dataclass(frozen=True)
class UpgradeOptions:
    version: str | None = None
    target: str = "."
    force_overwrite: OverwritePolicy = OverwritePolicy.NO
    log_level: int = 3
    install: bool = True
    npm_client: str | None = None


@dataclass
class PipelineState:
    """Values resolved once and carried through the remaining phases."""

    root: Path
    cache_dir: Path
    npm_client: NpmClient | None = None
    manifest: ProjectManifest | None = None
    resolved: ResolvedShell | None = None
    monorepo: MonorepoInfo | None = None
    snapshot: FileSnapshot = field(default_factory=FileSnapshot)
    shell_info: ShellPackageInfo | None = None
    reconcile: ReconcileResult = field(default_factory=ReconcileResult)
    completed: list[str] = field(default_factory=list)

    @property
    def topology(self) -> Topology:
        return TOPOLOGY_MONOREPO if self.monorepo is not None else TOPOLOGY_SINGLE


@dataclass(frozen=True)
class UpgradeOutcome:
    root: Path
    shell_name: str
    package_ref: str
    version: str
    sync_mode: SyncMode
    topology: Topology
    reconcile: ReconcileResult
    phases: tuple[str, ...]


@contextmanager
def _phase(state: PipelineState, name: str) -> Iterator[None]:
    try:
        yield
    except UpgradeError as exc:
        if not exc.phase:
            exc.phase = name
        raise
    except OSError as exc:
        raise FileSyncFailure(exc.strerror or str(exc), path=exc.filename or state.root, phase=name) from exc
    state.completed.append(name)


def _validate_target(state: PipelineState) -> None:
    if not state.root.exists():
        raise InvalidTarget(f"target directory does not exist: {state.root}")
    if not state.root.is_dir():
        raise InvalidTarget(f"target is not a directory: {state.root}")


def _discard_cache(gateways: UpgradeGateways, reporter: Reporter, cache_dir: Path) -> None:
    try:
        gateways.remove_directory(cache_dir)
    except OSError as exc:
        reporter.warn(f"Could not remove {cache_dir}: {exc.strerror or exc}")


def upgrade_pilet(
    base_dir: Path,
    options: UpgradeOptions,
    *,
    gateways: UpgradeGateways,
    reporter: Reporter,
    cache_dir_name: str = DEFAULT_CACHE_DIR,
) -> UpgradeOutcome:
    root = (Path(base_dir) / options.target).resolve()
    state = PipelineState(root=root, cache_dir=root / cache_dir_name)

    with _phase(state, PHASE_VALIDATE_TARGET):
        _validate_target(state)
        try:
            policy = OverwritePolicy.parse(options.force_overwrite)
        except ValueError as exc:
            raise InvalidOption(str(exc)) from exc
        state.npm_client = gateways.determine_npm_client(root, options.npm_client)

    with _phase(state, PHASE_READ_MANIFEST):
        raw_manifest = gateways.read_manifest(root)

    with _phase(state, PHASE_VALIDATE_SHELL):
        state.manifest = parse_project_manifest(raw_manifest)
    shell = state.manifest.shell

    with _phase(state, PHASE_RESOLVE_VERSION):
        state.resolved = resolve_shell_version(
            gateways,
            base_dir=Path(base_dir),
            shell_name=shell.name,
            current_version=shell.version,
            requested_version=options.version,
            root=root,
            npm_client=state.npm_client,
        )
        state.monorepo = gateways.detect_monorepo(root)
        reporter.debug(
            f"Resolved {shell.name} to {state.resolved.version} "
            f"(monorepo-local={state.resolved.monorepo_local}, topology={state.topology})"
        )

    try:
        with _phase(state, PHASE_SNAPSHOT):
            state.snapshot = take_snapshot(
                gateways, reporter, root=root, shell_name=shell.name, cache_dir=state.cache_dir
            )

        with _phase(state, PHASE_INSTALL_SHELL):
            if not state.resolved.monorepo_local:
                install_shell_package(
                    gateways,
                    reporter,
                    npm_client=state.npm_client,
                    package_ref=state.resolved.package_ref,
                    root=root,
                )

        with _phase(state, PHASE_READ_SHELL_INFO):
            raw_shell = gateways.read_installed_package(root, shell.name)
            if raw_shell is None:
                raise ShellPackageInfoFailure(f"shell package {shell.name!r} is not installed")
            state.shell_info = parse_shell_package_info(raw_shell, fallback_name=shell.name)
        info = state.shell_info

        with _phase(state, PHASE_PRE_UPGRADE):
            run_hook(gateways, reporter, label=PHASE_PRE_UPGRADE, command=info.pre_upgrade, cwd=root)

        reporter.progress("Taking care of templating ...")

        with _phase(state, PHASE_PATCH_MANIFEST):
            patched = patch_manifest(
                state.manifest.raw,
                shell_name=shell.name,
                resolved_version=state.resolved.version,
                scripts=info.scripts,
                dev_dependencies=info.dev_dependencies,
            )
            gateways.write_manifest(root, patched)

        with _phase(state, PHASE_RECONCILE):
            file_set = collect_template_sources(
                gateways, root=root, info=info, cache_dir=state.cache_dir, label="current"
            )
            state.reconcile = reconcile_files(
                gateways,
                reporter,
                mode=info.sync_mode,
                root=root,
                policy=policy,
                snapshot=state.snapshot,
                file_set=file_set,
            )
            reporter.debug(
                f"Templates: {len(state.reconcile.written)} written, "
                f"{len(state.reconcile.skipped)} kept, {len(state.reconcile.unchanged)} unchanged"
            )

        with _phase(state, PHASE_INSTALL_DEPENDENCIES):
            if options.install:
                install_dependency_tree(
                    gateways,
                    reporter,
                    npm_client=state.npm_client,
                    root=root,
                    monorepo=state.monorepo,
                )

        with _phase(state, PHASE_POST_UPGRADE):
            run_hook(gateways, reporter, label=PHASE_POST_UPGRADE, command=info.post_upgrade, cwd=root)
    except BaseException:
        _discard_cache(gateways, reporter, state.cache_dir)
        raise

    with _phase(state, PHASE_REMOVE_CACHE):
        gateways.remove_directory(state.cache_dir)

    reporter.done("Pilet upgraded successfully!")
    return UpgradeOutcome(
        root=root,
        shell_name=shell.name,
        package_ref=state.resolved.package_ref,
        version=state.resolved.version,
        sync_mode=info.sync_mode,
        topology=state.topology,
        reconcile=state.reconcile,
        phases=tuple(state.completed),
    )
