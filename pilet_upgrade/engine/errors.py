"""Coded error taxonomy for the upgrade pipeline.

Every failure the pipeline can surface is an ``UpgradeError`` subclass with a
stable reason code. ``phase`` names the pipeline step that raised; the
orchestrator fills it in when a collaborator raised without one.
"""

from __future__ import annotations

from pathlib import Path

from pilet_upgrade.engine.reason_codes import (
    BLOCKED_INVALID_OPTION,
    BLOCKED_INVALID_SHELL_PACKAGE,
    BLOCKED_INVALID_SHELL_REFERENCE,
    BLOCKED_INVALID_TARGET,
    BLOCKED_NOT_A_PILET_PROJECT,
    FAILED_DEPENDENCY_INSTALL,
    FAILED_FILE_SYNC,
    FAILED_HOOK_EXECUTION,
    FAILED_REGISTRY_RESOLUTION,
    FAILED_SHELL_PACKAGE_INFO,
)


class UpgradeError(Exception):
    reason_code: str = "FAILED-UNSPECIFIED"

    def __init__(self, message: str, *, phase: str = ""):
        super().__init__(message)
        self.message = message
        self.phase = phase


class InvalidTarget(UpgradeError):
    reason_code = BLOCKED_INVALID_TARGET


class NotAPiletProject(UpgradeError):
    reason_code = BLOCKED_NOT_A_PILET_PROJECT


class InvalidShellPackage(UpgradeError):
    reason_code = BLOCKED_INVALID_SHELL_PACKAGE


class InvalidShellReference(UpgradeError):
    reason_code = BLOCKED_INVALID_SHELL_REFERENCE


class InvalidOption(UpgradeError):
    reason_code = BLOCKED_INVALID_OPTION


class RegistryResolutionFailure(UpgradeError):
    reason_code = FAILED_REGISTRY_RESOLUTION


class ShellPackageInfoFailure(UpgradeError):
    reason_code = FAILED_SHELL_PACKAGE_INFO


class FileSyncFailure(UpgradeError):
    reason_code = FAILED_FILE_SYNC

    def __init__(self, message: str, *, path: Path | str, phase: str = ""):
        super().__init__(f"{message}: {path}", phase=phase)
        self.path = Path(path)


class HookExecutionFailure(UpgradeError):
    reason_code = FAILED_HOOK_EXECUTION

    def __init__(self, command: str, exit_code: int, *, phase: str = ""):
        super().__init__(f"command {command!r} exited with code {exit_code}", phase=phase)
        self.command = command
        self.exit_code = exit_code


class DependencyInstallFailure(UpgradeError):
    reason_code = FAILED_DEPENDENCY_INSTALL

    def __init__(self, argv: tuple[str, ...], exit_code: int, *, phase: str = ""):
        super().__init__(f"{' '.join(argv)} exited with code {exit_code}", phase=phase)
        self.argv = argv
        self.exit_code = exit_code
