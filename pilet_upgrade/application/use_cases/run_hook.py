from __future__ import annotations

from pathlib import Path

from pilet_upgrade.application.ports.gateways import Reporter, UpgradeGateways
from pilet_upgrade.engine.errors import HookExecutionFailure


def run_hook(
    gateways: UpgradeGateways,
    reporter: Reporter,
    *,
    label: str,
    command: str | None,
    cwd: Path,
) -> bool:
    """Run one lifecycle script in ``cwd``; returns False when there is nothing to run."""

    if not command or not command.strip():
        return False
    reporter.progress(f"Running {label} script ...")
    reporter.debug(f"Run: {command}")
    exit_code = gateways.run_script(command, cwd)
    if exit_code != 0:
        raise HookExecutionFailure(command, exit_code, phase=label)
    return True
