"""Canonical pilet-upgrade reason-code registry.

Values in this module are part of the command-line contract: they are
printed with every fatal message and matched by callers and tests.
"""

from __future__ import annotations

from typing import Final

# Sentinel used when a step finished without a failure.
REASON_CODE_NONE: Final[str] = "none"

# Precondition failures (raised before any file-system mutation).
BLOCKED_INVALID_TARGET: Final[str] = "BLOCKED-INVALID-TARGET"
BLOCKED_NOT_A_PILET_PROJECT: Final[str] = "BLOCKED-NOT-A-PILET-PROJECT"
BLOCKED_INVALID_SHELL_PACKAGE: Final[str] = "BLOCKED-INVALID-SHELL-PACKAGE"
BLOCKED_INVALID_SHELL_REFERENCE: Final[str] = "BLOCKED-INVALID-SHELL-REFERENCE"
BLOCKED_INVALID_OPTION: Final[str] = "BLOCKED-INVALID-OPTION"

# Step failures.
FAILED_REGISTRY_RESOLUTION: Final[str] = "FAILED-REGISTRY-RESOLUTION"
FAILED_SHELL_PACKAGE_INFO: Final[str] = "FAILED-SHELL-PACKAGE-INFO"
FAILED_FILE_SYNC: Final[str] = "FAILED-FILE-SYNC"
FAILED_HOOK_EXECUTION: Final[str] = "FAILED-HOOK-EXECUTION"
FAILED_DEPENDENCY_INSTALL: Final[str] = "FAILED-DEPENDENCY-INSTALL"

# Flat canonical set for validation and parity checks.
CANONICAL_REASON_CODES: Final[tuple[str, ...]] = (
    BLOCKED_INVALID_TARGET,
    BLOCKED_NOT_A_PILET_PROJECT,
    BLOCKED_INVALID_SHELL_PACKAGE,
    BLOCKED_INVALID_SHELL_REFERENCE,
    BLOCKED_INVALID_OPTION,
    FAILED_REGISTRY_RESOLUTION,
    FAILED_SHELL_PACKAGE_INFO,
    FAILED_FILE_SYNC,
    FAILED_HOOK_EXECUTION,
    FAILED_DEPENDENCY_INSTALL,
)


def is_registered_reason_code(code: str) -> bool:
    return code == REASON_CODE_NONE or code in CANONICAL_REASON_CODES


def is_blocking_precondition(code: str) -> bool:
    """Return True for codes raised while validating input, before any side effect."""

    return code.startswith("BLOCKED-")
