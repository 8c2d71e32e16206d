"""Validated view of a pilet's ``package.json``.

The raw manifest mapping is kept as-is; ``ShellReference`` is the only typed
projection the pipeline relies on. Parsing is fail-closed and never touches
the file system.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from pilet_upgrade.engine.errors import InvalidShellPackage, InvalidShellReference, NotAPiletProject


SHELL_BLOCK_KEY = "piral"
DEV_DEPENDENCIES_KEY = "devDependencies"
SCRIPTS_KEY = "scripts"


@dataclass(frozen=True)
class ShellReference:
    """The app shell a pilet is built against."""

    name: str
    version: str


@dataclass(frozen=True)
class ProjectManifest:
    raw: dict[str, Any]
    shell: ShellReference


def _non_empty_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def parse_project_manifest(raw: Mapping[str, Any]) -> ProjectManifest:
    """Validate the shell-reference block of a pilet manifest.

    Raises ``NotAPiletProject`` when the ``piral`` block is missing or not an
    object, ``InvalidShellPackage`` when its name is missing or not a string,
    and ``InvalidShellReference`` when the dev dependency for that name is
    missing or not a string.
    """

    block = raw.get(SHELL_BLOCK_KEY)
    if not isinstance(block, Mapping):
        raise NotAPiletProject("package.json has no 'piral' object; not a pilet project")

    name = _non_empty_str(block.get("name"))
    if name is None:
        raise InvalidShellPackage("'piral.name' must be a non-empty string")

    dev_dependencies = raw.get(DEV_DEPENDENCIES_KEY) or {}
    if not isinstance(dev_dependencies, Mapping):
        raise InvalidShellReference("'devDependencies' must be an object")
    version = _non_empty_str(dev_dependencies.get(name))
    if version is None:
        raise InvalidShellReference(f"'devDependencies[{name!r}]' must be a non-empty string")

    return ProjectManifest(raw=dict(raw), shell=ShellReference(name=name, version=version))


def _merge_missing(current: object, additions: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(current) if isinstance(current, Mapping) else {}
    for key, value in additions.items():
        merged.setdefault(key, value)
    return merged


def patch_manifest(
    raw: Mapping[str, Any],
    *,
    shell_name: str,
    resolved_version: str,
    scripts: Mapping[str, str] | None = None,
    dev_dependencies: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``raw`` with the shell dev dependency set to ``resolved_version``.

    Shell-declared scripts and dev dependencies are added only where the
    pilet does not already define the key. Unrelated fields and key order
    are preserved.
    """

    patched = dict(raw)
    deps = _merge_missing(patched.get(DEV_DEPENDENCIES_KEY), dev_dependencies or {})
    deps[shell_name] = resolved_version
    patched[DEV_DEPENDENCIES_KEY] = deps
    if scripts:
        patched[SCRIPTS_KEY] = _merge_missing(patched.get(SCRIPTS_KEY), scripts)
    return patched
