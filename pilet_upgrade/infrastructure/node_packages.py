"""Lookup of packages installed into ``node_modules`` folders."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pilet_upgrade.infrastructure.manifest_store import MANIFEST_NAME, read_json_object


def _candidates(start: Path, name: str) -> list[Path]:
    start = start.resolve()
    return [folder / "node_modules" / name for folder in (start, *start.parents)]


def find_installed_package_dir(start: Path, name: str) -> Path | None:
    """Resolve ``name`` the way Node resolves bare imports: nearest ``node_modules`` upward."""

    for candidate in _candidates(start, name):
        if (candidate / MANIFEST_NAME).is_file():
            return candidate
    return None


def installed_package_dir(root: Path, name: str) -> Path:
    found = find_installed_package_dir(root, name)
    return found if found is not None else root / "node_modules" / name


def read_installed_package(root: Path, name: str) -> dict[str, Any] | None:
    found = find_installed_package_dir(root, name)
    if found is None:
        return None
    return read_json_object(found / MANIFEST_NAME)
