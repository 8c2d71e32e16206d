"""``package.json`` persistence for pilet projects."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from pilet_upgrade.engine.errors import NotAPiletProject
from pilet_upgrade.infrastructure.fs_atomic import atomic_write_json


MANIFEST_NAME = "package.json"


def read_json_object(path: Path) -> dict[str, Any] | None:
    """Return the JSON object stored at ``path``, or None when absent or not an object."""

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def read_manifest(root: Path) -> dict[str, Any]:
    path = root / MANIFEST_NAME
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise NotAPiletProject(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise NotAPiletProject(f"{path} must contain a JSON object")
    return data


def write_manifest(root: Path, data: Mapping[str, Any]) -> None:
    atomic_write_json(root / MANIFEST_NAME, dict(data))
