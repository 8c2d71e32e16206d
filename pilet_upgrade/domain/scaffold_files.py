from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Iterable, Sequence


class ScaffoldDescriptorError(ValueError):
    pass


@dataclass(frozen=True)
class ScaffoldFile:
    """One template file (or directory) the shell places into a pilet.

    ``source`` is relative to the shell package, ``target`` relative to the
    pilet root. ``once`` files are only placed when the target is absent.
    """

    source: str
    target: str
    once: bool = False


def _relative_token(value: object, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ScaffoldDescriptorError(f"scaffold descriptor field {field!r} must be a non-empty string")
    token = value.strip().replace("\\", "/")
    path = PurePosixPath(token)
    if path.is_absolute() or ".." in path.parts:
        raise ScaffoldDescriptorError(f"scaffold path escapes the project: {value}")
    return str(path)


def parse_scaffold_file(entry: Any) -> ScaffoldFile:
    if isinstance(entry, str):
        token = _relative_token(entry, field="path")
        return ScaffoldFile(source=token, target=token)
    if isinstance(entry, dict):
        once = entry.get("once") is True
        if "path" in entry:
            token = _relative_token(entry["path"], field="path")
            return ScaffoldFile(source=token, target=token, once=once)
        source = _relative_token(entry.get("from"), field="from")
        target = _relative_token(entry.get("to", source), field="to")
        return ScaffoldFile(source=source, target=target, once=once)
    raise ScaffoldDescriptorError(f"unsupported scaffold descriptor: {entry!r}")


def parse_scaffold_files(entries: Iterable[Any]) -> tuple[ScaffoldFile, ...]:
    return tuple(parse_scaffold_file(entry) for entry in entries)


def candidate_files(files: Sequence[ScaffoldFile], existing: Iterable[str]) -> tuple[ScaffoldFile, ...]:
    """Drop ``once`` descriptors whose target already exists in the project."""

    present = set(existing)
    return tuple(item for item in files if not (item.once and item.target in present))
