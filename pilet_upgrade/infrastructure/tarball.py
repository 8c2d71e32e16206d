"""Extraction of the template tarballs shipped inside emulator packages."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
import tarfile


def _safe_member_name(name: str) -> str | None:
    path = PurePosixPath(name.replace("\\", "/"))
    parts = [part for part in path.parts if part not in ("", ".")]
    if path.is_absolute() or ".." in parts:
        return None
    return "/".join(parts) or None


def extract_tarball(tar_path: Path, dest: Path) -> list[str]:
    """Extract regular files from ``tar_path`` into ``dest``; return their relative paths.

    Links, devices and members escaping ``dest`` are skipped.
    """

    dest.mkdir(parents=True, exist_ok=True)
    extracted: list[str] = []
    try:
        archive = tarfile.open(tar_path, "r:*")
    except tarfile.TarError as exc:
        raise OSError(f"cannot open tarball {tar_path}: {exc}") from exc
    with archive:
        for member in archive.getmembers():
            if not member.isfile():
                continue
            name = _safe_member_name(member.name)
            if name is None:
                continue
            source = archive.extractfile(member)
            if source is None:
                continue
            target = dest / name
            target.parent.mkdir(parents=True, exist_ok=True)
            with source, target.open("wb") as out:
                while True:
                    chunk = source.read(1024 * 1024)
                    if not chunk:
                        break
                    out.write(chunk)
            target.chmod(member.mode & 0o777 or 0o644)
            extracted.append(name)
    return extracted
