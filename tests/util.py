from __future__ import annotations

from dataclasses import dataclass, field, replace
import io
import json
from pathlib import Path
import tarfile
from typing import Any, Callable

from pilet_upgrade.application.ports.gateways import MonorepoInfo, UpgradeGateways
from pilet_upgrade.engine.errors import DependencyInstallFailure
from pilet_upgrade.infrastructure.wiring import build_gateways


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def write_text(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def make_tar(path: Path, files: dict[str, str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w") as archive:
        for name, text in files.items():
            payload = text.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(payload))
    return path


def make_pilet(root: Path, *, shell: str = "my-shell", version: str = "1.0.0", **extra: Any) -> Path:
    manifest: dict[str, Any] = {
        "name": "my-pilet",
        "version": "0.1.0",
        "devDependencies": {shell: version},
        "piral": {"name": shell},
    }
    manifest.update(extra)
    write_json(root / "package.json", manifest)
    return root


def install_scaffolding_shell(
    root: Path,
    *,
    name: str = "my-shell",
    version: str,
    files: dict[str, str],
    descriptors: list[Any] | None = None,
    pilets: dict[str, Any] | None = None,
) -> Path:
    """Lay out a non-emulator shell package under ``root/node_modules``."""

    package_dir = root / "node_modules" / name
    for rel, text in files.items():
        write_text(package_dir / rel, text)
    section: dict[str, Any] = {"files": descriptors if descriptors is not None else list(files)}
    section.update(pilets or {})
    write_json(package_dir / "package.json", {"name": name, "version": version, "pilets": section})
    return package_dir


def install_emulator_shell(
    root: Path,
    *,
    name: str = "my-shell",
    version: str,
    files: dict[str, str],
    once_files: dict[str, str] | None = None,
    pilets: dict[str, Any] | None = None,
) -> Path:
    package_dir = root / "node_modules" / name
    make_tar(package_dir / "files.tar", files)
    if once_files:
        make_tar(package_dir / "files_once.tar", once_files)
    write_json(
        package_dir / "package.json",
        {"name": name, "version": version, "piralCLI": {"generated": True}, "pilets": pilets or {}},
    )
    return package_dir


class RecordingReporter:
    """In-memory reporter used by pipeline tests."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def progress(self, message: str) -> None:
        self.events.append(("progress", message))

    def debug(self, message: str) -> None:
        self.events.append(("debug", message))

    def warn(self, message: str) -> None:
        self.events.append(("warn", message))

    def done(self, message: str) -> None:
        self.events.append(("done", message))

    def fail(self, reason_code: str, message: str) -> None:
        self.events.append(("fail", f"[{reason_code}] {message}"))

    def messages(self, kind: str) -> list[str]:
        return [message for event, message in self.events if event == kind]


@dataclass
class FakePackageClient:
    """Stands in for npm: records calls and lays out shell packages on install."""

    latest: str = "9.9.9"
    shells: dict[str, Callable[[Path], Any]] = field(default_factory=dict)
    script_exit_codes: dict[str, int] = field(default_factory=dict)
    monorepo: MonorepoInfo | None = None
    monorepo_member: bool = False
    install_fails: bool = False
    calls: list[tuple[Any, ...]] = field(default_factory=list)

    def resolve_registry_version(self, client, name, selector, cwd):
        self.calls.append(("view", client, name, selector))
        return self.latest if selector == "latest" else selector

    def install_package(self, client, ref, root, flags):
        self.calls.append(("install-package", client, ref, tuple(flags)))
        if self.install_fails:
            raise DependencyInstallFailure((client, "install", ref), 1)
        version = ref.rsplit("@", 1)[-1]
        if version in self.shells:
            self.shells[version](root)

    def install_all(self, client, root):
        self.calls.append(("install-all", client))

    def bootstrap_monorepo(self, monorepo, client):
        self.calls.append(("bootstrap", monorepo.kind, client))

    def run_script(self, command, cwd):
        self.calls.append(("script", command, Path(cwd)))
        return self.script_exit_codes.get(command, 0)

    def detect_monorepo(self, root):
        return self.monorepo

    def is_monorepo_member(self, name, base_dir):
        return self.monorepo_member

    def call_kinds(self) -> list[str]:
        return [call[0] for call in self.calls]


def fake_gateways(client: FakePackageClient, *, prompt: Callable[[str], bool] | None = None) -> UpgradeGateways:
    real = build_gateways(interactive=False)
    return replace(
        real,
        determine_npm_client=lambda root, preference: preference or "npm",
        resolve_registry_version=client.resolve_registry_version,
        install_package=client.install_package,
        install_all=client.install_all,
        bootstrap_monorepo=client.bootstrap_monorepo,
        run_script=client.run_script,
        detect_monorepo=client.detect_monorepo,
        is_monorepo_member=client.is_monorepo_member,
        prompt_overwrite=prompt,
    )


def snapshot_tree(root: Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }
