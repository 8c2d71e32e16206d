"""Adapter over the npm, yarn and pnpm command-line clients."""

from __future__ import annotations

from dataclasses import dataclass
import json
import os
from pathlib import Path
import shutil
import subprocess
from typing import Mapping, Sequence

from pilet_upgrade.application.ports.gateways import NPM_CLIENTS, NpmClient
from pilet_upgrade.engine.errors import DependencyInstallFailure, InvalidOption, RegistryResolutionFailure


NPM_CLIENT_ENV = "PILET_UPGRADE_NPM_CLIENT"

_LOCK_FILES: tuple[tuple[str, NpmClient], ...] = (
    ("package-lock.json", "npm"),
    ("yarn.lock", "yarn"),
    ("pnpm-lock.yaml", "pnpm"),
)

_ADD_COMMAND: Mapping[str, str] = {"npm": "install", "yarn": "add", "pnpm": "add"}


@dataclass(frozen=True)
class ProcessResult:
    argv: tuple[str, ...]
    cwd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""


def _executable(name: str) -> str:
    # npm.cmd / yarn.cmd on Windows
    return shutil.which(name) or name


def run_process(argv: Sequence[str], *, cwd: Path, capture: bool = False) -> ProcessResult:
    args = tuple(str(x) for x in argv)
    try:
        proc = subprocess.run(
            [_executable(args[0]), *args[1:]],
            cwd=str(cwd),
            text=True,
            capture_output=capture,
            check=False,
        )
    except FileNotFoundError:
        return ProcessResult(argv=args, cwd=str(cwd), exit_code=127, stderr=f"{args[0]}: command not found")
    return ProcessResult(
        argv=args,
        cwd=str(cwd),
        exit_code=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )


def _normalize_client(value: str | None, *, source: str) -> NpmClient | None:
    token = str(value or "").strip().lower()
    if not token:
        return None
    if token not in NPM_CLIENTS:
        raise InvalidOption(f"{source}: unknown npm client {value!r}; expected one of {', '.join(NPM_CLIENTS)}")
    return token  # type: ignore[return-value]


def determine_npm_client(
    root: Path,
    preference: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> NpmClient:
    """Pick the package client: explicit choice, environment, lock file, then npm."""

    explicit = _normalize_client(preference, source="--npm-client")
    if explicit is not None:
        return explicit
    environment = os.environ if env is None else env
    from_env = _normalize_client(environment.get(NPM_CLIENT_ENV), source=NPM_CLIENT_ENV)
    if from_env is not None:
        return from_env
    start = root.resolve()
    for folder in (start, *start.parents):
        for lock_file, client in _LOCK_FILES:
            if (folder / lock_file).is_file():
                return client
    return "npm"


def install_package_argv(client: NpmClient, package_ref: str, flags: Sequence[str]) -> tuple[str, ...]:
    return (client, _ADD_COMMAND[client], *flags, package_ref)


def install_all_argv(client: NpmClient) -> tuple[str, ...]:
    return (client, "install")


def view_version_argv(client: NpmClient, name: str, selector: str) -> tuple[str, ...]:
    if client == "yarn":
        return ("yarn", "info", f"{name}@{selector}", "version", "--json")
    return (client, "view", f"{name}@{selector}", "version", "--json")


def parse_view_output(stdout: str) -> str | None:
    """Extract the last version from ``npm view``/``yarn info`` JSON output."""

    text = stdout.strip()
    if not text:
        return None
    last_line = text.splitlines()[-1] if text.startswith('{"type"') else text
    try:
        data = json.loads(last_line)
    except ValueError:
        return None
    if isinstance(data, dict):
        data = data.get("data")
    if isinstance(data, list):
        data = data[-1] if data else None
    return data if isinstance(data, str) and data else None


def resolve_registry_version(client: NpmClient, name: str, selector: str, cwd: Path) -> str:
    argv = view_version_argv(client, name, selector)
    result = run_process(argv, cwd=cwd, capture=True)
    if result.exit_code != 0:
        detail = result.stderr.strip().splitlines()[-1] if result.stderr.strip() else f"exit code {result.exit_code}"
        raise RegistryResolutionFailure(f"cannot resolve {name}@{selector}: {detail}")
    version = parse_view_output(result.stdout)
    if version is None:
        raise RegistryResolutionFailure(f"registry returned no version for {name}@{selector}")
    return version


def _run_install(argv: tuple[str, ...], cwd: Path) -> None:
    result = run_process(argv, cwd=cwd)
    if result.exit_code != 0:
        raise DependencyInstallFailure(argv, result.exit_code)


def install_package(client: NpmClient, package_ref: str, root: Path, flags: Sequence[str]) -> None:
    _run_install(install_package_argv(client, package_ref, flags), root)


def install_all(client: NpmClient, root: Path) -> None:
    _run_install(install_all_argv(client), root)
