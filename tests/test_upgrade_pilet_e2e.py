from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from pilet_upgrade.application.ports.gateways import INSTALL_FLAG_NO_SAVE, MonorepoInfo
from pilet_upgrade.application.use_cases.upgrade_pilet import (
    PHASE_INSTALL_SHELL,
    PHASE_PRE_UPGRADE,
    PHASE_REMOVE_CACHE,
    PIPELINE_PHASES,
    UpgradeOptions,
    upgrade_pilet,
)
from pilet_upgrade.domain.overwrite_policy import OverwritePolicy
from pilet_upgrade.engine.errors import (
    DependencyInstallFailure,
    FileSyncFailure,
    HookExecutionFailure,
    InvalidOption,
    InvalidShellPackage,
    InvalidTarget,
    NotAPiletProject,
)

from .util import (
    FakePackageClient,
    RecordingReporter,
    fake_gateways,
    install_emulator_shell,
    install_scaffolding_shell,
    make_pilet,
    read_json,
    snapshot_tree,
    write_json,
    write_text,
)


def _shell_v2(root: Path) -> None:
    install_scaffolding_shell(
        root,
        version="2.0.0",
        files={"tsconfig.json": '{"v": 2}', "src/index.tsx": "index v2"},
        descriptors=["tsconfig.json", {"path": "src/index.tsx", "once": True}],
        pilets={"preUpgrade": "echo pre", "postUpgrade": "echo post"},
    )


def _scaffolded_pilet(root: Path) -> Path:
    make_pilet(root, custom={"keep": True}, scripts={"start": "pilet debug"})
    install_scaffolding_shell(
        root,
        version="1.0.0",
        files={"tsconfig.json": '{"v": 1}', "src/index.tsx": "index v1"},
        descriptors=["tsconfig.json", {"path": "src/index.tsx", "once": True}],
    )
    write_text(root / "tsconfig.json", '{"v": 1}')
    write_text(root / "src" / "index.tsx", "my pilet code")
    return root


@pytest.mark.e2e_upgrade
def test_scaffolding_upgrade_to_requested_version(tmp_path: Path):
    root = _scaffolded_pilet(tmp_path)
    before = read_json(root / "package.json")
    client = FakePackageClient(shells={"2.0.0": _shell_v2})
    reporter = RecordingReporter()

    outcome = upgrade_pilet(
        tmp_path,
        UpgradeOptions(version="2.0.0"),
        gateways=fake_gateways(client),
        reporter=reporter,
    )

    after = read_json(root / "package.json")
    assert after["devDependencies"]["my-shell"] == "2.0.0"
    assert {k: v for k, v in after.items() if k != "devDependencies"} == {
        k: v for k, v in before.items() if k != "devDependencies"
    }
    assert (root / "tsconfig.json").read_text(encoding="utf-8") == '{"v": 2}'
    assert (root / "src" / "index.tsx").read_text(encoding="utf-8") == "my pilet code"

    assert client.calls == [
        ("view", "npm", "my-shell", "2.0.0"),
        ("install-package", "npm", "my-shell@2.0.0", (INSTALL_FLAG_NO_SAVE,)),
        ("script", "echo pre", root),
        ("install-all", "npm"),
        ("script", "echo post", root),
    ]
    assert outcome.version == "2.0.0"
    assert outcome.sync_mode == "scaffolding"
    assert outcome.topology == "single"
    assert outcome.phases == PIPELINE_PHASES
    assert reporter.messages("done") == ["Pilet upgraded successfully!"]
    assert not (root / ".cache").exists()


@pytest.mark.e2e_upgrade
def test_missing_piral_block_fails_without_mutation(tmp_path: Path):
    write_json(tmp_path / "package.json", {"name": "not-a-pilet", "devDependencies": {"x": "1.0.0"}})
    write_text(tmp_path / ".cache" / "keep.txt", "untouched")
    before = snapshot_tree(tmp_path)
    client = FakePackageClient()

    with pytest.raises(NotAPiletProject) as excinfo:
        upgrade_pilet(tmp_path, UpgradeOptions(), gateways=fake_gateways(client), reporter=RecordingReporter())

    assert excinfo.value.phase == "validate-shell-reference"
    assert snapshot_tree(tmp_path) == before
    assert client.calls == []


@pytest.mark.e2e_upgrade
def test_missing_manifest_is_not_a_pilet(tmp_path: Path):
    with pytest.raises(NotAPiletProject):
        upgrade_pilet(
            tmp_path, UpgradeOptions(), gateways=fake_gateways(FakePackageClient()), reporter=RecordingReporter()
        )


@pytest.mark.e2e_upgrade
def test_non_string_shell_name_fails_before_side_effects(tmp_path: Path):
    write_json(tmp_path / "package.json", {"devDependencies": {"my-shell": "1.0.0"}, "piral": {"name": 5}})
    before = snapshot_tree(tmp_path)
    client = FakePackageClient()

    with pytest.raises(InvalidShellPackage):
        upgrade_pilet(tmp_path, UpgradeOptions(), gateways=fake_gateways(client), reporter=RecordingReporter())

    assert snapshot_tree(tmp_path) == before
    assert client.calls == []


@pytest.mark.e2e_upgrade
@pytest.mark.parametrize("target", ["missing", "file.txt"])
def test_invalid_target_is_rejected(tmp_path: Path, target: str):
    write_text(tmp_path / "file.txt", "x")

    with pytest.raises(InvalidTarget) as excinfo:
        upgrade_pilet(
            tmp_path,
            UpgradeOptions(target=target),
            gateways=fake_gateways(FakePackageClient()),
            reporter=RecordingReporter(),
        )
    assert excinfo.value.phase == "validate-target"


@pytest.mark.e2e_upgrade
def test_monorepo_local_shell_is_not_installed_and_tree_is_bootstrapped(tmp_path: Path):
    root = _scaffolded_pilet(tmp_path)
    _shell_v2(root)
    client = FakePackageClient(monorepo_member=True, monorepo=MonorepoInfo(kind="lerna", root=tmp_path))

    outcome = upgrade_pilet(tmp_path, UpgradeOptions(), gateways=fake_gateways(client), reporter=RecordingReporter())

    assert "install-package" not in client.call_kinds()
    assert "view" not in client.call_kinds()
    assert ("bootstrap", "lerna", "npm") in client.calls
    assert outcome.topology == "monorepo"
    assert read_json(root / "package.json")["devDependencies"]["my-shell"] == "2.0.0"


@pytest.mark.e2e_upgrade
def test_install_false_skips_dependency_tree(tmp_path: Path):
    root = _scaffolded_pilet(tmp_path)
    client = FakePackageClient(shells={"2.0.0": _shell_v2})

    upgrade_pilet(
        root, UpgradeOptions(version="2.0.0", install=False), gateways=fake_gateways(client), reporter=RecordingReporter()
    )

    assert "install-all" not in client.call_kinds()
    assert "bootstrap" not in client.call_kinds()


@pytest.mark.e2e_upgrade
def test_failing_pre_upgrade_hook_stops_before_manifest_patch_and_cleans_cache(tmp_path: Path):
    root = tmp_path
    make_pilet(root)
    install_emulator_shell(root, version="1.0.0", files={"tsconfig.json": "v1"})
    write_text(root / "tsconfig.json", "v1")

    def emulator_v2(target: Path) -> None:
        install_emulator_shell(
            target, version="2.0.0", files={"tsconfig.json": "v2"}, pilets={"preUpgrade": "exit 2"}
        )

    client = FakePackageClient(shells={"2.0.0": emulator_v2}, script_exit_codes={"exit 2": 2})

    with pytest.raises(HookExecutionFailure) as excinfo:
        upgrade_pilet(root, UpgradeOptions(version="2.0.0"), gateways=fake_gateways(client), reporter=RecordingReporter())

    assert excinfo.value.phase == PHASE_PRE_UPGRADE
    assert read_json(root / "package.json")["devDependencies"]["my-shell"] == "1.0.0"
    assert (root / "tsconfig.json").read_text(encoding="utf-8") == "v1"
    assert "install-all" not in client.call_kinds()
    assert not (root / ".cache").exists()


@pytest.mark.e2e_upgrade
def test_install_failure_is_tagged_with_phase(tmp_path: Path):
    root = _scaffolded_pilet(tmp_path)
    client = FakePackageClient(install_fails=True)

    with pytest.raises(DependencyInstallFailure) as excinfo:
        upgrade_pilet(root, UpgradeOptions(version="2.0.0"), gateways=fake_gateways(client), reporter=RecordingReporter())

    assert excinfo.value.phase == PHASE_INSTALL_SHELL
    assert read_json(root / "package.json")["devDependencies"]["my-shell"] == "1.0.0"


@pytest.mark.e2e_upgrade
def test_emulator_upgrade_respects_overwrite_policy(tmp_path: Path):
    root = tmp_path
    make_pilet(root)
    install_emulator_shell(root, version="1.0.0", files={"tsconfig.json": "v1", "webpack.config.js": "w1"})
    write_text(root / "tsconfig.json", "v1 customized")
    write_text(root / "webpack.config.js", "w1")

    def emulator_v2(target: Path) -> None:
        install_emulator_shell(target, version="2.0.0", files={"tsconfig.json": "v2", "webpack.config.js": "w2"})

    client = FakePackageClient(shells={"2.0.0": emulator_v2})
    outcome = upgrade_pilet(
        root,
        UpgradeOptions(version="2.0.0", force_overwrite=OverwritePolicy.NO),
        gateways=fake_gateways(client),
        reporter=RecordingReporter(),
    )

    assert outcome.sync_mode == "emulator"
    assert (root / "tsconfig.json").read_text(encoding="utf-8") == "v1 customized"
    assert (root / "webpack.config.js").read_text(encoding="utf-8") == "w2"
    assert outcome.phases[-1] == PHASE_REMOVE_CACHE
    assert not (root / ".cache").exists()


@pytest.mark.e2e_upgrade
def test_os_error_while_writing_manifest_is_a_file_sync_failure(tmp_path: Path):
    root = _scaffolded_pilet(tmp_path)
    client = FakePackageClient(shells={"2.0.0": _shell_v2})

    def refuse(target: Path, data) -> None:
        raise PermissionError(13, "Permission denied", str(target / "package.json"))

    gateways = replace(fake_gateways(client), write_manifest=refuse)

    with pytest.raises(FileSyncFailure) as excinfo:
        upgrade_pilet(root, UpgradeOptions(version="2.0.0"), gateways=gateways, reporter=RecordingReporter())

    assert excinfo.value.phase == "patch-manifest"
    assert excinfo.value.path.name == "package.json"
    assert "install-all" not in client.call_kinds()
    assert not (root / ".cache").exists()


def _refuse_removal(path: Path) -> None:
    raise PermissionError(13, "Permission denied", str(path))


@pytest.mark.e2e_upgrade
def test_cache_cleanup_error_does_not_mask_hook_failure(tmp_path: Path):
    root = tmp_path
    make_pilet(root)
    install_emulator_shell(root, version="1.0.0", files={"tsconfig.json": "v1"})

    def emulator_v2(target: Path) -> None:
        install_emulator_shell(target, version="2.0.0", files={"tsconfig.json": "v2"}, pilets={"preUpgrade": "exit 2"})

    client = FakePackageClient(shells={"2.0.0": emulator_v2}, script_exit_codes={"exit 2": 2})
    gateways = replace(fake_gateways(client), remove_directory=_refuse_removal)
    reporter = RecordingReporter()

    with pytest.raises(HookExecutionFailure) as excinfo:
        upgrade_pilet(root, UpgradeOptions(version="2.0.0"), gateways=gateways, reporter=reporter)

    assert excinfo.value.phase == PHASE_PRE_UPGRADE
    assert len(reporter.messages("warn")) == 1
    assert "Permission denied" in reporter.messages("warn")[0]


@pytest.mark.e2e_upgrade
def test_cache_cleanup_error_after_success_is_a_coded_failure(tmp_path: Path):
    root = _scaffolded_pilet(tmp_path)
    client = FakePackageClient(shells={"2.0.0": _shell_v2})
    gateways = replace(fake_gateways(client), remove_directory=_refuse_removal)
    reporter = RecordingReporter()

    with pytest.raises(FileSyncFailure) as excinfo:
        upgrade_pilet(root, UpgradeOptions(version="2.0.0"), gateways=gateways, reporter=reporter)

    assert excinfo.value.phase == PHASE_REMOVE_CACHE
    assert excinfo.value.path.name == ".cache"
    assert reporter.messages("done") == []
    assert read_json(root / "package.json")["devDependencies"]["my-shell"] == "2.0.0"


@pytest.mark.e2e_upgrade
def test_unknown_overwrite_policy_is_an_invalid_option(tmp_path: Path):
    make_pilet(tmp_path)
    before = snapshot_tree(tmp_path)
    client = FakePackageClient()

    with pytest.raises(InvalidOption) as excinfo:
        upgrade_pilet(
            tmp_path,
            UpgradeOptions(force_overwrite="always"),
            gateways=fake_gateways(client),
            reporter=RecordingReporter(),
        )

    assert excinfo.value.phase == "validate-target"
    assert client.calls == []
    assert snapshot_tree(tmp_path) == before
