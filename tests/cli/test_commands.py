"""
Tests for CLI command implementations.
"""

import json
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from cargo_ndk.build.orchestrator import BuildResult
from cargo_ndk.cli.commands import build as build_command
from cargo_ndk.cli.commands import env as env_command
from cargo_ndk.cli.commands import runner as runner_command
from cargo_ndk.cli.commands import test as ndk_test_command
from cargo_ndk.core.exceptions import ConfigError
from cargo_ndk.cross.targets import ARM64_V8A
from cargo_ndk.device.runner import RemoteResult
from cargo_ndk.toolchain.locator import NDK_HOME_VARS
from tests.fixtures.ndk import LINUX_HOST


@pytest.fixture
def ndk_environ(monkeypatch, synthetic_ndk):
    """Process environment pointing at the synthetic NDK."""
    for name in NDK_HOME_VARS + (
        "CARGO_NDK_TARGET",
        "CARGO_NDK_PLATFORM",
        "CARGO_NDK_LINK_BUILTINS",
        "CARGO_NDK_ADB_SERIAL",
        "CARGO_ENCODED_RUSTFLAGS",
        "RUSTFLAGS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ANDROID_NDK_HOME", str(synthetic_ndk))
    for module in ("build", "env", "test"):
        monkeypatch.setattr(f"cargo_ndk.cli.commands.{module}.detect_host", lambda: LINUX_HOST)
    return synthetic_ndk


def _env_args(**kwargs):
    defaults = dict(
        target="arm64-v8a",
        platform=None,
        link_builtins=False,
        ndk_path=None,
        json=False,
        powershell=False,
    )
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


class TestEnvCommand:
    """Test the env command."""

    def test_shell_output(self, ndk_environ, capsys):
        """Test the default output is sourceable shell."""
        assert env_command.run(_env_args()) == 0

        out = capsys.readouterr().out
        assert "export ANDROID_ABI=arm64-v8a" in out
        assert "export CARGO_NDK_ANDROID_PLATFORM=21" in out

    def test_json_output(self, ndk_environ, capsys):
        """Test JSON output."""
        assert env_command.run(_env_args(json=True, platform=28)) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["ANDROID_PLATFORM"] == "28"
        assert data["CC_aarch64-linux-android"].endswith("aarch64-linux-android28-clang")

    def test_powershell_output(self, ndk_environ, capsys):
        """Test PowerShell output."""
        assert env_command.run(_env_args(powershell=True)) == 0
        assert '${env:ANDROID_ABI}="arm64-v8a"' in capsys.readouterr().out

    def test_target_from_environment(self, ndk_environ, monkeypatch, capsys):
        """Test CARGO_NDK_TARGET supplies the target."""
        monkeypatch.setenv("CARGO_NDK_TARGET", "x86_64")
        assert env_command.run(_env_args(target=None, json=True)) == 0
        assert json.loads(capsys.readouterr().out)["ANDROID_ABI"] == "x86_64"

    def test_target_required(self, ndk_environ):
        """Test a missing target is a usage error."""
        assert env_command.run(_env_args(target=None)) == 2


class TestBuildCommand:
    """Test the build command wiring."""

    def test_collector_only_with_output_dir(self, ndk_environ, tmp_path, monkeypatch):
        """Test libraries are only copied when an output directory is set."""
        monkeypatch.setenv("CARGO_TARGET_DIR", str(tmp_path / "target"))
        (tmp_path / "Cargo.toml").write_text('[package]\nname = "x"\n')
        args = SimpleNamespace(
            target=["x86"],
            platform=None,
            output_dir=None,
            manifest_path=None,
            link_builtins=False,
            fail_fast=False,
            jobs=None,
            ndk_path=None,
            config=None,
            cargo_args=["build"],
            project_root=tmp_path,
        )

        with patch("cargo_ndk.cli.commands.build.BuildOrchestrator") as orchestrator:
            orchestrator.return_value.run.return_value.exit_code = 0
            assert build_command.run(args) == 0
            assert orchestrator.call_args[0][4] is None

            args.output_dir = tmp_path / "libs"
            build_command.run(args)
            assert orchestrator.call_args[0][4].output_dir == tmp_path / "libs"

    def test_exit_code_of_first_failure(self, ndk_environ, tmp_path, monkeypatch):
        """Test the command returns the overall exit code."""
        monkeypatch.setenv("CARGO_TARGET_DIR", str(tmp_path / "target"))
        args = SimpleNamespace(cargo_args=["build"], project_root=tmp_path, target=["x86"])

        with patch("cargo_ndk.cli.commands.build.BuildOrchestrator") as orchestrator:
            orchestrator.return_value.run.return_value.exit_code = 101
            assert build_command.run(args) == 101


class TestRunnerCommand:
    """Test the runner command wiring."""

    def test_runs_on_device(self, monkeypatch):
        """Test the executable, arguments and serial are passed on."""
        monkeypatch.setenv("CARGO_NDK_ADB_SERIAL", "from-env")
        args = SimpleNamespace(
            adb_serial=None,
            executable=Path("target/debug/app"),
            runner_args=["--x"],
            push=[Path("libc++_shared.so")],
        )

        with patch("cargo_ndk.cli.commands.runner.find_adb", return_value=Path("/sdk/adb")), \
                patch("cargo_ndk.cli.commands.runner.AdbTransport") as transport, \
                patch("cargo_ndk.cli.commands.runner.DeviceRunner") as device_runner:
            device_runner.return_value.run_remote.return_value = RemoteResult(42)

            assert runner_command.run(args) == 42

        transport.assert_called_once_with(Path("/sdk/adb"), "from-env")
        device_runner.return_value.run_remote.assert_called_once_with(
            Path("target/debug/app"), ["--x"], dependencies=[Path("libc++_shared.so")]
        )


class TestTestCommand:
    """Test the test command wiring."""

    def _args(self, tmp_path, **kwargs):
        defaults = dict(
            target="arm64-v8a",
            platform=None,
            link_builtins=False,
            ndk_path=None,
            manifest_path=None,
            config=None,
            project_root=tmp_path,
            adb_serial=None,
            cargo_args=["--lib", "--", "--nocapture"],
        )
        defaults.update(kwargs)
        return SimpleNamespace(**defaults)

    def _message(self, tmp_path):
        return json.dumps(
            {
                "reason": "compiler-artifact",
                "manifest_path": str(tmp_path / "Cargo.toml"),
                "target": {"src_path": str(tmp_path / "src" / "lib.rs")},
                "executable": str(tmp_path / "target" / "deps" / "demo-1"),
            }
        )

    def test_builds_then_runs(self, ndk_environ, tmp_path, monkeypatch):
        """Test the test build arguments and the harness arguments."""
        monkeypatch.setenv("CARGO_TARGET_DIR", str(tmp_path / "target"))
        args = self._args(tmp_path)

        with patch("cargo_ndk.cli.commands.test.find_adb", return_value=Path("adb")), \
                patch("cargo_ndk.cli.commands.test.BuildOrchestrator") as orchestrator, \
                patch("cargo_ndk.cli.commands.test.DeviceTestRunner") as test_runner, \
                patch("cargo_ndk.cli.commands.test.AdbTransport"):
            orchestrator.return_value.build_target.return_value = BuildResult(
                ARM64_V8A, 0, stdout=self._message(tmp_path) + "\n"
            )
            test_runner.return_value.run_all.return_value = 0

            assert ndk_test_command.run(args) == 0

        config = orchestrator.call_args[0][0]
        assert config.cargo_args == ("test", "--no-run", "--message-format=json", "--lib")
        assert orchestrator.call_args[1]["capture_stdout"] is True
        tests, test_args = test_runner.return_value.run_all.call_args[0]
        assert [t.executable.name for t in tests] == ["demo-1"]
        assert test_args == ["--nocapture"]

    def test_build_failure(self, ndk_environ, tmp_path, monkeypatch):
        """Test a failed test build returns its exit code without running."""
        monkeypatch.setenv("CARGO_TARGET_DIR", str(tmp_path / "target"))

        with patch("cargo_ndk.cli.commands.test.find_adb", return_value=Path("adb")), \
                patch("cargo_ndk.cli.commands.test.BuildOrchestrator") as orchestrator, \
                patch("cargo_ndk.cli.commands.test.DeviceTestRunner") as test_runner:
            orchestrator.return_value.build_target.return_value = BuildResult(ARM64_V8A, 101)

            assert ndk_test_command.run(self._args(tmp_path)) == 101

        test_runner.assert_not_called()

    def test_single_target_required(self, ndk_environ, tmp_path, monkeypatch):
        """Test more than one configured target is rejected."""
        monkeypatch.setenv("CARGO_TARGET_DIR", str(tmp_path / "target"))
        monkeypatch.setenv("CARGO_NDK_TARGET", "x86,x86_64")

        with pytest.raises(ConfigError, match="single target"):
            ndk_test_command.run(self._args(tmp_path, target=None))

    def test_no_executables(self, ndk_environ, tmp_path, monkeypatch):
        """Test a build without test executables fails."""
        monkeypatch.setenv("CARGO_TARGET_DIR", str(tmp_path / "target"))

        with patch("cargo_ndk.cli.commands.test.find_adb", return_value=Path("adb")), \
                patch("cargo_ndk.cli.commands.test.BuildOrchestrator") as orchestrator:
            orchestrator.return_value.build_target.return_value = BuildResult(ARM64_V8A, 0)

            assert ndk_test_command.run(self._args(tmp_path)) == 1

