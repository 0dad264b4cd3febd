"""
Tests for the adb transport.
"""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cargo_ndk.core.exceptions import DeviceError, DeviceErrorKind, TransportError
from cargo_ndk.device.transport import AdbTransport, find_adb
from tests.fixtures.ndk import LINUX_HOST


def _completed(returncode=0, stdout=""):
    return MagicMock(returncode=returncode, stdout=stdout)


class TestAdbTransport:
    """Test adb command construction and result handling."""

    def test_serial_selects_device(self):
        """Test -s is passed when a serial is set."""
        runner = MagicMock(return_value=_completed(stdout="device\n"))
        transport = AdbTransport(Path("/sdk/adb"), serial="emulator-5554", runner=runner)

        assert transport.get_state() == "device"
        assert runner.call_args[0][0] == ["/sdk/adb", "-s", "emulator-5554", "get-state"]

    def test_state_unknown_on_failure(self):
        """Test a failing get-state reports 'unknown'."""
        runner = MagicMock(return_value=_completed(1, "error: no devices/emulators found"))
        assert AdbTransport(Path("adb"), runner=runner).get_state() == "unknown"

    def test_push_failure_raises(self):
        """Test a failed push raises TransportError with adb's output."""
        runner = MagicMock(return_value=_completed(1, "remote couldn't create file"))
        transport = AdbTransport(Path("adb"), runner=runner)

        with pytest.raises(TransportError, match="couldn't create file"):
            transport.push(Path("/tmp/x"), "/data/local/tmp/x")

    def test_push_command(self):
        """Test push arguments."""
        runner = MagicMock(return_value=_completed())
        AdbTransport(Path("adb"), runner=runner).push(Path("/tmp/x"), "/data/local/tmp/x")

        assert runner.call_args[0][0] == ["adb", "push", "/tmp/x", "/data/local/tmp/x"]

    def test_shell_streams_by_default(self):
        """Test uncaptured shell commands inherit the terminal."""
        runner = MagicMock(return_value=_completed(3, None))

        result = AdbTransport(Path("adb"), runner=runner).shell("ls")

        assert result.exit_code == 3
        assert result.output == ""
        runner.assert_called_once_with(["adb", "shell", "ls"])

    def test_shell_capture(self):
        """Test captured shell output is returned."""
        runner = MagicMock(return_value=_completed(0, "hello\n"))

        result = AdbTransport(Path("adb"), runner=runner).shell("echo hello", capture=True)

        assert result.output == "hello\n"
        assert runner.call_args[1]["stderr"] == subprocess.STDOUT

    def test_missing_adb(self):
        """Test a missing adb binary is a TransportError."""
        runner = MagicMock(side_effect=FileNotFoundError("adb"))
        with pytest.raises(TransportError, match="Could not run"):
            AdbTransport(Path("adb"), runner=runner).get_state()


class TestFindAdb:
    """Test adb discovery."""

    def test_sdk_platform_tools_preferred(self, tmp_path):
        """Test adb from the SDK beats adb on PATH."""
        sdk_adb = tmp_path / "sdk" / "platform-tools" / "adb"
        sdk_adb.parent.mkdir(parents=True)
        sdk_adb.write_text("")
        path_adb = tmp_path / "bin" / "adb"
        path_adb.parent.mkdir()
        path_adb.write_text("#!/bin/sh\n")
        path_adb.chmod(0o755)

        environ = {"ANDROID_HOME": str(tmp_path / "sdk"), "PATH": str(path_adb.parent)}

        assert find_adb(environ, LINUX_HOST) == sdk_adb

    @pytest.mark.posix
    def test_path_fallback(self, tmp_path):
        """Test adb on PATH is used without an SDK."""
        path_adb = tmp_path / "bin" / "adb"
        path_adb.parent.mkdir()
        path_adb.write_text("#!/bin/sh\n")
        path_adb.chmod(0o755)

        environ = {"PATH": str(path_adb.parent), "HOME": str(tmp_path / "home")}

        assert find_adb(environ, LINUX_HOST) == path_adb

    def test_not_found(self, tmp_path):
        """Test a missing adb is a device error."""
        environ = {"PATH": str(tmp_path / "empty"), "HOME": str(tmp_path / "home")}

        with pytest.raises(DeviceError) as exc_info:
            find_adb(environ, LINUX_HOST)

        assert exc_info.value.kind is DeviceErrorKind.ADB_NOT_FOUND
