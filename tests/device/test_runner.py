"""
Tests for remote execution on a device.
"""

import logging
from pathlib import Path

import pytest

from cargo_ndk.core.exceptions import (
    DeviceError,
    DeviceErrorKind,
    DeviceStage,
    TransportError,
)
from cargo_ndk.device.runner import DeviceRunner
from cargo_ndk.device.transport import ShellResult


class FakeTransport:
    """Transport double that records calls and answers from a script."""

    def __init__(self, state="device", push_error=None, exec_result=None, rm_error=None):
        self.serial = "emulator-5554"
        self.state = state
        self.push_error = push_error
        self.exec_result = exec_result or ShellResult(0, "")
        self.rm_error = rm_error
        self.calls = []

    def get_state(self):
        self.calls.append(("get-state",))
        if isinstance(self.state, Exception):
            raise self.state
        return self.state

    def push(self, local, remote):
        self.calls.append(("push", str(local), remote))
        if self.push_error:
            raise self.push_error

    def shell(self, command, capture=False):
        self.calls.append(("shell", command, capture))
        if command.startswith("rm -rf"):
            if self.rm_error:
                raise self.rm_error
            return ShellResult(0, "")
        if command.startswith(("mkdir", "chmod")):
            return ShellResult(0, "")
        return self.exec_result

    def shell_commands(self):
        return [c[1] for c in self.calls if c[0] == "shell"]


@pytest.fixture
def executable(tmp_path):
    exe = tmp_path / "my_test-0123abcd"
    exe.write_bytes(b"\x7fELF")
    return exe


class TestRunRemote:
    """Test the staging, execution and cleanup sequence."""

    def test_successful_run(self, executable, tmp_path):
        """Test push, chmod, run and cleanup happen in order."""
        lib = tmp_path / "libc++_shared.so"
        lib.write_bytes(b"")
        transport = FakeTransport(exec_result=ShellResult(0, ""))
        runner = DeviceRunner(transport)

        result = runner.run_remote(executable, ["--nocapture"], dependencies=[lib])

        assert result.ok
        kinds = [c[0] for c in transport.calls]
        assert kinds == ["get-state", "shell", "push", "push", "shell", "shell", "shell"]
        staging = transport.calls[2][2].rsplit("/", 1)[0]
        assert staging.startswith("/data/local/tmp/cargo-ndk-")
        assert result.staged == (
            f"{staging}/my_test-0123abcd",
            f"{staging}/libc++_shared.so",
        )

        commands = transport.shell_commands()
        assert commands[0] == f"mkdir -p {staging}"
        assert commands[1] == f"chmod 755 {staging}/my_test-0123abcd"
        assert commands[2] == (
            f"cd {staging} && LD_LIBRARY_PATH={staging} ./my_test-0123abcd --nocapture"
        )
        assert commands[3] == f"rm -rf {staging}"
        assert runner.stage is DeviceStage.DONE

    def test_remote_exit_code_returned(self, executable):
        """Test a failing program's exit code is passed through."""
        transport = FakeTransport(exec_result=ShellResult(101, ""))

        result = DeviceRunner(transport).run_remote(executable)

        assert result.exit_code == 101
        assert not result.ok

    def test_arguments_and_environment_quoted(self, executable):
        """Test arguments and variables are shell-quoted."""
        transport = FakeTransport()

        DeviceRunner(transport).run_remote(
            executable, ["a b", "it's"], env={"RUST_BACKTRACE": "1"}
        )

        command = transport.shell_commands()[2]
        assert "RUST_BACKTRACE=1 ./my_test-0123abcd 'a b' 'it'\"'\"'s'" in command

    def test_unique_staging_per_run(self, executable):
        """Test two runs use different staging directories."""
        transport = FakeTransport()
        runner = DeviceRunner(transport)

        first = runner.run_remote(executable).staged[0]
        second = runner.run_remote(executable).staged[0]

        assert first != second

    def test_no_device(self, executable):
        """Test a disconnected device fails before anything is pushed."""
        transport = FakeTransport(state="unknown")

        with pytest.raises(DeviceError) as exc_info:
            DeviceRunner(transport).run_remote(executable)

        assert exc_info.value.stage is DeviceStage.DISCONNECTED
        assert exc_info.value.kind is DeviceErrorKind.NO_DEVICE
        assert "--adb-serial" in str(exc_info.value)
        assert [c[0] for c in transport.calls] == ["get-state"]

    def test_transport_failure_on_connect(self, executable):
        """Test an adb failure while checking the state."""
        transport = FakeTransport(state=TransportError("adb crashed"))

        with pytest.raises(DeviceError) as exc_info:
            DeviceRunner(transport).run_remote(executable)

        assert exc_info.value.kind is DeviceErrorKind.TRANSPORT

    def test_push_failure(self, executable):
        """Test a failed push stops before execution and still cleans up."""
        transport = FakeTransport(push_error=TransportError("device full"))

        with pytest.raises(DeviceError) as exc_info:
            DeviceRunner(transport).run_remote(executable)

        assert exc_info.value.stage is DeviceStage.STAGING
        assert exc_info.value.kind is DeviceErrorKind.PUSH_FAILED
        assert "device full" in str(exc_info.value)
        commands = transport.shell_commands()
        assert not any(c.startswith("cd ") for c in commands)
        assert commands[-1].startswith("rm -rf /data/local/tmp/cargo-ndk-")

    def test_missing_library(self, executable):
        """Test exit code 127 is reported as a missing library."""
        transport = FakeTransport(exec_result=ShellResult(127, ""))

        with pytest.raises(DeviceError) as exc_info:
            DeviceRunner(transport).run_remote(executable)

        assert exc_info.value.stage is DeviceStage.EXECUTING
        assert exc_info.value.kind is DeviceErrorKind.MISSING_LIBRARY
        assert transport.shell_commands()[-1].startswith("rm -rf")

    def test_linker_error_output(self, executable):
        """Test the dynamic linker's message is recognized in captured output."""
        output = 'CANNOT LINK EXECUTABLE "./x": library "libfoo.so" not found\n'
        transport = FakeTransport(exec_result=ShellResult(1, output))

        with pytest.raises(DeviceError) as exc_info:
            DeviceRunner(transport).run_remote(executable, capture=True)

        assert exc_info.value.kind is DeviceErrorKind.MISSING_LIBRARY

    def test_cleanup_failure_does_not_mask_error(self, executable, caplog):
        """Test the original error survives a failing cleanup."""
        transport = FakeTransport(
            push_error=TransportError("device full"),
            rm_error=TransportError("device gone"),
        )

        with caplog.at_level(logging.WARNING, logger="cargo_ndk.device.runner"):
            with pytest.raises(DeviceError) as exc_info:
                DeviceRunner(transport).run_remote(executable)

        assert exc_info.value.kind is DeviceErrorKind.PUSH_FAILED
        assert "device gone" in caplog.text

    def test_cleanup_failure_after_success(self, executable, caplog):
        """Test a failing cleanup does not change a successful result."""
        transport = FakeTransport(rm_error=TransportError("device gone"))

        with caplog.at_level(logging.WARNING, logger="cargo_ndk.device.runner"):
            result = DeviceRunner(transport).run_remote(executable)

        assert result.ok
        assert "Could not remove" in caplog.text

    def test_interrupt_cleans_up(self, executable):
        """Test Ctrl-C during execution still removes the staging directory."""
        transport = FakeTransport()
        original_shell = transport.shell

        def interrupting_shell(command, capture=False):
            if command.startswith("cd "):
                transport.calls.append(("shell", command, capture))
                raise KeyboardInterrupt
            return original_shell(command, capture)

        transport.shell = interrupting_shell

        with pytest.raises(KeyboardInterrupt):
            DeviceRunner(transport).run_remote(executable)

        assert transport.shell_commands()[-1].startswith("rm -rf")

    def test_custom_staging_root(self, executable):
        """Test a different writable directory on the device."""
        transport = FakeTransport()

        result = DeviceRunner(transport, staging_root="/sdcard/tmp/").run_remote(
            executable
        )

        assert result.staged[0].startswith("/sdcard/tmp/cargo-ndk-")
        assert Path(result.staged[0]).name == "my_test-0123abcd"
