"""
Device transport over adb.

The transport is the only component that talks to the device. It is kept
small (state query, push, shell) so the runner can be tested against a
mock with the same three methods.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from cargo_ndk.core.exceptions import (
    DeviceError,
    DeviceErrorKind,
    DeviceStage,
    TransportError,
)
from cargo_ndk.core.platform import HostInfo, detect_host
from cargo_ndk.toolchain.locator import NdkLocator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShellResult:
    """Exit code and (when captured) combined output of a device command."""

    exit_code: int
    output: str = ""


class AdbTransport:
    """Run adb against one device."""

    def __init__(
        self,
        adb_path: Path,
        serial: Optional[str] = None,
        runner: Callable = subprocess.run,
    ):
        """
        Initialize transport.

        Args:
            adb_path: adb executable
            serial: Device serial (None: the only connected device)
            runner: subprocess.run compatible callable
        """
        self.adb_path = Path(adb_path)
        self.serial = serial
        self.runner = runner

    def _command(self, *args: str) -> List[str]:
        cmd = [str(self.adb_path)]
        if self.serial:
            cmd += ["-s", self.serial]
        cmd.extend(args)
        return cmd

    def _run(self, args: List[str], capture: bool = True):
        logger.debug(f"Running: {' '.join(args)}")
        try:
            if capture:
                return self.runner(
                    args,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                )
            return self.runner(args)
        except OSError as e:
            raise TransportError(f"Could not run {self.adb_path}: {e}") from e

    def get_state(self) -> str:
        """Return the device state as reported by adb ('device' when usable)."""
        result = self._run(self._command("get-state"))
        if result.returncode != 0:
            return "unknown"
        return (result.stdout or "").strip()

    def push(self, local: Path, remote: str):
        """
        Copy a local file to the device.

        Raises:
            TransportError: If adb reports a failure
        """
        result = self._run(self._command("push", str(local), remote))
        if result.returncode != 0:
            raise TransportError(
                f"adb push {local} failed: {(result.stdout or '').strip()}"
            )

    def shell(self, command: str, capture: bool = False) -> ShellResult:
        """
        Run a shell command on the device.

        Args:
            command: Command line interpreted by the device shell
            capture: Capture output instead of streaming it to the terminal

        Returns:
            ShellResult with the remote exit code
        """
        result = self._run(self._command("shell", command), capture=capture)
        output = (result.stdout or "") if capture else ""
        return ShellResult(result.returncode, output)


def find_adb(
    environ: Optional[Mapping[str, str]] = None, host: Optional[HostInfo] = None
) -> Path:
    """
    Locate the adb executable.

    The SDK's platform-tools directory (from the SDK home variables) is
    preferred over adb on PATH.

    Raises:
        DeviceError: If adb cannot be found
    """
    environ = os.environ if environ is None else environ
    host = host or detect_host()
    for candidate in NdkLocator(environ=environ, host=host).adb_candidates():
        if candidate.is_file():
            logger.debug(f"Using adb from SDK: {candidate}")
            return candidate

    found = shutil.which("adb", path=environ.get("PATH"))
    if found:
        return Path(found)

    raise DeviceError(
        DeviceStage.DISCONNECTED,
        DeviceErrorKind.ADB_NOT_FOUND,
        "adb not found in the Android SDK platform-tools or on PATH",
    )


__all__ = ["AdbTransport", "ShellResult", "find_adb"]
