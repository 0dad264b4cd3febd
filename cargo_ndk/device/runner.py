"""
Remote execution on an Android device.

A run moves through the stages DISCONNECTED -> STAGING -> EXECUTING ->
COLLECTING -> CLEANUP -> DONE. The staging directory is removed on every
exit path, including failures and Ctrl-C, and a cleanup failure is only
logged so it never hides the error that caused the exit.
"""

import logging
import shlex
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from cargo_ndk.core.exceptions import (
    DeviceError,
    DeviceErrorKind,
    DeviceStage,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_STAGING_ROOT = "/data/local/tmp"

# Exit status of the shell when the program (or its loader) cannot run it.
COMMAND_NOT_FOUND = 127
LINKER_ERROR_MARKER = "CANNOT LINK EXECUTABLE"


@dataclass
class DeviceSession:
    """
    Device-side state of one remote run.

    Attributes:
        serial: Device serial (None: the only connected device)
        staging_dir: Directory on the device holding the pushed files
        staged: Remote paths pushed so far
    """

    serial: Optional[str]
    staging_dir: str
    staged: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RemoteResult:
    """
    Outcome of a remote run.

    Attributes:
        exit_code: Exit code of the program on the device
        output: Captured output (empty when streamed)
        staged: Remote paths that were pushed
    """

    exit_code: int
    output: str = ""
    staged: Sequence[str] = ()

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class DeviceRunner:
    """Push an executable to a device, run it and clean up."""

    def __init__(self, transport, staging_root: str = DEFAULT_STAGING_ROOT):
        """
        Initialize runner.

        Args:
            transport: Object with get_state(), push(local, remote) and
                shell(command, capture) (see AdbTransport)
            staging_root: Writable directory on the device
        """
        self.transport = transport
        self.staging_root = staging_root.rstrip("/")
        self.stage = DeviceStage.DISCONNECTED

    def new_session(self) -> DeviceSession:
        name = f"cargo-ndk-{uuid.uuid4().hex[:12]}"
        return DeviceSession(
            serial=getattr(self.transport, "serial", None),
            staging_dir=f"{self.staging_root}/{name}",
        )

    def run_remote(
        self,
        artifact: Path,
        args: Sequence[str] = (),
        dependencies: Sequence[Path] = (),
        env: Optional[Mapping[str, str]] = None,
        capture: bool = False,
    ) -> RemoteResult:
        """
        Run `artifact` on the device.

        Args:
            artifact: Local executable
            args: Arguments for the executable
            dependencies: Shared libraries pushed next to the executable
            env: Extra environment variables for the remote process
            capture: Capture output instead of streaming it

        Returns:
            RemoteResult with the remote exit code

        Raises:
            DeviceError: With the stage and kind of the failure
        """
        artifact = Path(artifact)
        self.stage = DeviceStage.DISCONNECTED
        self._check_connected()

        session = self.new_session()
        try:
            self._stage_files(session, artifact, dependencies)
            result = self._execute(session, artifact, args, env, capture)

            self.stage = DeviceStage.COLLECTING
            if result.exit_code == COMMAND_NOT_FOUND or LINKER_ERROR_MARKER in result.output:
                raise DeviceError(
                    DeviceStage.EXECUTING,
                    DeviceErrorKind.MISSING_LIBRARY,
                    f"{artifact.name} could not be started; a shared library it "
                    "needs is probably missing on the device",
                )
            return RemoteResult(result.exit_code, result.output, tuple(session.staged))
        finally:
            self.cleanup(session)
            self.stage = DeviceStage.DONE

    def cleanup(self, session: DeviceSession):
        """Remove the session's staging directory; safe to call repeatedly."""
        self.stage = DeviceStage.CLEANUP
        try:
            result = self.transport.shell(
                f"rm -rf {shlex.quote(session.staging_dir)}", capture=True
            )
            if result.exit_code != 0:
                logger.warning(
                    f"Could not remove {session.staging_dir} from device: "
                    f"{result.output.strip()}"
                )
        except TransportError as e:
            logger.warning(f"Could not remove {session.staging_dir} from device: {e}")

    def _check_connected(self):
        try:
            state = self.transport.get_state()
        except TransportError as e:
            raise DeviceError(
                DeviceStage.DISCONNECTED, DeviceErrorKind.TRANSPORT, str(e), cause=e
            ) from e
        if state != "device":
            raise DeviceError(
                DeviceStage.DISCONNECTED,
                DeviceErrorKind.NO_DEVICE,
                f"adb reports state '{state or 'unknown'}'. If several devices "
                "are connected, select one with --adb-serial (see `adb devices`)",
            )

    def _stage_files(
        self, session: DeviceSession, artifact: Path, dependencies: Sequence[Path]
    ):
        self.stage = DeviceStage.STAGING
        staging = shlex.quote(session.staging_dir)
        try:
            result = self.transport.shell(f"mkdir -p {staging}", capture=True)
            if result.exit_code != 0:
                raise TransportError(result.output.strip() or "mkdir failed")

            for local in [artifact, *dependencies]:
                remote = f"{session.staging_dir}/{Path(local).name}"
                logger.debug(f"Pushing {local} -> {remote}")
                self.transport.push(Path(local), remote)
                session.staged.append(remote)

            remote_exe = shlex.quote(f"{session.staging_dir}/{artifact.name}")
            result = self.transport.shell(f"chmod 755 {remote_exe}", capture=True)
            if result.exit_code != 0:
                raise TransportError(result.output.strip() or "chmod failed")
        except TransportError as e:
            raise DeviceError(
                DeviceStage.STAGING, DeviceErrorKind.PUSH_FAILED, str(e), cause=e
            ) from e

    def _execute(
        self,
        session: DeviceSession,
        artifact: Path,
        args: Sequence[str],
        env: Optional[Mapping[str, str]],
        capture: bool,
    ):
        self.stage = DeviceStage.EXECUTING
        staging = shlex.quote(session.staging_dir)
        assignments = [f"LD_LIBRARY_PATH={staging}"]
        for key, value in (env or {}).items():
            assignments.append(f"{key}={shlex.quote(str(value))}")
        argv = " ".join(shlex.quote(a) for a in args)
        command = f"cd {staging} && {' '.join(assignments)} ./{shlex.quote(artifact.name)}"
        if argv:
            command += f" {argv}"

        logger.debug(f"Executing on device: {command}")
        try:
            return self.transport.shell(command, capture=capture)
        except TransportError as e:
            raise DeviceError(
                DeviceStage.EXECUTING, DeviceErrorKind.EXEC_FAILED, str(e), cause=e
            ) from e


__all__ = [
    "DeviceRunner",
    "DeviceSession",
    "RemoteResult",
    "DEFAULT_STAGING_ROOT",
]
