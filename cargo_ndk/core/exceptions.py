"""
Centralized exception hierarchy for cargo-ndk.

Every failure the engine can report derives from CargoNdkError so the CLI can
turn it into a single error line and a non-zero exit code.
"""

from enum import Enum
from pathlib import Path
from typing import Iterable, Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class CargoNdkError(Exception):
    """Base exception for all cargo-ndk errors."""

    pass


# ============================================================================
# Discovery Exceptions
# ============================================================================


class DiscoveryError(CargoNdkError):
    """Base exception for NDK discovery errors."""

    pass


class NdkNotFoundError(DiscoveryError):
    """Raised when no NDK installation validates in any checked location."""

    def __init__(self, locations: Iterable[str], reason: str = ""):
        self.locations = list(locations)
        lines = [reason or "Could not find any NDK."]
        if self.locations:
            lines.append("Locations checked:")
            lines.extend(f"  - {location}" for location in self.locations)
        lines.append(
            "Set ANDROID_NDK_HOME to your NDK installation's root directory, "
            "or install the NDK using Android Studio."
        )
        super().__init__("\n".join(lines))


# ============================================================================
# Toolchain Exceptions
# ============================================================================


class ToolchainError(CargoNdkError):
    """Base exception for toolchain resolution errors."""

    pass


class ToolchainFileMissingError(ToolchainError):
    """Raised when a resolved toolchain file does not exist on disk."""

    def __init__(self, path: Path, what: str = "toolchain file"):
        self.path = Path(path)
        self.what = what
        super().__init__(
            f"Missing {what}: {self.path} "
            "(is the NDK version compatible with the requested target and API level?)"
        )


class UnsupportedHostError(ToolchainError):
    """Raised when the host OS has no NDK prebuilt toolchain."""

    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigError(CargoNdkError):
    """Raised for requests the tool cannot honor (bad targets, conflicting flags)."""

    pass


class UnknownTargetError(ConfigError):
    """Raised when a target identifier is not in the catalog."""

    def __init__(self, name: str, known: Iterable[str] = ()):
        self.name = name
        known = list(known)
        msg = f"Unsupported target: '{name}'"
        if known:
            msg += f". Supported targets: {', '.join(known)}"
        super().__init__(msg)


# ============================================================================
# Build Exceptions
# ============================================================================


class BuildError(CargoNdkError):
    """Raised when the build tool cannot be spawned at all."""

    pass


class BuildFailure(CargoNdkError):
    """The build tool ran and exited non-zero for a target."""

    def __init__(self, target: str, exit_code: int):
        self.target = target
        self.exit_code = exit_code
        super().__init__(f"Build for {target} failed with exit code {exit_code}")


class ArtifactError(CargoNdkError):
    """Raised when artifacts cannot be located or copied."""

    pass


# ============================================================================
# Device Exceptions
# ============================================================================


class DeviceStage(Enum):
    """Stages of a remote run, in order."""

    DISCONNECTED = "disconnected"
    STAGING = "staging"
    EXECUTING = "executing"
    COLLECTING = "collecting"
    CLEANUP = "cleanup"
    DONE = "done"


class DeviceErrorKind(Enum):
    """What went wrong on the device side."""

    NO_DEVICE = "no_device"
    ADB_NOT_FOUND = "adb_not_found"
    PUSH_FAILED = "push_failed"
    EXEC_FAILED = "exec_failed"
    MISSING_LIBRARY = "missing_library"
    TRANSPORT = "transport"


class DeviceError(CargoNdkError):
    """Raised when staging, execution or transport on the device fails."""

    def __init__(
        self,
        stage: DeviceStage,
        kind: DeviceErrorKind,
        detail: str = "",
        cause: Optional[BaseException] = None,
    ):
        self.stage = stage
        self.kind = kind
        self.detail = detail
        self.cause = cause
        msg = f"Device {kind.value.replace('_', ' ')} during {stage.value} stage"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class TransportError(CargoNdkError):
    """Raised by a device transport when the transport itself fails."""

    pass


__all__ = [
    "CargoNdkError",
    "DiscoveryError",
    "NdkNotFoundError",
    "ToolchainError",
    "ToolchainFileMissingError",
    "UnsupportedHostError",
    "ConfigError",
    "UnknownTargetError",
    "BuildError",
    "BuildFailure",
    "ArtifactError",
    "DeviceStage",
    "DeviceErrorKind",
    "DeviceError",
    "TransportError",
]
