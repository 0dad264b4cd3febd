"""
Core functionality for cargo-ndk.

This package contains the foundational modules that other components depend on.
"""

from .exceptions import (
    CargoNdkError,
    DiscoveryError,
    NdkNotFoundError,
    ToolchainError,
    ToolchainFileMissingError,
    UnsupportedHostError,
    ConfigError,
    UnknownTargetError,
    BuildError,
    BuildFailure,
    ArtifactError,
    DeviceStage,
    DeviceErrorKind,
    DeviceError,
    TransportError,
)

from .platform import (
    HostInfo,
    detect_host,
    clear_host_cache,
)

from .locking import path_lock, LockTimeout

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
    "HostInfo",
    "detect_host",
    "clear_host_cache",
    "path_lock",
    "LockTimeout",
]
