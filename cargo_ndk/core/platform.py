"""
Host platform detection for cargo-ndk.

The NDK ships one prebuilt LLVM toolchain per host OS. This module detects the
running host and maps it onto the prebuilt directory name the NDK uses.

Usage:
    from cargo_ndk.core.platform import detect_host

    host = detect_host()
    print(host.prebuilt_tag())   # e.g. 'linux-x86_64'
"""

import functools
import platform
from dataclasses import dataclass

from cargo_ndk.core.exceptions import UnsupportedHostError


@dataclass(frozen=True)
class HostInfo:
    """
    Host identity.

    Attributes:
        os: Operating system ('linux', 'macos', 'windows')
        arch: CPU architecture ('x64', 'arm64', 'x86', 'arm')
    """

    os: str
    arch: str

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    def prebuilt_tag(self) -> str:
        """
        Get the NDK prebuilt toolchain directory name for this host.

        macOS on both Intel and Apple Silicon uses the 'darwin-x86_64'
        directory, which contains universal binaries.

        Returns:
            Prebuilt directory name

        Raises:
            UnsupportedHostError: If the NDK ships no toolchain for this host

        Example:
            >>> HostInfo('macos', 'arm64').prebuilt_tag()
            'darwin-x86_64'
        """
        if self.os == "linux":
            return "linux-x86_64"
        if self.os == "macos":
            return "darwin-x86_64"
        if self.os == "windows":
            return "windows-x86_64"
        raise UnsupportedHostError(
            f"The NDK provides no prebuilt toolchain for host {self.os}-{self.arch}"
        )

    @property
    def exe_suffix(self) -> str:
        """Suffix of native executables in the NDK bin directory."""
        return ".exe" if self.is_windows else ""

    @property
    def script_suffix(self) -> str:
        """Suffix of the API-level clang wrapper scripts."""
        return ".cmd" if self.is_windows else ""

    def __str__(self) -> str:
        return f"{self.os}-{self.arch}"


@functools.lru_cache(maxsize=1)
def detect_host() -> HostInfo:
    """
    Detect the current host.

    This function is cached - it only runs detection once per process.

    Returns:
        HostInfo for the running machine

    Raises:
        UnsupportedHostError: If the operating system is not recognised
    """
    return HostInfo(os=_detect_os(), arch=_detect_architecture())


def _detect_os() -> str:
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "linux":
        if "android" in platform.platform().lower():
            # Termux and friends; cargo-ndk is meant to run on the host.
            raise UnsupportedHostError(
                "Running cargo-ndk on Android is not supported; run it on your host OS."
            )
        return "linux"
    elif system == "darwin":
        return "macos"
    else:
        raise UnsupportedHostError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    else:
        return machine


def clear_host_cache():
    """Clear the host detection cache (for tests)."""
    detect_host.cache_clear()


__all__ = [
    "HostInfo",
    "detect_host",
    "clear_host_cache",
]
