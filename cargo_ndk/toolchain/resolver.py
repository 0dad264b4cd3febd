"""
Toolchain path resolution.

Given a selected NDK, a target and an API level, compute the concrete paths
of the compiler drivers, binutils and sysroot, and verify every one of them
exists. A stale or mismatched NDK is the most common real-world failure, so
the error always names the exact file that was expected.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from cargo_ndk.core.exceptions import ToolchainFileMissingError
from cargo_ndk.core.platform import HostInfo, detect_host
from cargo_ndk.cross.targets import Target
from cargo_ndk.toolchain.locator import NdkInstallation

logger = logging.getLogger(__name__)

# NDK r23 replaced the GNU binutils with their LLVM counterparts.
FIRST_LLVM_BINUTILS_MAJOR = 23


@dataclass(frozen=True)
class ToolchainPaths:
    """
    Resolved toolchain files for one (NDK, target, API level).

    Attributes:
        cc: API-level C compiler wrapper (e.g. aarch64-linux-android21-clang)
        cxx: API-level C++ compiler wrapper
        clang: Plain clang driver, used with an explicit --target
        ar: Archiver
        ranlib: Archive indexer
        strip: Symbol stripper
        sysroot: NDK sysroot root
        sysroot_lib_dir: Target library directory inside the sysroot
        api_level: Effective API level after clamping
        cmake_toolchain_file: The NDK's android.toolchain.cmake
    """

    cc: Path
    cxx: Path
    clang: Path
    ar: Path
    ranlib: Path
    strip: Path
    sysroot: Path
    sysroot_lib_dir: Path
    api_level: int
    cmake_toolchain_file: Path

    def clang_target(self, target: Target) -> str:
        """The `--target=` flag equivalent to the API-level wrapper."""
        return f"--target={target.clang_triple}{self.api_level}"


class ToolchainResolver:
    """Compute and validate toolchain paths inside an NDK."""

    def __init__(self, host: Optional[HostInfo] = None):
        """
        Initialize resolver.

        Args:
            host: Host information (default: detected)
        """
        self.host = host or detect_host()

    def effective_api_level(
        self, ndk: NdkInstallation, target: Target, api_level: int
    ) -> int:
        """
        Clamp `api_level` to the lowest level the NDK supports for `target`.

        Args:
            ndk: Selected NDK
            target: Build target
            api_level: Requested API level

        Returns:
            API level to build with
        """
        minimum = target.min_api(ndk.version.major)
        if api_level < minimum:
            logger.warning(
                f"API level {api_level} is below the minimum for {target.abi} "
                f"on NDK {ndk.version.major}; using {minimum}"
            )
            return minimum
        return api_level

    def resolve(
        self, ndk: NdkInstallation, target: Target, api_level: int
    ) -> ToolchainPaths:
        """
        Resolve toolchain paths.

        Args:
            ndk: Selected NDK installation
            target: Build target
            api_level: Requested API level (clamped up to the target minimum)

        Returns:
            ToolchainPaths with every path verified to exist

        Raises:
            ToolchainFileMissingError: If any expected file is missing
        """
        api = self.effective_api_level(ndk, target, api_level)
        prebuilt = ndk.path / "toolchains" / "llvm" / "prebuilt" / self.host.prebuilt_tag()
        bin_dir = prebuilt / "bin"
        exe = self.host.exe_suffix
        script = self.host.script_suffix

        cc = bin_dir / f"{target.clang_triple}{api}-clang{script}"
        cxx = bin_dir / f"{target.clang_triple}{api}-clang++{script}"
        clang = bin_dir / f"clang{exe}"

        if ndk.version.major >= FIRST_LLVM_BINUTILS_MAJOR:
            ar = bin_dir / f"llvm-ar{exe}"
            ranlib = bin_dir / f"llvm-ranlib{exe}"
            strip = bin_dir / f"llvm-strip{exe}"
        else:
            ar = bin_dir / f"{target.sysroot_name}-ar{exe}"
            ranlib = bin_dir / f"{target.sysroot_name}-ranlib{exe}"
            strip = bin_dir / f"{target.sysroot_name}-strip{exe}"

        sysroot = prebuilt / "sysroot"
        sysroot_lib_dir = sysroot / "usr" / "lib" / target.sysroot_name

        paths = ToolchainPaths(
            cc=cc,
            cxx=cxx,
            clang=clang,
            ar=ar,
            ranlib=ranlib,
            strip=strip,
            sysroot=sysroot,
            sysroot_lib_dir=sysroot_lib_dir,
            api_level=api,
            cmake_toolchain_file=ndk.cmake_toolchain_file,
        )

        for what, path in self._required(paths):
            if not path.exists():
                raise ToolchainFileMissingError(path, what)

        logger.debug(f"Resolved toolchain for {target.abi} (API {api}): {cc}")
        return paths

    def _required(self, paths: ToolchainPaths) -> List[Tuple[str, Path]]:
        return [
            ("C compiler", paths.cc),
            ("C++ compiler", paths.cxx),
            ("clang driver", paths.clang),
            ("archiver", paths.ar),
            ("ranlib", paths.ranlib),
            ("sysroot", paths.sysroot),
            ("sysroot library directory", paths.sysroot_lib_dir),
        ]


__all__ = [
    "ToolchainPaths",
    "ToolchainResolver",
    "FIRST_LLVM_BINUTILS_MAJOR",
]
