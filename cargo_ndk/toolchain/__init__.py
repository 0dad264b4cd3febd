"""
NDK toolchain discovery and build environment synthesis.

This package finds an installed NDK, resolves the compiler, binutils and
sysroot paths for a target, and produces the environment variables a
downstream native build reads.
"""

from cargo_ndk.toolchain.locator import (
    NdkLocator,
    NdkVersion,
    NdkInstallation,
    read_ndk_version,
    highest_version_ndk_in,
    NDK_HOME_VARS,
    SDK_HOME_VARS,
)
from cargo_ndk.toolchain.resolver import ToolchainPaths, ToolchainResolver
from cargo_ndk.toolchain.environment import (
    EnvironmentSet,
    EnvironmentSynthesizer,
    ensure_libgcc_workaround,
)
from cargo_ndk.toolchain.quoting import get_arg_escaper

__all__ = [
    "NdkLocator",
    "NdkVersion",
    "NdkInstallation",
    "read_ndk_version",
    "highest_version_ndk_in",
    "NDK_HOME_VARS",
    "SDK_HOME_VARS",
    "ToolchainPaths",
    "ToolchainResolver",
    "EnvironmentSet",
    "EnvironmentSynthesizer",
    "ensure_libgcc_workaround",
    "get_arg_escaper",
]
