"""
Cross-compilation targets for cargo-ndk.

This module provides the catalog of supported Android targets and the lookup
between their toolchain triple, ABI name and sysroot directory spellings.
"""

from cargo_ndk.cross.targets import (
    Target,
    TargetCatalog,
    ALL_TARGETS,
    ARMEABI_V7A,
    ARM64_V8A,
    X86,
    X86_64,
)

__all__ = [
    "Target",
    "TargetCatalog",
    "ALL_TARGETS",
    "ARMEABI_V7A",
    "ARM64_V8A",
    "X86",
    "X86_64",
]
