"""
Android target catalog.

The same CPU/ABI pair goes by several names: the Rust toolchain triple
(`armv7-linux-androideabi`), the Android ABI name (`armeabi-v7a`), the NDK
sysroot directory name (`arm-linux-androideabi`) and the clang target prefix
(`armv7a-linux-androideabi`). This module holds the closed, fixed mapping
between them.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from cargo_ndk.core.exceptions import UnknownTargetError

# First API level with 64-bit support.
FIRST_LP64_API_LEVEL = 21

# Lowest API level supported by the NDK for 32-bit targets. NDK r24 dropped
# support for everything below KitKat, r26 everything below Lollipop.
MIN_API_LEVEL = 16
MIN_API_LEVEL_R24 = 19
MIN_API_LEVEL_R26 = 21


@dataclass(frozen=True)
class Target:
    """
    One supported Android CPU/ABI.

    Attributes:
        abi: Android ABI name (e.g., 'arm64-v8a')
        triple: Rust toolchain triple (e.g., 'aarch64-linux-android')
        sysroot_name: Directory name under the NDK sysroot's usr/lib
        clang_triple: Prefix of the NDK's API-level clang wrappers
        arch: NDK architecture name ('arm', 'arm64', 'x86', 'x86_64')
        builtins_arch: Architecture suffix of the clang_rt builtins library
        lp64: Whether the ABI is 64-bit
    """

    abi: str
    triple: str
    sysroot_name: str
    clang_triple: str
    arch: str
    builtins_arch: str
    lp64: bool

    def min_api(self, ndk_major: int = 0) -> int:
        """
        Lowest API level the NDK can build this target for.

        Args:
            ndk_major: Major version of the NDK in use (0 if unknown)

        Returns:
            Minimum API level

        Example:
            >>> ARM64_V8A.min_api()
            21
            >>> ARMEABI_V7A.min_api(25)
            19
        """
        if self.lp64:
            return FIRST_LP64_API_LEVEL
        if ndk_major >= 26:
            return MIN_API_LEVEL_R26
        if ndk_major >= 24:
            return MIN_API_LEVEL_R24
        return MIN_API_LEVEL

    def env_key(self) -> str:
        """Triple in the upper-case form cargo uses for CARGO_TARGET_* keys."""
        return self.triple.replace("-", "_").upper()

    def __str__(self) -> str:
        return self.abi


ARMEABI_V7A = Target(
    abi="armeabi-v7a",
    triple="armv7-linux-androideabi",
    sysroot_name="arm-linux-androideabi",
    clang_triple="armv7a-linux-androideabi",
    arch="arm",
    builtins_arch="arm",
    lp64=False,
)

ARM64_V8A = Target(
    abi="arm64-v8a",
    triple="aarch64-linux-android",
    sysroot_name="aarch64-linux-android",
    clang_triple="aarch64-linux-android",
    arch="arm64",
    builtins_arch="aarch64",
    lp64=True,
)

X86 = Target(
    abi="x86",
    triple="i686-linux-android",
    sysroot_name="i686-linux-android",
    clang_triple="i686-linux-android",
    arch="x86",
    builtins_arch="i686",
    lp64=False,
)

X86_64 = Target(
    abi="x86_64",
    triple="x86_64-linux-android",
    sysroot_name="x86_64-linux-android",
    clang_triple="x86_64-linux-android",
    arch="x86_64",
    builtins_arch="x86_64",
    lp64=True,
)

ALL_TARGETS: Tuple[Target, ...] = (ARMEABI_V7A, ARM64_V8A, X86, X86_64)


class TargetCatalog:
    """
    Lookup between the naming schemes of the supported targets.

    The catalog is closed: any name that does not belong to one of the
    supported targets is rejected with UnknownTargetError.
    """

    _by_abi: Dict[str, Target] = {t.abi: t for t in ALL_TARGETS}
    _by_triple: Dict[str, Target] = {t.triple: t for t in ALL_TARGETS}
    _by_sysroot: Dict[str, Target] = {t.sysroot_name: t for t in ALL_TARGETS}
    _by_clang: Dict[str, Target] = {t.clang_triple: t for t in ALL_TARGETS}

    @classmethod
    def all(cls) -> List[Target]:
        """Return every supported target in declaration order."""
        return list(ALL_TARGETS)

    @classmethod
    def names(cls) -> List[str]:
        """Return the ABI names of every supported target."""
        return [t.abi for t in ALL_TARGETS]

    @classmethod
    def from_abi(cls, abi: str) -> Target:
        try:
            return cls._by_abi[abi]
        except KeyError:
            raise UnknownTargetError(abi, cls.names()) from None

    @classmethod
    def from_triple(cls, triple: str) -> Target:
        try:
            return cls._by_triple[triple]
        except KeyError:
            raise UnknownTargetError(triple, cls.names()) from None

    @classmethod
    def from_sysroot_name(cls, name: str) -> Target:
        try:
            return cls._by_sysroot[name]
        except KeyError:
            raise UnknownTargetError(name, cls.names()) from None

    @classmethod
    def parse(cls, name: str) -> Target:
        """
        Resolve any known spelling of a target.

        Accepts Android ABI names, Rust triples, NDK sysroot names and clang
        wrapper prefixes.

        Args:
            name: Target identifier

        Returns:
            Matching Target

        Raises:
            UnknownTargetError: If the name matches no supported target

        Example:
            >>> TargetCatalog.parse('aarch64-linux-android').abi
            'arm64-v8a'
        """
        key = name.strip()
        for table in (cls._by_abi, cls._by_triple, cls._by_sysroot, cls._by_clang):
            if key in table:
                return table[key]
        raise UnknownTargetError(name, cls.names())

    @classmethod
    def parse_list(cls, names: Iterable[str]) -> List[Target]:
        """
        Parse a list of target names, accepting comma-separated entries.

        Duplicates are dropped, keeping the first occurrence.
        """
        targets: List[Target] = []
        for entry in names:
            for name in str(entry).split(","):
                if not name.strip():
                    continue
                target = cls.parse(name)
                if target not in targets:
                    targets.append(target)
        return targets

    @classmethod
    def default_targets(cls) -> List[Target]:
        """Targets built when none are requested."""
        return [ARMEABI_V7A, ARM64_V8A]


__all__ = [
    "Target",
    "TargetCatalog",
    "ALL_TARGETS",
    "ARMEABI_V7A",
    "ARM64_V8A",
    "X86",
    "X86_64",
    "FIRST_LP64_API_LEVEL",
    "MIN_API_LEVEL",
    "MIN_API_LEVEL_R24",
    "MIN_API_LEVEL_R26",
]
