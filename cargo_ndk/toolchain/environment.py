"""
Build environment synthesis.

Produces the environment variables a cross build for one Android target
needs: compiler and archiver selection in the `CC_<triple>` / `AR_<triple>`
convention the `cc` crate (and most native-dependency build scripts) read,
cargo's own `CARGO_TARGET_<TRIPLE>_*` keys, and informational
`CARGO_NDK_*` variables for downstream build scripts.

Nothing here touches os.environ. The result is an overlay that the caller
merges into a copy of the parent environment for the child process only.
"""

import json
import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Tuple

from cargo_ndk.core.exceptions import (
    ArtifactError,
    ToolchainError,
    ToolchainFileMissingError,
)
from cargo_ndk.core.locking import LockTimeout, path_lock
from cargo_ndk.core.platform import HostInfo, detect_host
from cargo_ndk.cross.targets import Target
from cargo_ndk.toolchain.locator import NdkInstallation
from cargo_ndk.toolchain.resolver import FIRST_LLVM_BINUTILS_MAJOR, ToolchainPaths

logger = logging.getLogger(__name__)

# Variables with this prefix are consumed by the linker shim and are not part
# of the public environment.
PRIVATE_PREFIX = "_CARGO_NDK_"
LINK_CLANG_VAR = "_CARGO_NDK_LINK_CLANG"
LINK_TARGET_VAR = "_CARGO_NDK_LINK_TARGET"

ENCODED_RUSTFLAGS = "CARGO_ENCODED_RUSTFLAGS"
PLAIN_RUSTFLAGS = "RUSTFLAGS"
_ENCODED_SEP = "\x1f"


@dataclass
class EnvironmentSet:
    """
    Ordered set of variables for one target's build.

    Attributes:
        target: Target the variables were synthesized for
        variables: Variable name to value, in synthesis order
    """

    target: Target
    variables: Dict[str, str] = field(default_factory=dict)

    def __getitem__(self, key: str) -> str:
        return self.variables[key]

    def __contains__(self, key: object) -> bool:
        return key in self.variables

    def __iter__(self) -> Iterator[str]:
        return iter(self.variables)

    def __len__(self) -> int:
        return len(self.variables)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.variables.get(key, default)

    def items(self):
        return self.variables.items()

    def public(self) -> Dict[str, str]:
        """Variables without the private linker-shim entries, sorted by name."""
        return {
            k: v
            for k, v in sorted(self.variables.items())
            if not k.startswith("_")
        }

    def apply_to(self, base: Mapping[str, str]) -> Dict[str, str]:
        """
        Overlay these variables on a copy of `base`.

        Args:
            base: Parent environment (not modified)

        Returns:
            New environment mapping for a child process
        """
        merged = dict(base)
        merged.update(self.variables)
        return merged

    def to_shell(self) -> str:
        """Render as POSIX shell `export` lines."""
        lines = [
            f"export {shell_name(k)}={shlex.quote(v)}" for k, v in self.public().items()
        ]
        lines.append("")
        lines.append("# To import with bash/zsh/etc:")
        lines.append("#     source <(cargo ndk-env)")
        return "\n".join(lines)

    def to_powershell(self) -> str:
        """Render as PowerShell assignments."""
        lines = [
            f"${{env:{k}}}={powershell_quote(v)}" for k, v in self.public().items()
        ]
        lines.append("")
        lines.append("# To import with PowerShell:")
        lines.append("#     cargo ndk-env --powershell | Out-String | Invoke-Expression")
        return "\n".join(lines)

    def to_json(self) -> str:
        """Render as a JSON object."""
        return json.dumps(self.public(), indent=2)


def shell_name(key: str) -> str:
    """Turn a variable name into a valid POSIX shell identifier."""
    return re.sub(r"[^A-Za-z0-9_]", "_", key)


def powershell_quote(value: str) -> str:
    """Double-quote a value for PowerShell, escaping backtick, quote and dollar."""
    escaped = value.replace("`", "``").replace('"', '`"').replace("$", "`$")
    return f'"{escaped}"'


class RustFlags:
    """
    Rust compiler flags inherited from the parent environment.

    cargo reads CARGO_ENCODED_RUSTFLAGS (0x1f separated) in preference to
    RUSTFLAGS (space separated); flags are appended to whichever one the
    parent already uses so user flags are kept.
    """

    def __init__(self, environ: Mapping[str, str]):
        if ENCODED_RUSTFLAGS in environ:
            self.key = ENCODED_RUSTFLAGS
            self.value = environ[ENCODED_RUSTFLAGS]
        elif PLAIN_RUSTFLAGS in environ:
            self.key = PLAIN_RUSTFLAGS
            self.value = environ[PLAIN_RUSTFLAGS]
        else:
            # Encoded form so paths with spaces survive.
            self.key = ENCODED_RUSTFLAGS
            self.value = ""
        self.changed = False

    def append(self, flag: str):
        sep = _ENCODED_SEP if self.key == ENCODED_RUSTFLAGS else " "
        self.value = f"{self.value}{sep}{flag}" if self.value else flag
        self.changed = True

    def as_env_var(self) -> Optional[Tuple[str, str]]:
        if not self.changed:
            return None
        return self.key, self.value


def libgcc_workaround_dir(target_dir: Path) -> Path:
    """Directory holding the libgcc.a linker script for NDK r23 and newer."""
    return Path(target_dir) / "cargo-ndk" / "libgcc-workaround"


def ensure_libgcc_workaround(target_dir: Path) -> Path:
    """
    Write the libgcc.a linker script that redirects libgcc to libunwind.

    NDK r23 no longer ships libgcc, which Rust's prebuilt standard library
    still links against.

    Args:
        target_dir: Build tool target directory

    Returns:
        Directory to add to the library search path

    Raises:
        ArtifactError: If the script cannot be written
    """
    directory = libgcc_workaround_dir(target_dir)
    script = directory / "libgcc.a"
    try:
        with path_lock(script):
            if not script.exists() or script.read_bytes() != b"INPUT(-lunwind)":
                script.write_bytes(b"INPUT(-lunwind)")
                logger.debug(f"Wrote libgcc workaround: {script}")
    except (OSError, LockTimeout) as e:
        raise ArtifactError(f"Could not write {script}: {e}") from e
    return directory


def find_clang_builtins_dir(paths: ToolchainPaths) -> Path:
    """
    Locate the directory holding clang_rt.builtins-*-android.a.

    Args:
        paths: Resolved toolchain paths

    Returns:
        Directory with the builtins archives (highest clang version)

    Raises:
        ToolchainFileMissingError: If the NDK has no clang runtime libraries
    """
    prebuilt = paths.clang.parent.parent
    candidates = []
    for libdir in ("lib", "lib64"):
        for version_dir in (prebuilt / libdir / "clang").glob("*"):
            linux_dir = version_dir / "lib" / "linux"
            if linux_dir.is_dir():
                key = tuple(int(p) for p in re.findall(r"\d+", version_dir.name))
                candidates.append((key, linux_dir))
    if not candidates:
        raise ToolchainFileMissingError(
            prebuilt / "lib" / "clang" / "<version>" / "lib" / "linux",
            "clang runtime library directory",
        )
    return max(candidates)[1]


class EnvironmentSynthesizer:
    """Build the per-target environment overlay."""

    def __init__(
        self,
        ndk: NdkInstallation,
        host: Optional[HostInfo] = None,
        linker_shim: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize synthesizer.

        Args:
            ndk: Selected NDK installation
            host: Host information (default: detected)
            linker_shim: Executable used as linker on Windows hosts
            environ: Parent environment whose flag variables are extended
                (default: os.environ; never modified)
        """
        self.ndk = ndk
        self.host = host or detect_host()
        self.linker_shim = linker_shim
        self.environ = os.environ if environ is None else environ

    def synthesize(self, paths: ToolchainPaths, target: Target, api_level: int, config) -> EnvironmentSet:
        """
        Synthesize the environment for one target.

        Args:
            paths: Toolchain paths resolved for (NDK, target, API level)
            target: Build target
            api_level: Requested API level; `paths.api_level` is the
                effective level after clamping and is what gets used
            config: BuildConfig (reads output_dir, target_dir, link_builtins)

        Returns:
            EnvironmentSet overlay
        """
        if api_level != paths.api_level:
            logger.debug(f"API level {api_level} clamped to {paths.api_level}")

        triple = target.triple
        api = paths.api_level
        env = EnvironmentSet(target)
        v = env.variables

        v[f"CC_{triple}"] = str(paths.cc)
        v[f"CXX_{triple}"] = str(paths.cxx)
        v[f"AR_{triple}"] = str(paths.ar)
        v[f"RANLIB_{triple}"] = str(paths.ranlib)

        api_define = f"-D__ANDROID_API__={api}"
        v[f"CFLAGS_{triple}"] = self._extend(f"CFLAGS_{triple}", api_define)
        v[f"CXXFLAGS_{triple}"] = self._extend(f"CXXFLAGS_{triple}", api_define)

        key = target.env_key()
        v[f"CARGO_TARGET_{key}_AR"] = str(paths.ar)
        v[f"CARGO_TARGET_{key}_LINKER"] = str(self._linker(paths))

        bindgen_key = f"BINDGEN_EXTRA_CLANG_ARGS_{triple.replace('-', '_')}"
        sysroot_arg = f"--sysroot={paths.sysroot}".replace("\\", "/")
        include = paths.sysroot / "usr" / "include" / target.sysroot_name
        include_arg = f"-I{include}".replace("\\", "/")
        bindgen = self._extend(bindgen_key, sysroot_arg)
        v[bindgen_key] = self._extend(bindgen_key, include_arg, bindgen)

        v["CARGO_NDK_ANDROID_TARGET"] = target.abi
        v["CARGO_NDK_ANDROID_PLATFORM"] = str(api)
        v["CARGO_NDK_SYSROOT_PATH"] = str(paths.sysroot)
        v["CARGO_NDK_SYSROOT_TARGET"] = target.sysroot_name
        v["CARGO_NDK_SYSROOT_LIBS_PATH"] = str(paths.sysroot_lib_dir)
        v["CARGO_NDK_CMAKE_TOOLCHAIN_PATH"] = str(paths.cmake_toolchain_file)
        output_dir = getattr(config, "output_dir", None)
        if output_dir is not None:
            v["CARGO_NDK_OUTPUT_PATH"] = str(output_dir)
        v["ANDROID_ABI"] = target.abi
        v["ANDROID_PLATFORM"] = str(api)

        rustflags = RustFlags(self.environ)
        target_dir = getattr(config, "target_dir", None)
        if target_dir is not None and self.ndk.version.major >= FIRST_LLVM_BINUTILS_MAJOR:
            rustflags.append(f"-L{libgcc_workaround_dir(target_dir)}")
        if getattr(config, "link_builtins", False):
            builtins_dir = find_clang_builtins_dir(paths)
            rustflags.append(f"-L{builtins_dir}")
            rustflags.append(f"-lstatic=clang_rt.builtins-{target.builtins_arch}-android")
        pair = rustflags.as_env_var()
        if pair is not None:
            v[pair[0]] = pair[1]

        v[LINK_CLANG_VAR] = str(paths.clang)
        v[LINK_TARGET_VAR] = paths.clang_target(target)

        return env

    def _linker(self, paths: ToolchainPaths) -> Path:
        if not self.host.is_windows:
            return paths.cc
        # The .cmd wrappers mangle quoted arguments, so link through the shim,
        # which calls clang.exe directly.
        if self.linker_shim is None:
            raise ToolchainError(
                "No linker shim available; cannot link through the NDK .cmd wrappers on Windows"
            )
        return self.linker_shim

    def _extend(self, key: str, value: str, existing: Optional[str] = None) -> str:
        if existing is None:
            existing = self.environ.get(key, "")
        existing = existing.strip()
        if not existing:
            return value
        if value in existing.split():
            return existing
        return f"{existing} {value}"


__all__ = [
    "EnvironmentSet",
    "EnvironmentSynthesizer",
    "RustFlags",
    "PRIVATE_PREFIX",
    "LINK_CLANG_VAR",
    "LINK_TARGET_VAR",
    "libgcc_workaround_dir",
    "ensure_libgcc_workaround",
    "find_clang_builtins_dir",
    "shell_name",
    "powershell_quote",
]
