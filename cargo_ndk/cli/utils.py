"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands so NDK
discovery and argument handling behave the same everywhere.
"""

import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from cargo_ndk.core.platform import HostInfo, detect_host
from cargo_ndk.toolchain.environment import EnvironmentSynthesizer
from cargo_ndk.toolchain.linker import default_linker_shim
from cargo_ndk.toolchain.locator import NdkInstallation, NdkLocator

logger = logging.getLogger(__name__)


# ============================================================================
# NDK Setup
# ============================================================================


def locate_ndk(
    ndk_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    host: Optional[HostInfo] = None,
) -> NdkInstallation:
    """
    Locate the NDK for a command.

    Args:
        ndk_path: Explicit NDK root, if the user gave one
        environ: Environment (default: os.environ)
        host: Host information (default: detected)

    Returns:
        Selected NdkInstallation

    Raises:
        NdkNotFoundError: If no NDK could be found
    """
    environ = os.environ if environ is None else environ
    ndk = NdkLocator(environ=environ, host=host).locate(ndk_path)
    logger.debug(f"Detected {ndk}")
    return ndk


def make_synthesizer(
    ndk: NdkInstallation,
    environ: Optional[Mapping[str, str]] = None,
    host: Optional[HostInfo] = None,
) -> EnvironmentSynthesizer:
    """Create an EnvironmentSynthesizer, with the linker shim on Windows hosts."""
    host = host or detect_host()
    shim = default_linker_shim() if host.is_windows else None
    return EnvironmentSynthesizer(ndk, host=host, linker_shim=shim, environ=environ)


# ============================================================================
# Argument Handling
# ============================================================================


def strip_cargo_subcommand(argv: Sequence[str], name: str) -> List[str]:
    """
    Drop the subcommand name cargo passes as the first argument.

    `cargo ndk build` runs `cargo-ndk ndk build`; invoked directly the name
    is absent.

    Example:
        >>> strip_cargo_subcommand(['ndk', 'build'], 'ndk')
        ['build']
    """
    argv = list(argv)
    if argv and argv[0] == name:
        return argv[1:]
    return argv


def split_test_args(cargo_args: Sequence[str]) -> Tuple[List[str], List[str]]:
    """
    Split arguments at the last `--` into build tool and test harness args.

    Example:
        >>> split_test_args(['--lib', '--', '--nocapture'])
        (['--lib'], ['--nocapture'])
    """
    cargo_args = list(cargo_args)
    if "--" not in cargo_args:
        return cargo_args, []
    idx = len(cargo_args) - 1 - cargo_args[::-1].index("--")
    return cargo_args[:idx], cargo_args[idx + 1:]


def env_default(name: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Value of an environment variable, treating empty as unset."""
    environ = os.environ if environ is None else environ
    return environ.get(name) or None
