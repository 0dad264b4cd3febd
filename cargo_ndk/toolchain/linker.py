"""
Linker shim.

On Windows the NDK's API-level compiler wrappers are `.cmd` batch files,
and cmd.exe mangles the quoted arguments rustc passes to the linker. The
build environment therefore names cargo-ndk itself as the linker and sets
two private variables; when they are present, cargo-ndk acts as a thin
front end to `clang --target=<triple><api>`.
"""

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from cargo_ndk.core.platform import HostInfo, detect_host
from cargo_ndk.toolchain.environment import LINK_CLANG_VAR, LINK_TARGET_VAR
from cargo_ndk.toolchain.quoting import get_arg_escaper

logger = logging.getLogger(__name__)


def is_linker_invocation(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Check whether the process was started as the linker shim."""
    environ = os.environ if environ is None else environ
    return bool(environ.get(LINK_TARGET_VAR)) and bool(environ.get(LINK_CLANG_VAR))


def linker_command(
    args: List[str],
    environ: Mapping[str, str],
    host: Optional[HostInfo] = None,
):
    """
    Build the clang command for a linker invocation.

    Args:
        args: Arguments rustc passed to the linker
        environ: Environment holding the private link variables
        host: Host information (default: detected)

    Returns:
        An argv list on POSIX hosts, a single pre-quoted command line on Windows
    """
    host = host or detect_host()
    argv = [environ[LINK_CLANG_VAR], environ[LINK_TARGET_VAR], *args]
    if host.is_windows:
        return " ".join(get_arg_escaper(host)(argv))
    return argv


def run_linker(
    args: List[str],
    environ: Optional[Mapping[str, str]] = None,
    host: Optional[HostInfo] = None,
    runner: Callable = subprocess.run,
) -> int:
    """
    Run clang in place of the API-level wrapper and return its exit code.

    Args:
        args: Arguments rustc passed to the linker
        environ: Environment (default: os.environ)
        host: Host information (default: detected)
        runner: subprocess.run compatible callable

    Returns:
        Clang's exit code (1 if clang could not be started)
    """
    environ = os.environ if environ is None else environ
    command = linker_command(args, environ, host)
    logger.debug(f"Linking with: {command}")
    try:
        completed = runner(command)
    except OSError as e:
        logger.error(f"Could not run clang: {e}")
        return 1
    return completed.returncode


def default_linker_shim() -> Path:
    """Path of the cargo-ndk executable used as linker on Windows."""
    found = shutil.which("cargo-ndk")
    if found:
        return Path(found)
    return Path(sys.argv[0]).resolve()


__all__ = [
    "is_linker_invocation",
    "linker_command",
    "run_linker",
    "default_linker_shim",
]
