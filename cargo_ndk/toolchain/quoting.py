"""
Host-specific argument re-escaping.

Arguments handed to the linker shim on Windows are joined into a single
command line, which the C runtime of the callee splits again. They are
quoted with the MSVC rules so that spaces, quotes and trailing backslashes
survive the round trip. POSIX hosts pass argv through untouched.
"""

import subprocess
from typing import Callable, List, Optional

from cargo_ndk.core.platform import HostInfo, detect_host

ArgEscaper = Callable[[List[str]], List[str]]


def msvc_escape(args: List[str]) -> List[str]:
    """
    Quote each argument with the MSVC C-runtime rules.

    Example:
        >>> msvc_escape(['a b', 'c'])
        ['"a b"', 'c']
    """
    return [subprocess.list2cmdline([arg]) for arg in args]


def identity(args: List[str]) -> List[str]:
    return list(args)


def get_arg_escaper(host: Optional[HostInfo] = None) -> ArgEscaper:
    """
    Return the argument escaper for `host`.

    Args:
        host: Host information (default: detected)

    Returns:
        Callable mapping an argv list to escaped tokens
    """
    host = host or detect_host()
    if host.is_windows:
        return msvc_escape
    return identity


__all__ = ["ArgEscaper", "get_arg_escaper", "msvc_escape", "identity"]
