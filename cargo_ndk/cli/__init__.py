"""
cargo-ndk CLI module.

This module provides the command-line interface for cargo-ndk.
"""

from .parser import CLI, main, ndk_env_main, ndk_runner_main, ndk_test_main
from . import utils

__all__ = ["CLI", "main", "ndk_env_main", "ndk_runner_main", "ndk_test_main", "utils"]
