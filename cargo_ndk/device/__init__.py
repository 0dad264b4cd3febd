"""
Running build products on a connected Android device.
"""

from cargo_ndk.device.transport import AdbTransport, ShellResult, find_adb
from cargo_ndk.device.runner import DeviceRunner, DeviceSession, RemoteResult
from cargo_ndk.device.testing import (
    CompiledTest,
    DeviceTestRunner,
    parse_test_executables,
)

__all__ = [
    "AdbTransport",
    "ShellResult",
    "find_adb",
    "DeviceRunner",
    "DeviceSession",
    "RemoteResult",
    "CompiledTest",
    "DeviceTestRunner",
    "parse_test_executables",
]
