"""
Runner command.

Runs one executable on a connected device. Set it as the build tool's
runner for an Android target so `cargo run` and `cargo test` execute on
the device:

    CARGO_TARGET_AARCH64_LINUX_ANDROID_RUNNER=cargo-ndk-runner
"""

import logging
import os

from cargo_ndk.cli.utils import env_default
from cargo_ndk.device.runner import DeviceRunner
from cargo_ndk.device.transport import AdbTransport, find_adb

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the runner command.

    Args:
        args: Parsed arguments

    Returns:
        Exit code of the program on the device
    """
    environ = os.environ
    serial = args.adb_serial or env_default("CARGO_NDK_ADB_SERIAL", environ)
    transport = AdbTransport(find_adb(environ), serial)

    result = DeviceRunner(transport).run_remote(
        args.executable, args.runner_args, dependencies=args.push
    )
    return result.exit_code
