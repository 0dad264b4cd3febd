"""
Test command.

Builds the unit test executables of a crate for one Android target and runs
each of them on a connected device.
"""

import logging
import os

from cargo_ndk.build.orchestrator import BuildOrchestrator
from cargo_ndk.build.config import resolve_build_config
from cargo_ndk.cli.utils import (
    env_default,
    locate_ndk,
    make_synthesizer,
    split_test_args,
)
from cargo_ndk.core.exceptions import ConfigError
from cargo_ndk.core.platform import detect_host
from cargo_ndk.device.runner import DeviceRunner
from cargo_ndk.device.testing import (
    TEST_BUILD_ARGS,
    DeviceTestRunner,
    parse_test_executables,
)
from cargo_ndk.device.transport import AdbTransport, find_adb
from cargo_ndk.toolchain.resolver import ToolchainResolver

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the test command.

    Args:
        args: Parsed arguments

    Returns:
        0 if every test executable passed, non-zero otherwise
    """
    environ = os.environ
    cargo_args, test_args = split_test_args(args.cargo_args or [])
    args.cargo_args = list(TEST_BUILD_ARGS) + cargo_args
    args.target = [args.target] if args.target else None

    config = resolve_build_config(args, environ)
    if len(config.targets) != 1:
        raise ConfigError(
            "Tests run on one device at a time; select a single target with --target"
        )
    target = config.targets[0]

    adb = find_adb(environ)
    logger.debug(f"Found adb at {adb}")

    host = detect_host()
    ndk = locate_ndk(config.ndk_path, environ, host)
    orchestrator = BuildOrchestrator(
        config,
        ndk,
        ToolchainResolver(host),
        make_synthesizer(ndk, environ, host),
        capture_stdout=True,
    )

    logger.info(f"Building test binary for {target.abi} ({target.triple})")
    result = orchestrator.build_target(target)
    if not result.ok:
        logger.error("Failed to build test binary")
        return result.exit_code or 1

    tests = parse_test_executables(result.stdout.splitlines())
    if not tests:
        logger.error("No test binary found in the build output")
        return 1

    serial = args.adb_serial or env_default("CARGO_NDK_ADB_SERIAL", environ)
    runner = DeviceRunner(AdbTransport(adb, serial))
    return DeviceTestRunner(runner).run_all(tests, test_args)
