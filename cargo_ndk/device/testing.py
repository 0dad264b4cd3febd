"""
Running unit tests on a device.

`cargo test --no-run --message-format=json` builds the test harness
executables without running them. The JSON messages on stdout name each
executable; every one is then run on the device through DeviceRunner.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from cargo_ndk.core.exceptions import DeviceError
from cargo_ndk.device.runner import DeviceRunner

logger = logging.getLogger(__name__)

TEST_BUILD_ARGS = ("test", "--no-run", "--message-format=json")

DOCTEST_NOTE = (
    "No doctests can currently be run on Android devices. "
    "Please run them on your host machine."
)


@dataclass(frozen=True)
class CompiledTest:
    """
    A test harness executable produced by the build tool.

    Attributes:
        executable: Path of the executable on the host
        name: Source file of the test target, relative to its package
        rel_path: Executable path relative to its package
    """

    executable: Path
    name: str
    rel_path: str


def _relative(path: Path, base: Path) -> str:
    try:
        return str(path.relative_to(base))
    except ValueError:
        return str(path)


def parse_test_executables(lines: Iterable[str]) -> List[CompiledTest]:
    """
    Collect test executables from the build tool's JSON messages.

    Lines that are not JSON, and messages other than `compiler-artifact`
    with an `executable`, are ignored.

    Args:
        lines: Standard output of the test build, one message per line

    Returns:
        Test executables in the order they were reported
    """
    tests: List[CompiledTest] = []
    for line in lines:
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(message, dict) or message.get("reason") != "compiler-artifact":
            continue

        executable = message.get("executable")
        manifest_path = message.get("manifest_path")
        src_path = (message.get("target") or {}).get("src_path")
        if not executable or not manifest_path or not src_path:
            continue

        package_dir = Path(manifest_path).parent
        executable = Path(executable)
        tests.append(
            CompiledTest(
                executable=executable,
                name=_relative(Path(src_path), package_dir),
                rel_path=_relative(executable, package_dir),
            )
        )
    return tests


class DeviceTestRunner:
    """Run compiled test executables on a device one after another."""

    def __init__(self, runner: DeviceRunner):
        self.runner = runner

    def run_all(self, tests: Sequence[CompiledTest], test_args: Sequence[str] = ()) -> int:
        """
        Run every test executable.

        Args:
            tests: Executables to run
            test_args: Arguments for the test harness

        Returns:
            0 if every executable passed, 1 otherwise
        """
        failed = []
        for test in tests:
            logger.info(f"Running unittests {test.name} ({test.rel_path})")
            try:
                result = self.runner.run_remote(test.executable, test_args)
            except DeviceError as e:
                logger.error(f"{test.name}: {e}")
                failed.append(test)
                continue
            if not result.ok:
                failed.append(test)

        logger.info(DOCTEST_NOTE)
        if failed:
            logger.error(f"Failed test executables: {', '.join(t.name for t in failed)}")
            return 1
        return 0


__all__ = [
    "CompiledTest",
    "DeviceTestRunner",
    "parse_test_executables",
    "TEST_BUILD_ARGS",
    "DOCTEST_NOTE",
]
