"""
Per-target build orchestration.

For each requested target the orchestrator resolves the NDK toolchain,
synthesizes the build environment, runs the build tool as a child process
with that environment, and harvests the produced artifacts. A failing
target does not stop the others unless fail-fast is configured; the overall
exit code is that of the first failing target in declared order.
"""

import logging
import subprocess
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from cargo_ndk.build.artifacts import ArtifactCollector, CopiedArtifact
from cargo_ndk.build.config import BuildConfig
from cargo_ndk.core.exceptions import (
    ArtifactError,
    BuildError,
    BuildFailure,
    ToolchainError,
)
from cargo_ndk.cross.targets import Target
from cargo_ndk.toolchain.environment import (
    EnvironmentSet,
    EnvironmentSynthesizer,
    ensure_libgcc_workaround,
)
from cargo_ndk.toolchain.locator import NdkInstallation
from cargo_ndk.toolchain.resolver import FIRST_LLVM_BINUTILS_MAJOR, ToolchainResolver

logger = logging.getLogger(__name__)

# Full environment dumps go to a child logger so -v and -vv can differ.
env_logger = logging.getLogger(__name__ + ".env")


@dataclass
class BuildResult:
    """
    Outcome of building one target.

    Attributes:
        target: Target that was built
        exit_code: Build tool exit code (non-zero on any failure)
        api_level: Effective API level (0 if resolution failed)
        copied: Artifacts copied to the output directory
        duration: Wall-clock seconds spent on this target
        error: Message for failures that did not come from the build tool
        skipped: True if the target never ran because of fail-fast
        stdout: Captured standard output (capture mode only)
    """

    target: Target
    exit_code: int
    api_level: int = 0
    copied: List[CopiedArtifact] = field(default_factory=list)
    duration: float = 0.0
    error: Optional[str] = None
    skipped: bool = False
    stdout: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None and not self.skipped

    @property
    def failure(self) -> Optional[BuildFailure]:
        """BuildFailure for a non-zero build tool exit, None otherwise."""
        if self.skipped or self.exit_code == 0 or self.error is not None:
            return None
        return BuildFailure(self.target.abi, self.exit_code)

    def status(self) -> str:
        if self.skipped:
            return "skipped"
        if self.ok:
            return f"ok ({format_duration(self.duration)})"
        if self.error:
            return f"failed: {self.error}"
        return f"failed (exit code {self.exit_code})"


@dataclass
class OverallResult:
    """Results of every requested target, in declared order."""

    results: List[BuildResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def exit_code(self) -> int:
        """Exit code of the first failing target, 0 when every target passed."""
        for result in self.results:
            if result.skipped:
                continue
            if not result.ok:
                return result.exit_code or 1
        return 0

    @property
    def failed_targets(self) -> List[Target]:
        return [r.target for r in self.results if not r.ok and not r.skipped]

    def summary(self) -> List[str]:
        return [f"{r.target.abi}: {r.status()}" for r in self.results]


def format_duration(seconds: float) -> str:
    """
    Format a duration the way cargo reports it.

    Example:
        >>> format_duration(1.02)
        '1.02s'
        >>> format_duration(75)
        '1m 15s'
    """
    if seconds >= 60:
        secs = int(seconds)
        return f"{secs // 60}m {secs % 60:02d}s"
    return f"{seconds:.2f}s"


def _option_name(arg: str) -> str:
    return arg.split("=", 1)[0]


def merge_args(user_args: Sequence[str], injected: Sequence[str]) -> List[str]:
    """
    Merge pass-through arguments with injected `--flag=value` options.

    Injected options are placed after the user's options but before a `--`
    separator. Any occurrence of an injected option in the user arguments,
    in either `--flag value` or `--flag=value` form, is dropped so each
    option appears exactly once.

    Args:
        user_args: Arguments given by the user
        injected: Options to add, each in `--flag=value` form

    Returns:
        Merged argument list

    Example:
        >>> merge_args(['build', '--target', 'x', '--', 'a'], ['--target=y'])
        ['build', '--target=y', '--', 'a']
    """
    user_args = list(user_args)
    if "--" in user_args:
        sep = user_args.index("--")
        head, tail = user_args[:sep], user_args[sep:]
    else:
        head, tail = user_args, []

    names = {_option_name(arg) for arg in injected}
    merged: List[str] = []
    skip_next = False
    for arg in head:
        if skip_next:
            skip_next = False
            continue
        if arg in names:
            skip_next = True
            continue
        if arg.startswith("--") and "=" in arg and _option_name(arg) in names:
            continue
        merged.append(arg)

    return merged + list(injected) + tail


class BuildOrchestrator:
    """Drive the build tool once per target."""

    def __init__(
        self,
        config: BuildConfig,
        ndk: NdkInstallation,
        resolver: ToolchainResolver,
        synthesizer: EnvironmentSynthesizer,
        collector: Optional[ArtifactCollector] = None,
        runner: Callable = subprocess.Popen,
        environ: Optional[Mapping[str, str]] = None,
        capture_stdout: bool = False,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Build configuration
            ndk: Selected NDK installation
            resolver: Toolchain resolver
            synthesizer: Environment synthesizer
            collector: Artifact collector (None: no copying)
            runner: subprocess.Popen compatible callable
            environ: Parent environment (default: the synthesizer's)
            capture_stdout: Capture the build tool's stdout instead of
                inheriting it
        """
        self.config = config
        self.ndk = ndk
        self.resolver = resolver
        self.synthesizer = synthesizer
        self.collector = collector
        self.runner = runner
        self.environ = synthesizer.environ if environ is None else environ
        self.capture_stdout = capture_stdout
        self._live = set()
        self._live_lock = threading.Lock()

    def injected_args(self, target: Target) -> List[str]:
        """Options cargo-ndk adds to the build tool command line for `target`."""
        args = [f"--target={target.triple}"]
        if self.config.manifest_path is not None:
            args.append(f"--manifest-path={self.config.manifest_path}")
        if self.config.profile:
            args.append(f"--profile={self.config.profile}")
        return args

    def command_for(self, target: Target) -> List[str]:
        return [self.config.cargo] + merge_args(
            self.config.cargo_args, self.injected_args(target)
        )

    def environment_for(self, target: Target):
        """
        Resolve toolchain paths and synthesize the environment for `target`.

        Returns:
            Tuple of (ToolchainPaths, EnvironmentSet)

        Raises:
            ToolchainError: If the toolchain for the target is incomplete
        """
        api = self.config.api_level_for(target)
        paths = self.resolver.resolve(self.ndk, target, api)
        env = self.synthesizer.synthesize(paths, target, api, self.config)
        return paths, env

    def run(self, targets: Optional[Sequence[Target]] = None) -> OverallResult:
        """
        Build every target.

        Args:
            targets: Targets to build (default: config.targets)

        Returns:
            OverallResult with one entry per target, in declared order

        Raises:
            BuildError: If the build tool cannot be spawned
            KeyboardInterrupt: After terminating running children
        """
        targets = list(targets if targets is not None else self.config.targets)
        names = ", ".join(t.abi for t in targets)
        logger.info(f"Building targets ({names})")

        start = time.monotonic()
        if self.config.jobs > 1 and len(targets) > 1:
            results = self._run_parallel(targets)
        else:
            results = self._run_sequential(targets)

        overall = OverallResult(results, time.monotonic() - start)
        self._log_summary(overall)
        return overall

    def build_target(self, target: Target) -> BuildResult:
        """
        Build a single target.

        Toolchain and artifact problems are recorded in the result; only a
        failure to start the build tool raises.
        """
        logger.info(f"Building {target.abi} ({target.triple})")
        t0 = time.monotonic()
        started_at = time.time()

        try:
            paths, env = self.environment_for(target)
        except ToolchainError as e:
            logger.error(f"{target.abi}: {e}")
            return BuildResult(target, 1, error=str(e), duration=time.monotonic() - t0)

        self._log_environment(env)

        if (
            self.config.target_dir is not None
            and self.ndk.version.major >= FIRST_LLVM_BINUTILS_MAJOR
        ):
            try:
                ensure_libgcc_workaround(self.config.target_dir)
            except ArtifactError as e:
                logger.error(f"{target.abi}: {e}")
                return BuildResult(
                    target,
                    1,
                    api_level=paths.api_level,
                    error=str(e),
                    duration=time.monotonic() - t0,
                )

        command = self.command_for(target)
        logger.debug(f"Running: {' '.join(command)}")
        exit_code, stdout = self._spawn(command, env.apply_to(self.environ))

        result = BuildResult(target, exit_code, api_level=paths.api_level, stdout=stdout)
        if exit_code != 0:
            logger.error(str(result.failure))
            logger.info("If the build failed due to a missing target, you can run this command:")
            logger.info(f"    rustup target add {target.triple}")
        elif self.collector is not None:
            try:
                result.copied = self.collector.collect(
                    target, self.config.output_root(target), started_at
                )
            except ArtifactError as e:
                logger.error(f"{target.abi}: {e}")
                result.error = str(e)

        result.duration = time.monotonic() - t0
        return result

    def _run_sequential(self, targets: List[Target]) -> List[BuildResult]:
        results: List[BuildResult] = []
        for i, target in enumerate(targets):
            result = self.build_target(target)
            results.append(result)
            if not result.ok and self.config.fail_fast:
                results.extend(BuildResult(t, 0, skipped=True) for t in targets[i + 1:])
                break
        return results

    def _run_parallel(self, targets: List[Target]) -> List[BuildResult]:
        done: Dict[Target, BuildResult] = {}
        stop = threading.Event()

        def worker(target: Target) -> BuildResult:
            if stop.is_set():
                return BuildResult(target, 0, skipped=True)
            result = self.build_target(target)
            if not result.ok and self.config.fail_fast:
                stop.set()
            return result

        with ThreadPoolExecutor(max_workers=self.config.jobs) as pool:
            futures = [(t, pool.submit(worker, t)) for t in targets]
            try:
                for target, future in futures:
                    done[target] = future.result()
            except KeyboardInterrupt:
                stop.set()
                self._terminate_all()
                raise

        return [done[t] for t in targets]

    def _spawn(self, command: List[str], env: Dict[str, str]):
        stdout = subprocess.PIPE if self.capture_stdout else None
        try:
            process = self.runner(
                command, cwd=self.config.working_dir, env=env, stdout=stdout, text=True
            )
        except OSError as e:
            raise BuildError(f"Could not run {command[0]}: {e}") from e

        with self._live_lock:
            self._live.add(process)
        try:
            out, _ = process.communicate()
        except KeyboardInterrupt:
            process.terminate()
            process.wait()
            raise
        finally:
            with self._live_lock:
                self._live.discard(process)
        return process.returncode, out or ""

    def _terminate_all(self):
        with self._live_lock:
            live = list(self._live)
        for process in live:
            process.terminate()
        for process in live:
            process.wait()

    def _log_environment(self, env: EnvironmentSet):
        if not env_logger.isEnabledFor(logging.DEBUG):
            return
        for key, value in env.public().items():
            env_logger.debug(f"Exporting {key}={value!r}")

    def _log_summary(self, overall: OverallResult):
        for line in overall.summary():
            logger.info(f"  {line}")
        names = ", ".join(r.target.abi for r in overall.results)
        if overall.ok:
            logger.info(f"Finished targets ({names}) in {format_duration(overall.duration)}")
        else:
            failed = ", ".join(t.abi for t in overall.failed_targets)
            logger.error(f"Failed targets: {failed}")


__all__ = [
    "BuildResult",
    "OverallResult",
    "BuildOrchestrator",
    "merge_args",
    "format_duration",
]
