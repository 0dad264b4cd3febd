"""
cargo-ndk CLI argument parser.

This module implements the command-line interface for cargo-ndk using argparse.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cargo_ndk.core.exceptions import CargoNdkError

# Get version from package
try:
    from importlib.metadata import version

    __version__ = version("cargo-ndk")
except Exception:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)

COMMANDS = ("build", "env", "runner", "test")

ENV_LOGGER = "cargo_ndk.build.orchestrator.env"


class CLI:
    """cargo-ndk command-line interface."""

    def __init__(self, prog: str = "cargo ndk"):
        """Initialize CLI with argument parser."""
        self.prog = prog
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog=self.prog,
            description="cargo-ndk - Build Rust code for Android with the NDK",
            epilog='Use "cargo ndk COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        parser.add_argument(
            "--version", action="version", version=f"cargo-ndk {__version__}"
        )

        # Options shared by every subcommand
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            "--verbose",
            "-v",
            action="count",
            default=0,
            help="Enable verbose output (-vv also prints the build environment)",
        )
        common.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_build_command(subparsers, common)
        self._add_env_command(subparsers, common)
        self._add_runner_command(subparsers, common)
        self._add_test_command(subparsers, common)

        return parser

    def _add_target_options(self, parser, multiple: bool):
        if multiple:
            parser.add_argument(
                "--target",
                "-t",
                action="append",
                metavar="TARGET",
                help="Target to build, as Android ABI or Rust triple (repeatable, "
                "comma-separated) [env: CARGO_NDK_TARGET]",
            )
        else:
            parser.add_argument(
                "--target",
                "-t",
                metavar="TARGET",
                help="Target, as Android ABI or Rust triple [env: CARGO_NDK_TARGET]",
            )
        parser.add_argument(
            "--platform",
            type=int,
            metavar="API",
            help="Android API level [env: CARGO_NDK_PLATFORM] [default: 21]",
        )
        parser.add_argument(
            "--link-builtins",
            action="store_true",
            help="Link the clang builtins library [env: CARGO_NDK_LINK_BUILTINS]",
        )
        parser.add_argument(
            "--ndk-path",
            type=Path,
            metavar="PATH",
            help="NDK root directory (skips discovery)",
        )

    def _add_project_options(self, parser):
        parser.add_argument(
            "--manifest-path",
            type=Path,
            metavar="PATH",
            help="Path to Cargo.toml",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: cargo-ndk.yaml next to Cargo.toml)",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=Path.cwd(),
            help="Directory to run cargo in (default: current directory)",
        )

    def _add_build_command(self, subparsers, common):
        """Add 'build' subcommand."""
        parser = subparsers.add_parser(
            "build",
            parents=[common],
            allow_abbrev=False,
            help="Run cargo once per Android target",
            description="Run cargo with the NDK environment for each Android target",
        )
        self._add_target_options(parser, multiple=True)
        self._add_project_options(parser)
        parser.add_argument(
            "--output-dir",
            "-o",
            type=Path,
            metavar="DIR",
            help="Copy libraries into DIR/<abi>/ (jniLibs layout) [env: CARGO_NDK_OUTPUT_DIR]",
        )
        parser.add_argument(
            "--fail-fast",
            action="store_true",
            help="Stop after the first failing target",
        )
        parser.add_argument(
            "--jobs",
            "-j",
            type=int,
            metavar="N",
            help="Number of targets to build concurrently [default: 1]",
        )
        parser.add_argument(
            "cargo_args",
            nargs=argparse.REMAINDER,
            metavar="CARGO_ARGS",
            help="Arguments passed to cargo (e.g. build --release)",
        )

    def _add_env_command(self, subparsers, common):
        """Add 'env' subcommand."""
        parser = subparsers.add_parser(
            "env",
            parents=[common],
            allow_abbrev=False,
            help="Print the build environment for a target",
            description="Print the environment cargo-ndk sets up for a target",
        )
        self._add_target_options(parser, multiple=False)
        output = parser.add_mutually_exclusive_group()
        output.add_argument(
            "--powershell", action="store_true", help="Use PowerShell syntax"
        )
        output.add_argument(
            "--json", action="store_true", help="Print output in JSON format"
        )

    def _add_runner_command(self, subparsers, common):
        """Add 'runner' subcommand."""
        parser = subparsers.add_parser(
            "runner",
            parents=[common],
            allow_abbrev=False,
            help="Run an executable on a connected device",
            description="Push an executable to a device, run it and remove it again",
        )
        parser.add_argument(
            "--adb-serial",
            metavar="SERIAL",
            help="Serial number of the device to use (see `adb devices`) "
            "[env: CARGO_NDK_ADB_SERIAL]",
        )
        parser.add_argument(
            "--push",
            action="append",
            type=Path,
            default=[],
            metavar="FILE",
            help="Additional file to push next to the executable (repeatable)",
        )
        parser.add_argument("executable", type=Path, help="Executable to run")
        parser.add_argument(
            "runner_args",
            nargs=argparse.REMAINDER,
            metavar="ARGS",
            help="Arguments for the executable",
        )

    def _add_test_command(self, subparsers, common):
        """Add 'test' subcommand."""
        parser = subparsers.add_parser(
            "test",
            parents=[common],
            allow_abbrev=False,
            help="Build unit tests and run them on a connected device",
            description="Build test executables for one target and run each on a device",
        )
        self._add_target_options(parser, multiple=False)
        self._add_project_options(parser)
        parser.add_argument(
            "--adb-serial",
            metavar="SERIAL",
            help="Serial number of the device to use (see `adb devices`) "
            "[env: CARGO_NDK_ADB_SERIAL]",
        )
        parser.add_argument(
            "cargo_args",
            nargs=argparse.REMAINDER,
            metavar="CARGO_ARGS",
            help="Arguments for `cargo test`; arguments after `--` go to the tests",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        parsed, extras = self.parser.parse_known_args(args)
        if extras:
            # Unknown options before the first positional belong to cargo
            # (e.g. `cargo ndk-test -t x86 --lib`).
            if getattr(parsed, "cargo_args", None) is None:
                self.parser.error(f"unrecognized arguments: {' '.join(extras)}")
            parsed.cargo_args = extras + parsed.cargo_args
        return parsed

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        self._configure_logging(parsed_args)

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except CargoNdkError as e:
            logger.error(str(e))
            return 1
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )
        logging.getLogger(ENV_LOGGER).setLevel(
            logging.DEBUG if args.verbose >= 2 else logging.INFO
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "build": "cargo_ndk.cli.commands.build",
            "env": "cargo_ndk.cli.commands.env",
            "runner": "cargo_ndk.cli.commands.runner",
            "test": "cargo_ndk.cli.commands.test",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        import importlib

        module = importlib.import_module(module_name)
        return module.run(args)


def _build_argv(argv: List[str]) -> List[str]:
    """Default to the build command when no subcommand is named."""
    if argv and (argv[0] in COMMANDS or argv[0] in ("-h", "--help", "--version")):
        return argv
    return ["build"] + argv


def main(argv: Optional[List[str]] = None):
    """Entry point for `cargo ndk` (and the linker shim)."""
    from cargo_ndk.toolchain.linker import is_linker_invocation, run_linker

    if argv is None:
        if is_linker_invocation():
            sys.exit(run_linker(sys.argv[1:]))
        argv = sys.argv[1:]

    from cargo_ndk.cli.utils import strip_cargo_subcommand

    argv = _build_argv(strip_cargo_subcommand(argv, "ndk"))
    sys.exit(CLI().run(argv))


def ndk_env_main(argv: Optional[List[str]] = None):
    """Entry point for `cargo ndk-env`."""
    from cargo_ndk.cli.utils import strip_cargo_subcommand

    argv = strip_cargo_subcommand(sys.argv[1:] if argv is None else argv, "ndk-env")
    sys.exit(CLI(prog="cargo ndk-env").run(["env"] + argv))


def ndk_runner_main(argv: Optional[List[str]] = None):
    """Entry point for `cargo ndk-runner`, usable as CARGO_TARGET_<TRIPLE>_RUNNER."""
    from cargo_ndk.cli.utils import strip_cargo_subcommand

    argv = strip_cargo_subcommand(sys.argv[1:] if argv is None else argv, "ndk-runner")
    sys.exit(CLI(prog="cargo ndk-runner").run(["runner"] + argv))


def ndk_test_main(argv: Optional[List[str]] = None):
    """Entry point for `cargo ndk-test`."""
    from cargo_ndk.cli.utils import strip_cargo_subcommand

    argv = strip_cargo_subcommand(sys.argv[1:] if argv is None else argv, "ndk-test")
    sys.exit(CLI(prog="cargo ndk-test").run(["test"] + argv))


if __name__ == "__main__":
    main()
