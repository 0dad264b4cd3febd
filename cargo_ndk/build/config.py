"""
Build configuration.

A BuildConfig is resolved once per invocation from, in order of precedence:
command line options, CARGO_NDK_* environment variables, the project's
cargo-ndk.yaml, the `[package.metadata.ndk]` table of Cargo.toml, and
built-in defaults. It is immutable and passed explicitly to every component.
"""

import json
import logging
import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from cargo_ndk.core.exceptions import ConfigError
from cargo_ndk.cross.targets import Target, TargetCatalog

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM = 21
CONFIG_FILE_NAME = "cargo-ndk.yaml"

# Profiles whose output directory differs from their name.
_PROFILE_DIRS = {
    "dev": "debug",
    "test": "debug",
    "release": "release",
    "bench": "release",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class BuildConfig:
    """
    Immutable configuration for one cargo-ndk invocation.

    Attributes:
        targets: Targets to build, in declared order
        cargo_args: Arguments passed through to the build tool
        platform: Default Android API level
        output_dir: Directory receiving per-ABI artifact copies (optional)
        manifest_path: Manifest to build, when not the working directory's
        profile: Build profile name (None means the tool's default)
        link_builtins: Link clang's compiler-rt builtins into the output
        fail_fast: Stop after the first failing target
        jobs: Number of targets built concurrently
        ndk_path: Explicit NDK root (skips discovery)
        cargo: Build tool executable
        working_dir: Directory the build tool runs in
        target_dir: Build tool target directory
        platform_overrides: Per-ABI API level overrides
    """

    targets: Tuple[Target, ...]
    cargo_args: Tuple[str, ...] = ()
    platform: int = DEFAULT_PLATFORM
    output_dir: Optional[Path] = None
    manifest_path: Optional[Path] = None
    profile: Optional[str] = None
    link_builtins: bool = False
    fail_fast: bool = False
    jobs: int = 1
    ndk_path: Optional[Path] = None
    cargo: str = "cargo"
    working_dir: Path = field(default_factory=Path.cwd)
    target_dir: Optional[Path] = None
    platform_overrides: Mapping[str, int] = field(default_factory=dict)

    def api_level_for(self, target: Target) -> int:
        """API level requested for `target` (override or default platform)."""
        return int(self.platform_overrides.get(target.abi, self.platform))

    @property
    def is_release(self) -> bool:
        return self.profile_dir == "release"

    @property
    def profile_dir(self) -> str:
        """Name of the profile's directory under <target_dir>/<triple>/."""
        return profile_dir_for(self.profile, self.cargo_args)

    def output_root(self, target: Target) -> Path:
        """Directory the build tool writes `target`'s artifacts to."""
        target_dir = self.target_dir or (self.working_dir / "target")
        return target_dir / target.triple / self.profile_dir


def profile_dir_for(profile: Optional[str], cargo_args: Sequence[str] = ()) -> str:
    """
    Map a build profile to its output directory name.

    Args:
        profile: Explicit profile name, or None
        cargo_args: Pass-through arguments (checked for --release/-r)

    Returns:
        Directory name ('debug', 'release' or the custom profile's name)

    Example:
        >>> profile_dir_for('dev')
        'debug'
        >>> profile_dir_for(None, ['build', '--release'])
        'release'
    """
    if profile is None:
        profile = find_arg_value(cargo_args, "--profile")
    if profile:
        return _PROFILE_DIRS.get(profile, profile)
    if "--release" in cargo_args or "-r" in cargo_args:
        return "release"
    return "debug"


def find_arg_value(args: Sequence[str], *names: str) -> Optional[str]:
    """
    Return the value of an option in `--flag value` or `--flag=value` form.

    Only arguments before a `--` separator are considered; the last
    occurrence wins.
    """
    value = None
    args = list(args)
    for i, arg in enumerate(args):
        if arg == "--":
            break
        for name in names:
            if arg == name and i + 1 < len(args):
                value = args[i + 1]
            elif arg.startswith(name + "="):
                value = arg[len(name) + 1:]
    return value


# ============================================================================
# Project Files
# ============================================================================


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigError: If the file is required but missing, or is not valid YAML

    Example:
        >>> config = load_yaml_config(Path("cargo-ndk.yaml"))
        >>> config.get("platform", 21)
    """
    if not config_file.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigError(f"Expected a mapping at the top of {config_file}")
    return config


def load_manifest_metadata(manifest_path: Path) -> Dict[str, Any]:
    """
    Read the `[package.metadata.ndk]` table of a Cargo.toml.

    Args:
        manifest_path: Path to Cargo.toml

    Returns:
        The table as a dict (empty when absent, or when the manifest is a
        virtual workspace manifest or does not exist)

    Raises:
        ConfigError: If the manifest is not valid TOML
    """
    if not manifest_path.is_file():
        return {}
    try:
        with open(manifest_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {manifest_path}: {e}") from e

    ndk = data.get("package", {}).get("metadata", {}).get("ndk", {})
    return ndk if isinstance(ndk, dict) else {}


def _profile_targets(section: Mapping[str, Any], is_release: bool) -> Optional[List[str]]:
    """Target list from a config section, honoring release/debug overrides."""
    override = section.get("release" if is_release else "debug")
    if isinstance(override, dict) and override.get("targets"):
        return list(override["targets"])
    if section.get("targets"):
        return list(section["targets"])
    return None


# ============================================================================
# Cargo Metadata
# ============================================================================


def query_cargo_metadata(
    cargo: str,
    working_dir: Path,
    manifest_path: Optional[Path] = None,
    runner: Callable = subprocess.run,
) -> Optional[Dict[str, Any]]:
    """
    Run `cargo metadata --no-deps` and return the parsed JSON.

    Args:
        cargo: Build tool executable
        working_dir: Directory to run in
        manifest_path: Manifest to describe (default: the working directory's)
        runner: subprocess.run compatible callable

    Returns:
        Parsed metadata, or None if the command failed
    """
    cmd = [cargo, "metadata", "--format-version", "1", "--no-deps"]
    if manifest_path is not None:
        cmd.append(f"--manifest-path={manifest_path}")
    try:
        result = runner(cmd, cwd=working_dir, capture_output=True, text=True)
    except OSError as e:
        logger.debug(f"Could not run {cargo} metadata: {e}")
        return None
    if result.returncode != 0:
        logger.debug(f"{cargo} metadata failed: {result.stderr.strip()}")
        return None
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        logger.debug(f"Could not parse {cargo} metadata output: {e}")
        return None


def find_manifest(
    working_dir: Path,
    cargo_args: Sequence[str],
    manifest_path: Optional[Path] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> Path:
    """
    Determine which manifest is being built.

    Priority: an explicit manifest path, then the manifest of the package
    selected with `-p/--package`, then `<working_dir>/Cargo.toml`.

    Raises:
        ConfigError: If the selected package is unknown
    """
    if manifest_path is not None:
        return (working_dir / manifest_path).resolve()

    package = find_arg_value(cargo_args, "-p", "--package")
    if package:
        for entry in (metadata or {}).get("packages", []):
            if entry.get("name") == package:
                return Path(entry["manifest_path"])
        raise ConfigError(f"Unknown package: {package}")

    return working_dir / "Cargo.toml"


# ============================================================================
# Resolution
# ============================================================================


def _env_bool(value: Optional[str]) -> Optional[bool]:
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUE_VALUES


def _parse_int(value: Any, what: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid {what}: {value!r}") from None


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def resolve_build_config(
    options,
    environ: Optional[Mapping[str, str]] = None,
    metadata_runner: Optional[Callable] = None,
) -> BuildConfig:
    """
    Merge every configuration source into a BuildConfig.

    Args:
        options: Parsed command line namespace. Recognized attributes:
            target, platform, output_dir, manifest_path, link_builtins,
            fail_fast, jobs, ndk_path, config, cargo_args, project_root
        environ: Environment (default: os.environ)
        metadata_runner: subprocess.run compatible callable used for
            `cargo metadata` (default: subprocess.run)

    Returns:
        Frozen BuildConfig

    Raises:
        ConfigError: On unknown targets, invalid values or missing cargo args
    """
    environ = os.environ if environ is None else environ
    runner = metadata_runner or subprocess.run

    cargo_args = tuple(getattr(options, "cargo_args", None) or ())
    if not cargo_args:
        raise ConfigError(
            "No args found to pass to cargo! "
            "You still need to specify build arguments to cargo to achieve anything."
        )

    working_dir = Path(getattr(options, "project_root", None) or Path.cwd()).resolve()
    cargo = environ.get("CARGO") or "cargo"

    explicit_manifest = _first(
        getattr(options, "manifest_path", None),
        find_arg_value(cargo_args, "--manifest-path"),
    )
    package = find_arg_value(cargo_args, "-p", "--package")
    arg_target_dir = find_arg_value(cargo_args, "--target-dir")
    env_target_dir = environ.get("CARGO_TARGET_DIR")

    metadata = None
    if package or not (arg_target_dir or env_target_dir):
        metadata = query_cargo_metadata(
            cargo,
            working_dir,
            Path(explicit_manifest) if explicit_manifest else None,
            runner,
        )

    manifest = find_manifest(
        working_dir,
        cargo_args,
        Path(explicit_manifest) if explicit_manifest else None,
        metadata,
    )

    config_file = getattr(options, "config", None)
    if config_file is not None:
        project = load_yaml_config(Path(config_file), required=True)
    else:
        project = load_yaml_config(manifest.parent / CONFIG_FILE_NAME)
    manifest_ndk = load_manifest_metadata(manifest)

    profile = find_arg_value(cargo_args, "--profile")
    is_release = profile_dir_for(profile, cargo_args) == "release"

    # Targets
    cli_targets = getattr(options, "target", None) or []
    env_targets = environ.get("CARGO_NDK_TARGET")
    target_names = (
        list(cli_targets)
        or ([env_targets] if env_targets else [])
        or _profile_targets(project, is_release)
        or _profile_targets(manifest_ndk, is_release)
    )
    if target_names:
        targets = TargetCatalog.parse_list(target_names)
    else:
        targets = TargetCatalog.default_targets()
    if not targets:
        raise ConfigError("No targets to build")

    platform = _parse_int(
        _first(
            getattr(options, "platform", None),
            environ.get("CARGO_NDK_PLATFORM") or None,
            project.get("platform"),
            manifest_ndk.get("platform"),
            DEFAULT_PLATFORM,
        ),
        "platform",
    )

    overrides = {}
    for name, level in (project.get("platform_overrides") or {}).items():
        overrides[TargetCatalog.parse(str(name)).abi] = _parse_int(level, "platform override")

    output_dir = _first(
        getattr(options, "output_dir", None),
        environ.get("CARGO_NDK_OUTPUT_DIR") or None,
        project.get("output_dir"),
    )
    if output_dir is not None:
        output_dir = (working_dir / Path(output_dir).expanduser()).resolve()

    link_builtins = bool(
        _first(
            getattr(options, "link_builtins", None) or None,
            _env_bool(environ.get("CARGO_NDK_LINK_BUILTINS")),
            project.get("link_builtins"),
            False,
        )
    )
    fail_fast = bool(
        _first(getattr(options, "fail_fast", None) or None, project.get("fail_fast"), False)
    )
    jobs = _parse_int(_first(getattr(options, "jobs", None), project.get("jobs"), 1), "jobs")
    if jobs < 1:
        raise ConfigError(f"Invalid jobs: {jobs}")

    ndk_path = _first(getattr(options, "ndk_path", None), project.get("ndk_path"))

    if arg_target_dir:
        target_dir = working_dir / arg_target_dir
    elif env_target_dir:
        target_dir = working_dir / env_target_dir
    elif metadata and metadata.get("target_directory"):
        target_dir = Path(metadata["target_directory"])
    else:
        target_dir = manifest.parent / "target"

    config = BuildConfig(
        targets=tuple(targets),
        cargo_args=cargo_args,
        platform=platform,
        output_dir=output_dir,
        manifest_path=manifest if manifest != working_dir / "Cargo.toml" else None,
        profile=profile,
        link_builtins=link_builtins,
        fail_fast=fail_fast,
        jobs=jobs,
        ndk_path=Path(ndk_path).expanduser() if ndk_path else None,
        cargo=cargo,
        working_dir=working_dir,
        target_dir=target_dir,
        platform_overrides=overrides,
    )
    logger.debug(f"Resolved build config: {config}")
    return config


__all__ = [
    "BuildConfig",
    "DEFAULT_PLATFORM",
    "CONFIG_FILE_NAME",
    "profile_dir_for",
    "find_arg_value",
    "load_yaml_config",
    "load_manifest_metadata",
    "query_cargo_metadata",
    "find_manifest",
    "resolve_build_config",
]
