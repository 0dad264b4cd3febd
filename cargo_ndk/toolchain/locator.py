"""
cargo_ndk/toolchain/locator.py

NDK discovery - finds NDK installations that are already on the system.

Search order (the first source that yields a valid NDK wins):
- An explicit path (command line or config file), used as-is
- NDK home variables (ANDROID_NDK_HOME, ANDROID_NDK_ROOT, ...)
- SDK home variables (ANDROID_HOME, ...) and their `ndk/<version>` directories
- The default SDK location Android Studio uses on the host OS

A directory that contains several side-by-side NDK versions resolves to the
highest version.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from cargo_ndk.core.exceptions import DiscoveryError, NdkNotFoundError
from cargo_ndk.core.platform import HostInfo, detect_host

logger = logging.getLogger(__name__)

NDK_HOME_VARS: Tuple[str, ...] = (
    "ANDROID_NDK_HOME",
    "ANDROID_NDK_ROOT",
    "ANDROID_NDK_PATH",
    "NDK_HOME",
)

SDK_HOME_VARS: Tuple[str, ...] = (
    "ANDROID_HOME",
    "ANDROID_SDK_ROOT",
    "ANDROID_SDK_HOME",
)

# Every NDK release since r11 ships this file at its root.
NDK_MARKER = "source.properties"

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)(.*)$")


@dataclass(frozen=True, order=True)
class NdkVersion:
    """
    Parsed NDK version.

    Ordering compares major, then minor, then the remaining suffix as a
    plain string.

    Attributes:
        major: Major release (e.g., 25 for r25)
        minor: Minor release
        suffix: Remaining text, usually the build number
    """

    major: int
    minor: int
    suffix: str = ""

    @classmethod
    def parse(cls, text: str) -> Optional["NdkVersion"]:
        """
        Parse a version string such as '25.2.9519653' or '21.0'.

        Args:
            text: Version text

        Returns:
            NdkVersion, or None if the text is not a version

        Example:
            >>> NdkVersion.parse('25.2.9519653')
            NdkVersion(major=25, minor=2, suffix='9519653')
        """
        match = _VERSION_RE.match(text.strip())
        if not match:
            return None
        suffix = match.group(3).lstrip(".-+ ")
        return cls(int(match.group(1)), int(match.group(2)), suffix)

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}"
        return f"{base}.{self.suffix}" if self.suffix else base


@dataclass(frozen=True)
class NdkInstallation:
    """
    A discovered NDK root.

    Attributes:
        path: Root directory of the NDK
        version: Parsed NDK version
        host_tag: Name of the host's prebuilt toolchain directory
        source: How it was found ('explicit', an env var name, 'standard location')
    """

    path: Path
    version: NdkVersion
    host_tag: str
    source: str = "unknown"

    @property
    def prebuilt_dir(self) -> Path:
        return self.path / "toolchains" / "llvm" / "prebuilt" / self.host_tag

    @property
    def cmake_toolchain_file(self) -> Path:
        return self.path / "build" / "cmake" / "android.toolchain.cmake"

    def __str__(self) -> str:
        return f"NDK v{self.version} ({self.path}) [{self.source}]"


def read_ndk_version(ndk_path: Path) -> NdkVersion:
    """
    Read the version recorded in an NDK's source.properties.

    Args:
        ndk_path: NDK root directory

    Returns:
        Parsed version from the `Pkg.Revision` line

    Raises:
        DiscoveryError: If the file is unreadable or has no parsable revision
    """
    props = Path(ndk_path) / NDK_MARKER
    try:
        content = props.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise DiscoveryError(f"Could not read {props}: {e}") from e

    for line in content.splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() == "Pkg.Revision":
            version = NdkVersion.parse(value)
            if version is None:
                raise DiscoveryError(
                    f"Could not parse NDK version in {props}. Got: '{value.strip()}'"
                )
            return version

    raise DiscoveryError(f"Could not find Pkg.Revision in {props}")


def is_ndk_root(path: Path) -> bool:
    """Check whether `path` looks like an NDK root directory."""
    return (Path(path) / NDK_MARKER).is_file()


def highest_version_ndk_in(directory: Path) -> Optional[Path]:
    """
    Select the highest versioned NDK among the subdirectories of `directory`.

    Subdirectories whose names do not parse as versions, or which do not
    contain an NDK, are skipped.

    Args:
        directory: Directory holding side-by-side NDK versions (e.g. <sdk>/ndk)

    Returns:
        Path of the selected NDK, or None if none qualifies
    """
    directory = Path(directory)
    if not directory.is_dir():
        return None

    candidates = []
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        logger.debug(f"Cannot list {directory}: {e}")
        return None

    for entry in entries:
        version = NdkVersion.parse(entry.name)
        if version is None:
            logger.debug(f"Ignoring non-version directory: {entry}")
            continue
        if not is_ndk_root(entry):
            logger.debug(f"Ignoring {entry}: no {NDK_MARKER}")
            continue
        candidates.append((version, entry.name, entry))

    if not candidates:
        return None

    version, _, path = max(candidates)
    logger.debug(f"Highest NDK version in {directory}: {version}")
    return path


class NdkLocator:
    """
    Find and select an NDK installation.

    The variable lists and default directories are policy and can be
    replaced by the caller; the defaults follow what Android Studio and the
    Android Gradle plugin use.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        ndk_vars: Sequence[str] = NDK_HOME_VARS,
        sdk_vars: Sequence[str] = SDK_HOME_VARS,
        default_dirs: Optional[Sequence[Path]] = None,
        host: Optional[HostInfo] = None,
    ):
        """
        Initialize locator.

        Args:
            environ: Environment to read (default: os.environ)
            ndk_vars: NDK home variables, highest priority first
            sdk_vars: SDK home variables, highest priority first
            default_dirs: Directories holding versioned NDKs to try last
                (default: the host's standard SDK location)
            host: Host information (default: detected)
        """
        self.environ = os.environ if environ is None else environ
        self.ndk_vars = tuple(ndk_vars)
        self.sdk_vars = tuple(sdk_vars)
        self.host = host or detect_host()
        self.default_dirs = (
            list(default_dirs) if default_dirs is not None else self._standard_locations()
        )

    def locate(self, explicit_path: Optional[Path] = None) -> NdkInstallation:
        """
        Locate the NDK to use.

        Args:
            explicit_path: NDK root given by the user; used outright

        Returns:
            Selected NdkInstallation

        Raises:
            NdkNotFoundError: If no candidate validates
            DiscoveryError: If the selected NDK's version cannot be read
        """
        if explicit_path is not None:
            path = Path(explicit_path).expanduser()
            if not is_ndk_root(path):
                raise NdkNotFoundError(
                    [f"{path} (explicit)"],
                    reason=f"The NDK path {path} does not contain {NDK_MARKER}.",
                )
            return self._installation(path, "explicit")

        checked: List[str] = []

        found = self._from_ndk_vars(checked)
        if found is None:
            found = self._from_sdk_vars(checked)
        if found is None:
            found = self._from_standard_locations(checked)

        if found is None:
            raise NdkNotFoundError(checked)

        path, source = found
        return self._installation(path, source)

    def adb_candidates(self) -> List[Path]:
        """Return `platform-tools/adb` paths derived from the SDK variables."""
        candidate = first_consistent_var(self.environ, self.sdk_vars)
        if candidate is None:
            return []
        _, sdk_path = candidate
        return [Path(sdk_path) / "platform-tools" / f"adb{self.host.exe_suffix}"]

    def _from_ndk_vars(self, checked: List[str]) -> Optional[Tuple[Path, str]]:
        candidate = first_consistent_var(self.environ, self.ndk_vars)
        if candidate is None:
            checked.append(f"${{{' | '.join(self.ndk_vars)}}} (not set)")
            return None

        var_name, value = candidate
        root = Path(value).expanduser()
        checked.append(f"{root} (${var_name})")
        if is_ndk_root(root):
            return root, var_name

        highest = highest_version_ndk_in(root)
        if highest is not None:
            return highest, var_name
        return None

    def _from_sdk_vars(self, checked: List[str]) -> Optional[Tuple[Path, str]]:
        candidate = first_consistent_var(self.environ, self.sdk_vars)
        if candidate is None:
            checked.append(f"${{{' | '.join(self.sdk_vars)}}} (not set)")
            return None

        var_name, value = candidate
        sdk_root = Path(value).expanduser()

        ndk_dir = sdk_root / "ndk"
        checked.append(f"{ndk_dir} (${var_name})")
        highest = highest_version_ndk_in(ndk_dir)
        if highest is not None:
            return highest, var_name

        # Pre side-by-side SDK layout
        bundle = sdk_root / "ndk-bundle"
        checked.append(f"{bundle} (${var_name})")
        if is_ndk_root(bundle):
            return bundle, var_name
        return None

    def _from_standard_locations(self, checked: List[str]) -> Optional[Tuple[Path, str]]:
        for location in self.default_dirs:
            checked.append(f"{location} (standard location)")
            highest = highest_version_ndk_in(location)
            if highest is not None:
                return highest, "standard location"
        return None

    def _standard_locations(self) -> List[Path]:
        home = Path(self.environ.get("HOME") or Path.home())
        if self.host.os == "windows":
            local = self.environ.get("LOCALAPPDATA")
            base = Path(local) if local else home / "AppData" / "Local"
            return [base / "Android" / "Sdk" / "ndk"]
        elif self.host.os == "macos":
            return [home / "Library" / "Android" / "sdk" / "ndk"]
        else:
            return [home / "Android" / "Sdk" / "ndk"]

    def _installation(self, path: Path, source: str) -> NdkInstallation:
        version = read_ndk_version(path)
        installation = NdkInstallation(
            path=path,
            version=version,
            host_tag=self.host.prebuilt_tag(),
            source=source,
        )
        logger.debug(f"Detected {installation}")
        return installation


def first_consistent_var(
    environ: Mapping[str, str], names: Sequence[str]
) -> Optional[Tuple[str, str]]:
    """
    Return the first of `names` that is set in `environ`, with its value.

    Any later variable that is also set but disagrees with the first one
    produces a warning, since that usually means a stale shell profile.
    """
    first: Optional[Tuple[str, str]] = None
    for name in names:
        value = environ.get(name)
        if not value:
            continue
        if first is None:
            first = (name, value)
        elif value != first[1]:
            logger.warning(
                f"Environment variable `{first[0]} = {first[1]}` "
                f"doesn't match `{name} = {value}`"
            )
    return first


__all__ = [
    "NDK_HOME_VARS",
    "SDK_HOME_VARS",
    "NDK_MARKER",
    "NdkVersion",
    "NdkInstallation",
    "NdkLocator",
    "read_ndk_version",
    "is_ndk_root",
    "highest_version_ndk_in",
    "first_consistent_var",
]
