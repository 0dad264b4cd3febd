"""
Artifact harvesting.

After a successful build for a target, the libraries and executables the
build tool produced are copied into `<output_dir>/<abi>/`, the layout
Android's jniLibs directory expects.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from cargo_ndk.core.exceptions import ArtifactError
from cargo_ndk.cross.targets import Target

logger = logging.getLogger(__name__)

LIBRARY_SUFFIXES = (".so", ".a")


@dataclass(frozen=True)
class CopiedArtifact:
    """
    One harvested artifact.

    Attributes:
        source: File in the build tool's output directory
        destination: Copy under the output directory
        fresh: True if the destination was already up to date and skipped
    """

    source: Path
    destination: Path
    fresh: bool = False

    @property
    def is_shared_library(self) -> bool:
        return self.source.suffix == ".so"


def is_artifact(path: Path) -> bool:
    """
    Check whether `path` is a build product worth copying.

    Shared and static libraries qualify, as do executable regular files
    without an extension.
    """
    if not path.is_file():
        return False
    if path.suffix in LIBRARY_SUFFIXES:
        return True
    return path.suffix == "" and os.access(path, os.X_OK)


def is_fresh(source: Path, destination: Path) -> bool:
    """True if `destination` exists and is at least as new as `source`."""
    try:
        return destination.stat().st_mtime >= source.stat().st_mtime
    except FileNotFoundError:
        return False


class ArtifactCollector:
    """Copy a target's build products into an ABI-partitioned directory."""

    def __init__(self, output_dir: Path):
        """
        Initialize collector.

        Args:
            output_dir: Root of the per-ABI output layout
        """
        self.output_dir = Path(output_dir)

    def scan(self, source_dir: Path, started_at: Optional[float] = None) -> List[Path]:
        """
        List candidate artifacts directly inside `source_dir`.

        Args:
            source_dir: Build tool output directory for one target and profile
            started_at: Only files modified at or after this timestamp count

        Returns:
            Sorted list of candidate files
        """
        if not source_dir.is_dir():
            return []
        try:
            entries = sorted(source_dir.iterdir())
            candidates = [p for p in entries if is_artifact(p)]
            if started_at is None:
                return candidates
            newer = [p for p in candidates if p.stat().st_mtime >= started_at]
        except OSError as e:
            raise ArtifactError(f"Could not list {source_dir}: {e}") from e

        if not newer and candidates:
            # Nothing was rebuilt; the existing outputs are current.
            logger.debug(f"No artifacts newer than build start in {source_dir}")
            return candidates
        return newer

    def collect(
        self, target: Target, source_dir: Path, started_at: Optional[float] = None
    ) -> List[CopiedArtifact]:
        """
        Copy the artifacts of one target build.

        Args:
            target: Target that was built
            source_dir: `<target_dir>/<triple>/<profile-dir>`
            started_at: Build start time (seconds since the epoch)

        Returns:
            One CopiedArtifact per candidate, in name order

        Raises:
            ArtifactError: If copying fails, or no shared library was produced
        """
        candidates = self.scan(source_dir, started_at)
        if not any(p.suffix == ".so" for p in candidates):
            raise ArtifactError(
                f"No shared library was produced for {target.abi} in {source_dir}. "
                'Is crate-type = ["cdylib"] set in the [lib] section of Cargo.toml?'
            )

        destination_dir = self.output_dir / target.abi
        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactError(f"Could not create {destination_dir}: {e}") from e

        copied = []
        for source in candidates:
            destination = destination_dir / source.name
            if is_fresh(source, destination):
                logger.info(f"Fresh {destination}")
                copied.append(CopiedArtifact(source, destination, fresh=True))
                continue

            logger.info(f"Copying {source} -> {destination}")
            try:
                shutil.copy2(source, destination)
            except OSError as e:
                raise ArtifactError(f"Could not copy {source} to {destination}: {e}") from e
            copied.append(CopiedArtifact(source, destination))

        return copied


__all__ = [
    "ArtifactCollector",
    "CopiedArtifact",
    "is_artifact",
    "is_fresh",
    "LIBRARY_SUFFIXES",
]
