"""
Cross-build orchestration for cargo-ndk.

Provides the immutable build configuration, the per-target build loop and
artifact harvesting into an ABI-partitioned output directory.
"""

from cargo_ndk.build.config import (
    BuildConfig,
    resolve_build_config,
    profile_dir_for,
    load_yaml_config,
    load_manifest_metadata,
)
from cargo_ndk.build.artifacts import ArtifactCollector, CopiedArtifact
from cargo_ndk.build.orchestrator import (
    BuildOrchestrator,
    BuildResult,
    OverallResult,
    merge_args,
)

__all__ = [
    "BuildConfig",
    "resolve_build_config",
    "profile_dir_for",
    "load_yaml_config",
    "load_manifest_metadata",
    "ArtifactCollector",
    "CopiedArtifact",
    "BuildOrchestrator",
    "BuildResult",
    "OverallResult",
    "merge_args",
]
