"""
Build command.

Runs the build tool once per requested Android target with the NDK
environment for that target, and optionally copies the resulting libraries
into a jniLibs-style output directory.
"""

import logging
import os

from cargo_ndk.build.artifacts import ArtifactCollector
from cargo_ndk.build.config import resolve_build_config
from cargo_ndk.build.orchestrator import BuildOrchestrator
from cargo_ndk.cli.utils import locate_ndk, make_synthesizer
from cargo_ndk.core.platform import detect_host
from cargo_ndk.toolchain.resolver import ToolchainResolver

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the build command.

    Args:
        args: Parsed arguments

    Returns:
        Exit code of the first failing target, 0 if every target succeeded
    """
    environ = os.environ
    config = resolve_build_config(args, environ)
    host = detect_host()
    ndk = locate_ndk(config.ndk_path, environ, host)

    collector = None
    if config.output_dir is not None:
        logger.info(f"Copying libraries to {config.output_dir}")
        collector = ArtifactCollector(config.output_dir)

    orchestrator = BuildOrchestrator(
        config,
        ndk,
        ToolchainResolver(host),
        make_synthesizer(ndk, environ, host),
        collector,
    )
    return orchestrator.run().exit_code
