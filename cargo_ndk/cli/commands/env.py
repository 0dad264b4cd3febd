"""
Env command.

Prints the environment cargo-ndk would set up for a target, so other build
systems can reuse it (`source <(cargo ndk-env -t arm64-v8a)`).
"""

import logging
import os

from cargo_ndk.build.config import DEFAULT_PLATFORM, BuildConfig
from cargo_ndk.cli.utils import env_default, locate_ndk, make_synthesizer
from cargo_ndk.core.platform import detect_host
from cargo_ndk.cross.targets import TargetCatalog
from cargo_ndk.toolchain.resolver import ToolchainResolver

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the env command.

    Args:
        args: Parsed arguments

    Returns:
        Exit code (0 for success)
    """
    environ = os.environ
    name = args.target or env_default("CARGO_NDK_TARGET", environ)
    if not name:
        logger.error("A target is required (--target or CARGO_NDK_TARGET)")
        return 2

    target = TargetCatalog.parse(name)
    platform = args.platform or int(env_default("CARGO_NDK_PLATFORM", environ) or DEFAULT_PLATFORM)
    link_builtins = args.link_builtins or (
        (env_default("CARGO_NDK_LINK_BUILTINS", environ) or "").lower() in ("1", "true")
    )
    config = BuildConfig(targets=(target,), platform=platform, link_builtins=link_builtins)

    host = detect_host()
    ndk = locate_ndk(args.ndk_path, environ, host)
    paths = ToolchainResolver(host).resolve(ndk, target, platform)
    env = make_synthesizer(ndk, environ, host).synthesize(paths, target, platform, config)

    if args.json:
        print(env.to_json())
    elif args.powershell:
        print(env.to_powershell())
    else:
        print(env.to_shell())
    return 0
