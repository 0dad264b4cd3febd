"""
Cross-process locking for files cargo-ndk writes into the build tree.

Targets may be built concurrently (threads within one run, or several
cargo-ndk processes sharing a target directory). Files that are shared between
those builds are written while holding a `filelock` lock next to them.

Usage:
    from cargo_ndk.core.locking import path_lock

    with path_lock(workaround_dir / "libgcc.a"):
        write_linker_script()
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)


@contextmanager
def path_lock(path: Path, timeout: int = 60):
    """
    Hold an exclusive lock for writing `path`.

    The lock file is `<path>.lock` in the same directory; the directory is
    created if needed.

    Args:
        path: File that is about to be written
        timeout: Maximum wait time in seconds (default: 60)

    Yields:
        None

    Raises:
        LockTimeout: If the lock can't be acquired within timeout
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_name(path.name + ".lock")
    lock = FileLock(lock_path, timeout=timeout)

    try:
        with lock:
            logger.debug(f"Acquired lock: {lock_path}")
            yield
            logger.debug(f"Released lock: {lock_path}")
    except LockTimeout as e:
        raise LockTimeout(
            f"Could not acquire {lock_path} after {timeout}s. "
            "Another cargo-ndk process may be running."
        ) from e


__all__ = ["path_lock", "LockTimeout"]
