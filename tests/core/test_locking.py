"""
Tests for path locking.
"""

from cargo_ndk.core.locking import path_lock


class TestPathLock:
    """Test path_lock."""

    def test_creates_parent_and_lock_file(self, tmp_path):
        """Test the parent directory is created and the lock sits beside the file."""
        target = tmp_path / "a" / "b" / "libgcc.a"

        with path_lock(target):
            target.write_text("x")

        assert target.read_text() == "x"
        assert (tmp_path / "a" / "b" / "libgcc.a.lock").exists()

    def test_reentrant_after_release(self, tmp_path):
        """Test the lock can be taken again after release."""
        target = tmp_path / "file"

        with path_lock(target, timeout=1):
            pass
        with path_lock(target, timeout=1):
            pass
