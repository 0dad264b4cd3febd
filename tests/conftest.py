"""
Pytest configuration and shared fixtures for cargo-ndk tests.
"""

import logging
import os

import pytest

# Import test fixtures to make them available to all tests
# These imports register the fixtures with pytest's fixture discovery system
# ruff: noqa: F401
from tests.fixtures.ndk import (
    synthetic_ndk,
    sdk_with_ndks,
    linux_host,
    windows_host,
)
from tests.fixtures.projects import (
    cargo_project,
    stub_cargo,
)

from cargo_ndk.core.platform import clear_host_cache


def pytest_collection_modifyitems(config, items):
    """Skip tests that execute POSIX shell stubs when running on Windows."""
    if os.name != "nt":
        return
    skip_posix = pytest.mark.skip(reason="requires executable script stubs")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip_posix)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "posix: runs executable script stubs (skipped on Windows)",
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def clean_environ():
    """An environment without any NDK or SDK variables."""
    return {"PATH": os.environ.get("PATH", ""), "HOME": "/nonexistent-home"}


@pytest.fixture(autouse=True)
def reset_host_cache():
    """Ensure host detection is not cached across tests."""
    clear_host_cache()
    yield
    clear_host_cache()


@pytest.fixture(autouse=True)
def reset_env_logger():
    """Undo logger level changes made by CLI tests."""
    env_logger = logging.getLogger("cargo_ndk.build.orchestrator.env")
    level = env_logger.level
    yield
    env_logger.setLevel(level)


@pytest.fixture(autouse=True)
def reset_root_logging():
    """Restore root logger handlers replaced by CLI logging configuration."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
