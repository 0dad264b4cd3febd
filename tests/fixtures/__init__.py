"""Test fixtures for cargo-ndk tests.

This package provides reusable pytest fixtures:

- ndk: Synthetic NDK installations and SDK layouts
- projects: Minimal Cargo projects and a stub build tool

Import fixtures in your tests using:
    from tests.fixtures.ndk import synthetic_ndk
    from tests.fixtures.projects import stub_cargo
"""

__all__ = [
    "ndk",
    "projects",
]
