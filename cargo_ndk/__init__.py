"""
cargo-ndk - build Rust code for Android with the NDK.

Finds the installed NDK, sets up the cross-compilation environment for each
Android ABI, runs cargo once per target and collects the results into a
jniLibs-style directory.
"""

__version__ = "0.1.0"
