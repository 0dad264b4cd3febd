"""
Entry point for running the cargo-ndk CLI as a module.

Usage: python -m cargo_ndk.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
