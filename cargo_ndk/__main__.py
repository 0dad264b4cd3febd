"""
Entry point for running cargo-ndk as a module.

Usage: python -m cargo_ndk [command] [options]
"""

from cargo_ndk.cli.parser import main

if __name__ == "__main__":
    main()
