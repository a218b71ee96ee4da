"""
Entry point for running the relayer as a module.

Usage:
    python -m vesting_relayer
"""

from vesting_relayer.cli import main

if __name__ == "__main__":
    main()
