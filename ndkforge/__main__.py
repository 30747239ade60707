"""
Entry point for running ndkforge as a module.

Usage: python -m ndkforge [command] [options]
"""

from ndkforge.cli.parser import main

if __name__ == "__main__":
    main()
