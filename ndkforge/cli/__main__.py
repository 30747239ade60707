"""
Entry point for running the ndkforge CLI as a module.

Usage: python -m ndkforge.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
