"""
ndkforge CLI module.

This module provides the command-line interface for ndkforge.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
