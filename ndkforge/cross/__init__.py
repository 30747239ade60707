"""Android cross-compilation: targets, NDK location and toolchain resolution."""

from ndkforge.cross.targets import Architecture

__all__ = ["Architecture"]
