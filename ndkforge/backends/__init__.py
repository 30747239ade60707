"""
Build strategies.

- AutotoolsStrategy: configure / make / make install
- CMakeStrategy: out-of-tree cmake configure / build / install
"""

from ndkforge.backends.autotools import AutotoolsStrategy
from ndkforge.backends.base import BuildContext, BuildStrategy
from ndkforge.backends.cmake import CMakeStrategy

__all__ = ["AutotoolsStrategy", "BuildContext", "BuildStrategy", "CMakeStrategy"]
