"""
CMake build strategy.

Configures in ``<source>/build`` with the cross compilers, the target
sysroot and a find-root restricted to the staging prefix, then runs
``cmake --build`` and ``cmake --install``.
"""

import logging
from pathlib import Path
from typing import Dict, List, Sequence

from ndkforge.backends.base import BuildStrategy

logger = logging.getLogger(__name__)

BUILD_SUBDIR = "build"


class CMakeStrategy(BuildStrategy):
    """Out-of-tree cross build of a CMake project into the staging prefix."""

    def cache_variables(self) -> Dict[str, str]:
        """``-D`` variables for cross compilation against the staging prefix."""
        toolchain = self.context.require_toolchain()
        staging = str(self.context.staging)

        return {
            "CMAKE_INSTALL_PREFIX": staging,
            "CMAKE_C_COMPILER": toolchain.cc,
            "CMAKE_CXX_COMPILER": toolchain.cxx,
            "CMAKE_AR": toolchain.ar,
            "CMAKE_RANLIB": toolchain.ranlib,
            "CMAKE_C_FLAGS": toolchain.cflags,
            "CMAKE_CXX_FLAGS": toolchain.cxxflags,
            "CMAKE_SYSROOT": toolchain.get("SYSROOT", str(toolchain.sysroot)),
            "CMAKE_FIND_ROOT_PATH": staging,
            "CMAKE_FIND_ROOT_PATH_MODE_PROGRAM": "NEVER",
            "CMAKE_FIND_ROOT_PATH_MODE_LIBRARY": "ONLY",
            "CMAKE_FIND_ROOT_PATH_MODE_INCLUDE": "ONLY",
        }

    def configure_command(self, extra_args: Sequence[str] = ()) -> List[str]:
        args = ["cmake"]
        args.extend(f"-D{key}={value}" for key, value in self.cache_variables().items())
        args.extend(extra_args)
        args.append("..")
        return args

    def build(self, component: str, source_dir: Path, extra_args: Sequence[str] = ()) -> None:
        source_dir = self.require_source(component, source_dir)

        logger.info(f"=== Building {component} ===")

        build_dir = source_dir / BUILD_SUBDIR
        build_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Configuring {component} with CMake...")
        self.run(
            self.configure_command(extra_args),
            cwd=build_dir,
            component=component,
            step="cmake configure",
        )

        logger.info(f"Building {component}...")
        self.run(
            ["cmake", "--build", ".", f"-j{self.context.jobs}"],
            cwd=build_dir,
            component=component,
            step="cmake build",
        )

        logger.info(f"Installing {component}...")
        self.run(
            ["cmake", "--install", "."],
            cwd=build_dir,
            component=component,
            step="cmake install",
        )

        logger.info(f"{component} built successfully")
