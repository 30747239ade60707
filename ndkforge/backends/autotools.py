"""
Autotools build strategy.

``configure --host=<triple> --prefix=<staging> [args]``, ``make -jN``,
``make install``. When the source tree ships no ``configure`` script it
is generated first, with ``autogen.sh`` if present, otherwise with
``autoreconf -fi`` if ``configure.ac``/``configure.in`` exists.
"""

import logging
import os
from pathlib import Path
from typing import Sequence

from ndkforge.backends.base import BuildStrategy
from ndkforge.core.exceptions import BootstrapError

logger = logging.getLogger(__name__)


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


class AutotoolsStrategy(BuildStrategy):
    """Cross build of an autotools project into the staging prefix."""

    def build(self, component: str, source_dir: Path, extra_args: Sequence[str] = ()) -> None:
        source_dir = self.require_source(component, source_dir)
        toolchain = self.context.require_toolchain()

        logger.info(f"=== Building {component} ===")

        self.bootstrap(component, source_dir)

        logger.info(f"Configuring {component}...")
        self.run(
            [
                "./configure",
                toolchain.host_flag(),
                f"--prefix={self.context.staging}",
                *extra_args,
            ],
            cwd=source_dir,
            component=component,
            step="configure",
        )

        logger.info(f"Building {component}...")
        self.run(
            ["make", f"-j{self.context.jobs}"],
            cwd=source_dir,
            component=component,
            step="make",
        )

        logger.info(f"Installing {component}...")
        self.run(["make", "install"], cwd=source_dir, component=component, step="install")

        logger.info(f"{component} built successfully")

    def bootstrap(self, component: str, source_dir: Path) -> None:
        """
        Generate ``configure`` if the source tree does not ship one.

        Raises:
            BootstrapError: If there is neither a configure script nor a way to make one
        """
        if _is_executable(source_dir / "configure"):
            return

        if _is_executable(source_dir / "autogen.sh"):
            logger.info("Running autogen.sh")
            self.run(["./autogen.sh"], cwd=source_dir, component=component, step="autogen.sh")
        elif (source_dir / "configure.ac").is_file() or (source_dir / "configure.in").is_file():
            logger.info("Running autoreconf")
            self.run(["autoreconf", "-fi"], cwd=source_dir, component=component, step="autoreconf")
        else:
            raise BootstrapError(
                f"{component}: no configure script or autogen found in {source_dir}"
            )
