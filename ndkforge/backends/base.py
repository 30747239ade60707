"""
Build strategy interface.

A build strategy knows how to configure, build and install one component
from an already extracted source tree. Strategies receive everything they
need through a :class:`BuildContext`; the toolchain variables reach the
native build tools only through the environment the strategy passes to
each subprocess.
"""

import logging
import platform
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

from ndkforge.core.exceptions import SourceDirectoryError, ToolchainStateError
from ndkforge.core.markers import Fingerprint, MarkerCache
from ndkforge.core.process import run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildContext:
    """
    Everything a component build needs.

    Attributes:
        config: BuildConfiguration for the run
        workspace: Target workspace layout
        markers: Marker cache of the target workspace
        toolchain: Resolved ToolchainDescriptor (None before resolution)
        host_python: Host helper interpreter, once known
    """

    config: object
    workspace: object
    markers: MarkerCache
    toolchain: Optional[object] = None
    host_python: Optional[Path] = None

    @property
    def jobs(self) -> int:
        return self.config.jobs

    @property
    def staging(self) -> Path:
        return self.workspace.staging

    def require_toolchain(self):
        if self.toolchain is None:
            raise ToolchainStateError("Toolchain has not been resolved yet")
        return self.toolchain


class BuildStrategy(ABC):
    """
    Abstract base class for component build strategies.

    Subclasses implement :meth:`build`. The default fingerprint describes a
    cross build: archive digest, active compile and preprocessor flags,
    architecture and API level.
    """

    def __init__(self, context: BuildContext):
        self.context = context

    @abstractmethod
    def build(self, component: str, source_dir: Path, extra_args: Sequence[str] = ()) -> None:
        """
        Configure, build and install ``component`` from ``source_dir``.

        Args:
            component: Component name (used in logs and errors)
            source_dir: Extracted source root
            extra_args: Component-specific arguments

        Raises:
            BuildError: If any step fails
        """
        pass

    def fingerprint(self, archive_hash: str) -> Fingerprint:
        toolchain = self.context.require_toolchain()
        return Fingerprint(
            archive=archive_hash,
            cflags=toolchain.cflags,
            cppflags=toolchain.cppflags,
            arch=toolchain.arch.value,
            api=toolchain.api_level,
        )

    def environment(self, **extra: str) -> Dict[str, str]:
        """Subprocess environment: ours plus the toolchain variables and ``extra``."""
        env = self.context.require_toolchain().environment()
        env.update(extra)
        return env

    def run(self, command, cwd: Path, component: str, step: str, env=None) -> None:
        run_command(
            command,
            cwd=cwd,
            env=self.environment() if env is None else env,
            description=f"{component}: {step}",
        )

    @staticmethod
    def require_source(component: str, source_dir: Path) -> Path:
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            logger.error(f"Source directory not found: {source_dir}")
            raise SourceDirectoryError(
                f"{component}: source directory not found: {source_dir}"
            )
        return source_dir


def host_fingerprint(archive_hash: str) -> Fingerprint:
    """Fingerprint for a build that targets the build machine itself."""
    return Fingerprint(archive=archive_hash, uname=platform.machine())
