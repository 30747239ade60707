"""
Recipe interface.

A recipe describes one product to cross-compile: the source archives it
needs, the dependency components in build order, and how to build and
package the final product. The pipeline orchestrator drives a recipe
through its phases; the recipe itself never decides when to run.

Build order is declared by the recipe, not computed. A component must
come after every component whose headers or libraries it uses.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Type

from ndkforge.backends.base import BuildContext, BuildStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourcePackage:
    """
    A downloadable source archive.

    Attributes:
        name: Package name (e.g. 'zlib')
        version: Package version
        url: Download URL
        filename: File name in the downloads directory
        sha256: Expected digest, if known
    """

    name: str
    version: str
    url: str
    filename: str
    sha256: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.name} {self.version}"


@dataclass(frozen=True)
class Component:
    """
    A dependency built through the component build driver.

    Attributes:
        name: Marker key (e.g. 'zlib-1.3.1')
        source: Archive the component is built from
        strategy: Strategy class used to build it
        args: Extra arguments passed to the strategy
        source_dirname: Directory name under ``src/`` (defaults to ``name``)
    """

    name: str
    source: SourcePackage
    strategy: Type[BuildStrategy]
    args: Tuple[str, ...] = field(default_factory=tuple)
    source_dirname: Optional[str] = None

    @property
    def dirname(self) -> str:
        return self.source_dirname or self.name


class Recipe(ABC):
    """
    Abstract base class for build recipes.

    Class attributes:
        name: Registry name used on the command line
        description: One-line description for ``ndkforge list``
        required_tools: Executables that must be on PATH before anything runs
    """

    name = "recipe"
    description = ""
    required_tools: Sequence[str] = ()

    def __init__(self, config):
        self.config = config

    @abstractmethod
    def sources(self) -> List[SourcePackage]:
        """Every archive the recipe needs, fetched before any build starts."""
        pass

    @abstractmethod
    def components(self) -> List[Component]:
        """Dependency components in build order."""
        pass

    def prepare_host(self, context: BuildContext, driver) -> BuildContext:
        """
        Provide host-side helpers needed by the cross build.

        Returns:
            The context, possibly extended (e.g. with ``host_python``)
        """
        return context

    @abstractmethod
    def build_product(self, context: BuildContext) -> None:
        """Build the final product into the output directory. Never marker-gated."""
        pass

    def post_build(self, context: BuildContext) -> None:
        """Best-effort finishing touches on the output tree."""
        pass

    @abstractmethod
    def archive_name(self) -> str:
        """File name of the distribution archive."""
        pass

    def archive_path(self, context: BuildContext) -> Path:
        return context.workspace.root / self.archive_name()

    def download_path(self, context: BuildContext, source: SourcePackage) -> Path:
        return context.workspace.download_path(source.filename)
