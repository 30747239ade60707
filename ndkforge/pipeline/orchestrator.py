"""
Pipeline orchestrator.

Runs one recipe for one target configuration, strictly in sequence:

1. Validate host prerequisites
2. Fetch all source archives
3. Prepare host-side helpers (e.g. a host interpreter)
4. Resolve the target toolchain
5. Build dependency components in declared order
6. Build the final product (always rebuilt)
7. Apply post-build patches (best effort)
8. Package the output directory

The first failure stops the run. Components that finished before the
failure keep their markers, so a rerun skips them and resumes at the
failed component.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

from ndkforge.backends.base import BuildContext
from ndkforge.build.driver import ComponentBuildDriver
from ndkforge.core.download import fetch
from ndkforge.core.exceptions import HostDependencyError
from ndkforge.core.filesystem import create_archive, find_executable
from ndkforge.core.locking import LockManager
from ndkforge.core.markers import MarkerCache
from ndkforge.core.workspace import Workspace
from ndkforge.cross.toolchain import ToolchainResolver

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """
    Outcome of a successful run.

    Attributes:
        archive: Distribution archive path
        built: Components built in this run
        skipped: Components skipped because their markers matched
    """

    archive: Path
    built: List[str]
    skipped: List[str]


def check_host_tools(tools) -> None:
    """
    Verify that every tool is on PATH.

    Raises:
        HostDependencyError: Listing all missing tools at once
    """
    logger.debug("Checking host dependencies...")
    missing = [tool for tool in tools if find_executable(tool) is None]
    if missing:
        raise HostDependencyError(missing)
    logger.info("Host dependencies satisfied")


class Orchestrator:
    """
    Drives a recipe through the full pipeline.

    Attributes:
        config: BuildConfiguration for the run
        workspace: Target workspace layout
    """

    def __init__(self, config, workspace: Optional[Workspace] = None, resolver=None):
        self.config = config
        self.workspace = workspace or Workspace.for_target(
            config.workspace_root, config.recipe, config.target_triple, config.api_level
        )
        self.resolver = resolver or ToolchainResolver(config, self.workspace)
        self.locks = LockManager(self.workspace.markers)

    def run(self, recipe) -> PipelineResult:
        """
        Execute every phase for ``recipe``.

        Returns:
            PipelineResult

        Raises:
            FatalError: On an unrecoverable environment problem
            NdkForgeError: If a component or the product fails to build
        """
        check_host_tools(recipe.required_tools)

        self.workspace.ensure()
        with self.locks.workspace_lock():
            return self._run_locked(recipe)

    def _run_locked(self, recipe) -> PipelineResult:
        context = BuildContext(
            config=self.config,
            workspace=self.workspace,
            markers=MarkerCache(self.workspace.markers),
        )
        driver = ComponentBuildDriver(context, self.locks)

        logger.info("=== Downloading sources ===")
        for source in recipe.sources():
            fetch(
                source.url,
                recipe.download_path(context, source),
                expected_sha256=source.sha256,
            )

        context = recipe.prepare_host(context, driver)

        logger.info("=== Toolchain ===")
        context = replace(context, toolchain=self.resolver.resolve())
        driver.context = context

        built, skipped = [], []
        for component in recipe.components():
            strategy = component.strategy(context)
            did_build = driver.build_component(
                component.name,
                recipe.download_path(context, component.source),
                self.workspace.source_dir(component.dirname),
                strategy,
                component.args,
            )
            (built if did_build else skipped).append(component.name)

        recipe.build_product(context)
        recipe.post_build(context)

        logger.info("=== Creating distribution archive ===")
        archive = create_archive(recipe.archive_path(context), self.workspace.output)

        logger.info("=== Build Summary ===")
        logger.info(f"Version: {self.config.version}")
        logger.info(f"Target: {self.config.target_name}")
        logger.info(f"Output directory: {self.workspace.output}")
        logger.info(f"Archive: {archive}")
        return PipelineResult(archive=archive, built=built, skipped=skipped)
