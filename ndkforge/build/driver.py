"""
Component build driver.

Runs one component through the cached build sequence::

    fingerprint -> skip if marker matches
                -> reset source dir -> extract -> strategy.build -> mark built

A component is marked built only after its strategy returns. If the
strategy raises, the error propagates and the previous marker (if any)
is left as it was; because its fingerprint does not match the current
inputs, the next run rebuilds the component.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

from ndkforge.backends.base import BuildContext, BuildStrategy
from ndkforge.core.archive import extract_source
from ndkforge.core.filesystem import compute_file_hash, reset_dir
from ndkforge.core.locking import LockManager
from ndkforge.core.markers import Fingerprint

logger = logging.getLogger(__name__)


class ComponentBuildDriver:
    """
    Builds components with marker-based skipping.

    Attributes:
        context: Shared build context
        locks: Lock manager used to serialize work per component
    """

    def __init__(self, context: BuildContext, locks: Optional[LockManager] = None):
        self.context = context
        self.locks = locks or LockManager(context.workspace.markers)

    def fingerprint_for(self, archive_path: Path, strategy: BuildStrategy) -> Fingerprint:
        return strategy.fingerprint(compute_file_hash(archive_path))

    def build_component(
        self,
        name: str,
        archive_path: Path,
        source_dir: Path,
        strategy: BuildStrategy,
        extra_args: Sequence[str] = (),
        fingerprint: Optional[Fingerprint] = None,
    ) -> bool:
        """
        Build ``name`` unless a marker with a matching fingerprint exists.

        Args:
            name: Component name
            archive_path: Source archive
            source_dir: Where the archive is extracted
            strategy: How to configure, build and install the component
            extra_args: Passed through to ``strategy.build``
            fingerprint: Precomputed fingerprint (defaults to the strategy's)

        Returns:
            True if the component was built, False if it was skipped

        Raises:
            FileNotFoundError: If the archive does not exist
            BuildError: If the strategy fails (no marker is written)
        """
        archive_path = Path(archive_path)
        source_dir = Path(source_dir)
        markers = self.context.markers

        with self.locks.component_lock(name):
            if fingerprint is None:
                fingerprint = self.fingerprint_for(archive_path, strategy)
            expected = fingerprint.serialize()

            if markers.is_built_match(name, expected):
                logger.info(f"Skipping {name}: already built")
                return False

            if markers.is_built(name):
                logger.info(f"Rebuilding {name}: inputs changed")
                logger.debug(f"{name}: old={markers.read(name)} new={expected}")

            reset_dir(source_dir)
            extract_source(archive_path, source_dir, name)

            strategy.build(name, source_dir, tuple(extra_args))

            markers.mark_built(name, expected)
            return True
