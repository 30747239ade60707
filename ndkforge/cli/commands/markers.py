"""
Markers command: inspect or clear the build markers of a target workspace.

Clearing a marker forces the component to be rebuilt on the next run.
"""

import logging

from ndkforge.cli.utils import configuration_from_args
from ndkforge.core.markers import MarkerCache
from ndkforge.core.workspace import Workspace
from ndkforge.recipes import get_recipe_class

logger = logging.getLogger(__name__)


def _marker_cache(args) -> MarkerCache:
    get_recipe_class(args.recipe)
    config = configuration_from_args(args, require_version=False)
    workspace = Workspace.for_target(
        config.workspace_root, config.recipe, config.target_triple, config.api_level
    )
    return MarkerCache(workspace.markers)


def run(args) -> int:
    if not args.markers_command:
        logger.error("Specify an action: list or clear")
        return 1

    cache = _marker_cache(args)

    if args.markers_command == "list":
        markers = cache.list_markers()
        if not markers:
            print(f"No markers in {cache.markers_dir}")
            return 0
        for component, fingerprint in markers.items():
            print(f"{component}: {fingerprint}")
        return 0

    if args.components:
        for component in args.components:
            if not cache.is_built(component):
                logger.warning(f"No marker for {component}")
            cache.clear_marker(component)
        logger.info(f"Cleared {len(args.components)} marker(s)")
    else:
        count = cache.clear_all()
        logger.info(f"Cleared {count} marker(s)")
    return 0
