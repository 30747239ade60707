"""
Build command: run the full pipeline for one recipe and target.
"""

import logging

from ndkforge.cli.utils import configuration_from_args
from ndkforge.pipeline.orchestrator import Orchestrator
from ndkforge.recipes import get_recipe_class

logger = logging.getLogger(__name__)


def run(args) -> int:
    recipe_class = get_recipe_class(args.recipe)

    # Configuration first: an invalid architecture must fail before any I/O.
    config = configuration_from_args(args)
    recipe = recipe_class(config)

    logger.info(f"{recipe.description}")
    logger.info(f"  Version: {config.version}")
    logger.info(f"  Target: {config.target_name}")

    result = Orchestrator(config).run(recipe)

    logger.info(
        f"Done: {len(result.built)} component(s) built, {len(result.skipped)} skipped"
    )
    print(result.archive)
    return 0
