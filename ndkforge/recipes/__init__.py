"""
Build recipes.

``RECIPES`` maps the command-line recipe name to its class.
"""

from ndkforge.core.exceptions import ConfigError
from ndkforge.recipes.base import Component, Recipe, SourcePackage
from ndkforge.recipes.python import PythonRecipe

RECIPES = {
    PythonRecipe.name: PythonRecipe,
}


def get_recipe_class(name: str):
    """
    Look up a recipe by name.

    Raises:
        ConfigError: If no recipe has that name
    """
    try:
        return RECIPES[name]
    except KeyError:
        raise ConfigError(
            f"Unknown recipe: {name} (available: {', '.join(sorted(RECIPES))})"
        ) from None


__all__ = ["RECIPES", "get_recipe_class", "Component", "Recipe", "SourcePackage"]
