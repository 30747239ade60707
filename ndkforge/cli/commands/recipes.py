"""
List command: show registered recipes.
"""

from ndkforge.recipes import RECIPES


def run(args) -> int:
    width = max(len(name) for name in RECIPES)
    for name in sorted(RECIPES):
        print(f"{name:<{width}}  {RECIPES[name].description}")
    return 0
