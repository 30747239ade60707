"""Layered resolution of the toolchain environment.

The toolchain environment (``CC``, ``CFLAGS``, ``SYSROOT``, ...) is
composed from three kinds of layers, applied lowest precedence first:

    DefaultLayer  <  DerivedLayer  <  OverrideLayer

Defaults are fallbacks, derived values are computed from the NDK layout
and the build configuration, and overrides come from the caller
(ambient ``CFLAGS`` and friends, ``env:`` in the config file, ``--env``
on the command line). A later layer replaces an earlier one key by key.

Example:
    >>> env = LayeredEnvironment([
    ...     DefaultLayer({"CPPFLAGS": ""}),
    ...     DerivedLayer({"CFLAGS": "--sysroot=/s -fPIC"}),
    ...     OverrideLayer({"CFLAGS": "-O2"}, name="ambient"),
    ... ])
    >>> env.resolve().variables["CFLAGS"]
    '-O2'
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from ndkforge.core.exceptions import ConfigError


_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class LayerValidationError(ConfigError):
    """Raised when a layer carries an invalid variable."""

    pass


# ============================================================================
# EnvironmentContext: State Container
# ============================================================================


@dataclass
class EnvironmentContext:
    """Accumulated environment while layers are applied.

    Attributes:
        variables: Resolved variable name -> value
        origins: Variable name -> name of the layer that set it last
        applied_layers: Layers in the order they were applied
    """

    variables: Dict[str, str] = field(default_factory=dict)
    origins: Dict[str, str] = field(default_factory=dict)
    applied_layers: List["EnvironmentLayer"] = field(default_factory=list)

    def set(self, name: str, value: str, origin: str) -> None:
        self.variables[name] = value
        self.origins[name] = origin


# ============================================================================
# EnvironmentLayer: Abstract Base Class
# ============================================================================


class EnvironmentLayer(ABC):
    """Abstract base class for environment layers.

    Attributes:
        name: Layer name shown in debug output
        layer_type: 'default', 'derived' or 'override'
        variables: Variables this layer contributes
    """

    layer_type = "layer"

    def __init__(self, variables: Mapping[str, Optional[str]], name: str = ""):
        self.name = name or self.layer_type
        self.variables = dict(variables)

    @abstractmethod
    def apply(self, context: EnvironmentContext) -> None:
        """Apply this layer's variables to the context."""
        pass

    def validate(self, context: EnvironmentContext) -> None:
        """Check that every variable name is a valid environment identifier.

        Raises:
            LayerValidationError: On an invalid name or non-string value
        """
        for key, value in self.variables.items():
            if not _ENV_NAME.match(key):
                raise LayerValidationError(
                    f"Layer '{self.name}': invalid environment variable name '{key}'"
                )
            if value is not None and not isinstance(value, str):
                raise LayerValidationError(
                    f"Layer '{self.name}': value for {key} must be a string, "
                    f"got {type(value).__name__}"
                )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', type='{self.layer_type}')"


# ============================================================================
# Concrete Layer Types
# ============================================================================


class DefaultLayer(EnvironmentLayer):
    """Fallback values, used only when no later layer provides the variable."""

    layer_type = "default"

    def apply(self, context: EnvironmentContext) -> None:
        for key, value in self.variables.items():
            if value is not None and key not in context.variables:
                context.set(key, value, self.name)


class DerivedLayer(EnvironmentLayer):
    """Values computed from the toolchain layout and build configuration."""

    layer_type = "derived"

    def apply(self, context: EnvironmentContext) -> None:
        for key, value in self.variables.items():
            if value is not None:
                context.set(key, value, self.name)


class OverrideLayer(EnvironmentLayer):
    """Caller-supplied values. ``None`` entries mean "not overridden"."""

    layer_type = "override"

    def apply(self, context: EnvironmentContext) -> None:
        for key, value in self.variables.items():
            if value is not None:
                context.set(key, value, self.name)


# ============================================================================
# LayeredEnvironment
# ============================================================================


class LayeredEnvironment:
    """Ordered stack of layers resolved into a single environment."""

    def __init__(self, layers: Optional[List[EnvironmentLayer]] = None):
        self.layers: List[EnvironmentLayer] = list(layers or [])

    def add(self, layer: EnvironmentLayer) -> "LayeredEnvironment":
        self.layers.append(layer)
        return self

    def resolve(self) -> EnvironmentContext:
        """Validate and apply every layer in order.

        Raises:
            LayerValidationError: If any layer is invalid
        """
        context = EnvironmentContext()
        for layer in self.layers:
            layer.validate(context)
            layer.apply(context)
            context.applied_layers.append(layer)
        return context
