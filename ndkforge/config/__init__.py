"""Build configuration and layered toolchain environment."""

from ndkforge.config.settings import BuildConfiguration, load_configuration

__all__ = ["BuildConfiguration", "load_configuration"]
