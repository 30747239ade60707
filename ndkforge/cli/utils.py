"""
Shared utilities for CLI commands.
"""

import logging
from typing import Dict, List

from ndkforge.config.settings import BuildConfiguration, load_configuration
from ndkforge.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


def parse_assignments(items: List[str], option: str) -> Dict[str, str]:
    """
    Parse repeated ``KEY=VALUE`` options into a dict.

    Raises:
        ConfigError: If an item has no '=' or an empty key
    """
    result = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ConfigError(f"{option} expects KEY=VALUE, got '{item}'")
        result[key.strip()] = value
    return result


def configuration_from_args(args, require_version: bool = True) -> BuildConfiguration:
    """
    Load the build configuration for a command.

    Only options present on ``args`` and actually given take part in the merge.
    """
    cli_values = {
        "version": getattr(args, "product_version", None),
        "api": getattr(args, "api", None),
        "arch": getattr(args, "arch", None),
        "workspace": getattr(args, "workspace", None),
        "jobs": getattr(args, "jobs", None),
        "host_tag": getattr(args, "host_tag", None),
        "ndk_root": getattr(args, "ndk_root", None),
        "ndk_version": getattr(args, "ndk_version", None),
    }
    if getattr(args, "skip_host_python", False):
        cli_values["skip_host_build"] = True

    env = parse_assignments(getattr(args, "env", []), "--env")
    if env:
        cli_values["env"] = env
    versions = parse_assignments(getattr(args, "component_versions", []), "--with")
    if versions:
        cli_values["versions"] = versions

    return load_configuration(
        args.recipe,
        cli_values=cli_values,
        config_file=args.config,
        require_version=require_version,
    )
