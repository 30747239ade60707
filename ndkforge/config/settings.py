"""
Build configuration loading.

A :class:`BuildConfiguration` is created once at the start of a run and
never modified afterwards. Values are merged from four sources, lowest
precedence first:

1. Built-in defaults
2. YAML config file (``ndkforge.yaml`` in the current directory, or ``--config``)
3. Process environment (``NDKFORGE_*``, ``ANDROID_NDK_ROOT``,
   ``<RECIPE>_<COMPONENT>_VERSION``)
4. Command-line options

The architecture name is validated while the configuration is built, so
an unsupported architecture stops the run before any directory is
created or any download starts.

Example config file::

    workspace: ~/android-builds
    api: 30
    arch: x86_64
    jobs: 8
    ndk:
      version: r27d
    env:
      CFLAGS: -O2
    versions:
      openssl: 3.5.4
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ndkforge.core.exceptions import ConfigError
from ndkforge.core.platform import default_host_tag
from ndkforge.cross.targets import Architecture

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "ndkforge.yaml"
DEFAULT_API_LEVEL = 34
DEFAULT_ARCH = "aarch64"
DEFAULT_NDK_VERSION = "r27d"
DEFAULT_WORKSPACE = "~/workspace"

# Environment variable -> configuration key
ENV_SETTINGS = {
    "NDKFORGE_WORKSPACE": "workspace",
    "NDKFORGE_API": "api",
    "NDKFORGE_ARCH": "arch",
    "NDKFORGE_JOBS": "jobs",
    "NDKFORGE_HOST_TAG": "host_tag",
    "NDKFORGE_NDK_VERSION": "ndk_version",
    "ANDROID_NDK_ROOT": "ndk_root",
}


@dataclass(frozen=True)
class BuildConfiguration:
    """
    Immutable per-run build settings.

    Attributes:
        recipe: Recipe name (e.g. 'python')
        version: Version of the final product
        arch: Target architecture
        api_level: Android API level
        host_tag: NDK prebuilt host directory name
        jobs: Parallel jobs passed to the native build tool
        workspace_root: Top-level workspace directory
        ndk_version: NDK release to use or download
        ndk_url: NDK download URL override
        ndk_root: Externally installed NDK
        env_overrides: Explicit toolchain variable overrides
        component_versions: Component name -> version overrides
        skip_host_build: Use a host interpreter from PATH instead of building one
    """

    recipe: str
    version: str
    arch: Architecture
    api_level: int = DEFAULT_API_LEVEL
    host_tag: str = field(default_factory=default_host_tag)
    jobs: int = field(default_factory=lambda: os.cpu_count() or 1)
    workspace_root: Path = field(default_factory=lambda: Path(DEFAULT_WORKSPACE).expanduser())
    ndk_version: str = DEFAULT_NDK_VERSION
    ndk_url: Optional[str] = None
    ndk_root: Optional[Path] = None
    env_overrides: Mapping[str, str] = field(default_factory=dict)
    component_versions: Mapping[str, str] = field(default_factory=dict)
    skip_host_build: bool = False

    @property
    def target_triple(self) -> str:
        return self.arch.triple

    @property
    def target_name(self) -> str:
        """``<triple><api>``, e.g. 'aarch64-linux-android34'."""
        return f"{self.arch.triple}{self.api_level}"

    def component_version(self, component: str, default: str) -> str:
        return self.component_versions.get(component, default)


# ============================================================================
# Sources
# ============================================================================


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigError: If the file is required and missing, or cannot be parsed
    """
    config_file = Path(config_file)

    if not config_file.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read {config_file}: {e}") from e

    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file}: top level must be a mapping")

    return _flatten_yaml(data, config_file)


def _flatten_yaml(data: Dict[str, Any], source: Path) -> Dict[str, Any]:
    """Map the nested YAML layout onto flat configuration keys."""
    flat = {}
    for key in ("workspace", "api", "arch", "jobs", "host_tag", "version"):
        if key in data:
            flat[key] = data[key]

    ndk = data.get("ndk") or {}
    if not isinstance(ndk, dict):
        raise ConfigError(f"{source}: 'ndk' must be a mapping")
    for key in ("version", "url", "root"):
        if key in ndk:
            flat[f"ndk_{key}"] = ndk[key]

    for section in ("env", "versions"):
        value = data.get(section) or {}
        if not isinstance(value, dict):
            raise ConfigError(f"{source}: '{section}' must be a mapping")
        flat[section] = {str(k): str(v) for k, v in value.items()}

    return flat


def settings_from_environment(recipe: str, environ: Mapping[str, str]) -> Dict[str, Any]:
    """
    Collect configuration values from environment variables.

    ``<RECIPE>_<COMPONENT>_VERSION`` (e.g. ``PYTHON_ZLIB_VERSION``) sets
    a component version. ``<RECIPE>_<COMPONENT>_CODE`` and ``_YEAR`` set
    the ``<component>_code`` and ``<component>_year`` keys that some
    download URLs are built from (``PYTHON_SQLITE_CODE=3510000``).
    """
    values: Dict[str, Any] = {}
    for env_name, key in ENV_SETTINGS.items():
        if environ.get(env_name):
            values[key] = environ[env_name]

    pattern = re.compile(rf"^{re.escape(recipe.upper())}_([A-Z0-9_]+?)_(VERSION|CODE|YEAR)$")
    versions = {}
    for env_name, value in environ.items():
        match = pattern.match(env_name)
        if not (match and value):
            continue
        component, field = match.group(1).lower(), match.group(2)
        if field == "VERSION":
            versions[component] = value
        else:
            versions[f"{component}_{field.lower()}"] = value
    if versions:
        values["versions"] = versions

    return values


# ============================================================================
# Merge
# ============================================================================


def _to_int(value: Any, name: str, minimum: int = 1) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if number < minimum:
        raise ConfigError(f"{name} must be at least {minimum}, got {number}")
    return number


def load_configuration(
    recipe: str,
    cli_values: Optional[Mapping[str, Any]] = None,
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
    require_version: bool = True,
) -> BuildConfiguration:
    """
    Build the run configuration from every source.

    Args:
        recipe: Recipe name
        cli_values: Values from the command line (``None`` entries are ignored)
        config_file: Explicit config file; must exist if given
        environ: Environment to read (defaults to ``os.environ``)
        cwd: Directory searched for ``ndkforge.yaml``
        require_version: Fail if no product version is given (commands that
            only inspect the workspace do not need one)

    Returns:
        BuildConfiguration

    Raises:
        ConfigError: If a value is invalid or the product version is missing
        UnknownArchitectureError: If the architecture is not supported
    """
    environ = os.environ if environ is None else environ

    if config_file is not None:
        file_values = load_yaml_config(Path(config_file), required=True)
    else:
        file_values = load_yaml_config(Path(cwd or Path.cwd()) / DEFAULT_CONFIG_FILE)

    merged: Dict[str, Any] = {"env": {}, "versions": {}}
    for source in (
        file_values,
        settings_from_environment(recipe, environ),
        {k: v for k, v in (cli_values or {}).items() if v is not None},
    ):
        for key, value in source.items():
            if key in ("env", "versions"):
                merged[key].update(value)
            else:
                merged[key] = value

    arch = Architecture.parse(merged.get("arch", DEFAULT_ARCH))

    version = merged.get("version") or ""
    if require_version and not version:
        raise ConfigError(f"No version given for recipe '{recipe}'")

    kwargs: Dict[str, Any] = {
        "recipe": recipe,
        "version": str(version),
        "arch": arch,
        "api_level": _to_int(merged.get("api", DEFAULT_API_LEVEL), "API level"),
        "ndk_version": str(merged.get("ndk_version", DEFAULT_NDK_VERSION)),
        "ndk_url": merged.get("ndk_url"),
        "env_overrides": dict(merged["env"]),
        "component_versions": dict(merged["versions"]),
        "skip_host_build": bool(merged.get("skip_host_build", False)),
    }
    if "jobs" in merged:
        kwargs["jobs"] = _to_int(merged["jobs"], "jobs")
    if "workspace" in merged:
        kwargs["workspace_root"] = Path(str(merged["workspace"])).expanduser()
    if "host_tag" in merged:
        kwargs["host_tag"] = str(merged["host_tag"])
    if merged.get("ndk_root"):
        kwargs["ndk_root"] = Path(str(merged["ndk_root"])).expanduser()

    config = BuildConfiguration(**kwargs)
    logger.debug(f"Configuration: {config}")
    return config
