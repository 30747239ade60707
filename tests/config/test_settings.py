"""
Unit tests for build configuration loading.
"""

from pathlib import Path

import pytest

from ndkforge.config.settings import (
    DEFAULT_API_LEVEL,
    BuildConfiguration,
    load_configuration,
    load_yaml_config,
    settings_from_environment,
)
from ndkforge.core.exceptions import ConfigError, FatalError, UnknownArchitectureError
from ndkforge.cross.targets import Architecture
from ndkforge.recipes.python import PythonRecipe


@pytest.fixture
def cwd(tmp_path):
    """Working directory without a config file."""
    path = tmp_path / "cwd"
    path.mkdir()
    return path


class TestLoadYamlConfig:
    """Test YAML config file parsing."""

    def test_missing_optional_file(self, tmp_path):
        assert load_yaml_config(tmp_path / "ndkforge.yaml") == {}

    def test_missing_required_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_yaml_config(tmp_path / "ndkforge.yaml", required=True)

    def test_nested_layout_flattened(self, tmp_path):
        path = tmp_path / "ndkforge.yaml"
        path.write_text(
            "workspace: ~/builds\n"
            "api: 30\n"
            "arch: x86_64\n"
            "ndk:\n"
            "  version: r26b\n"
            "  root: /opt/ndk\n"
            "env:\n"
            "  CFLAGS: -O2\n"
            "versions:\n"
            "  openssl: 3.5.4\n"
        )

        values = load_yaml_config(path)

        assert values["workspace"] == "~/builds"
        assert values["api"] == 30
        assert values["arch"] == "x86_64"
        assert values["ndk_version"] == "r26b"
        assert values["ndk_root"] == "/opt/ndk"
        assert values["env"] == {"CFLAGS": "-O2"}
        assert values["versions"] == {"openssl": "3.5.4"}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "ndkforge.yaml"
        path.write_text("")

        assert load_yaml_config(path) == {"env": {}, "versions": {}}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "ndkforge.yaml"
        path.write_text("api: [unclosed\n")

        with pytest.raises(ConfigError, match="Failed to read"):
            load_yaml_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "ndkforge.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_yaml_config(path)

    def test_section_must_be_mapping(self, tmp_path):
        path = tmp_path / "ndkforge.yaml"
        path.write_text("env: CFLAGS=-O2\n")

        with pytest.raises(ConfigError, match="'env' must be a mapping"):
            load_yaml_config(path)


class TestSettingsFromEnvironment:
    """Test environment variable collection."""

    def test_known_variables(self):
        values = settings_from_environment(
            "python",
            {
                "NDKFORGE_API": "28",
                "NDKFORGE_ARCH": "i686",
                "ANDROID_NDK_ROOT": "/opt/ndk",
                "UNRELATED": "x",
            },
        )

        assert values == {"api": "28", "arch": "i686", "ndk_root": "/opt/ndk"}

    def test_component_versions(self):
        values = settings_from_environment(
            "python",
            {"PYTHON_OPENSSL_VERSION": "3.5.4", "PYTHON_SQLITE_YEAR_VERSION": "2024"},
        )

        assert values["versions"] == {"openssl": "3.5.4", "sqlite_year": "2024"}

    def test_component_code_and_year(self):
        values = settings_from_environment(
            "python",
            {
                "PYTHON_SQLITE_VERSION": "3.52.0",
                "PYTHON_SQLITE_CODE": "3520000",
                "PYTHON_SQLITE_YEAR": "2026",
            },
        )

        assert values["versions"] == {
            "sqlite": "3.52.0",
            "sqlite_code": "3520000",
            "sqlite_year": "2026",
        }

    def test_empty_values_ignored(self):
        assert settings_from_environment("python", {"NDKFORGE_API": ""}) == {}


class TestLoadConfiguration:
    """Test merging of all configuration sources."""

    def test_defaults(self, cwd):
        config = load_configuration("python", {"version": "3.13.9"}, environ={}, cwd=cwd)

        assert isinstance(config, BuildConfiguration)
        assert config.arch is Architecture.AARCH64
        assert config.api_level == DEFAULT_API_LEVEL
        assert config.ndk_version == "r27d"
        assert config.workspace_root == Path("~/workspace").expanduser()
        assert config.target_name == "aarch64-linux-android34"
        assert config.jobs >= 1

    def test_precedence_file_env_cli(self, cwd):
        (cwd / "ndkforge.yaml").write_text("api: 28\njobs: 3\narch: armv7a\n")

        config = load_configuration(
            "python",
            {"version": "3.13.9", "arch": "x86_64"},
            environ={"NDKFORGE_API": "30"},
            cwd=cwd,
        )

        assert config.api_level == 30
        assert config.jobs == 3
        assert config.arch is Architecture.X86_64

    def test_cli_none_values_ignored(self, cwd):
        config = load_configuration(
            "python",
            {"version": "3.13.9", "api": None},
            environ={"NDKFORGE_API": "29"},
            cwd=cwd,
        )

        assert config.api_level == 29

    def test_env_and_versions_merged(self, cwd):
        (cwd / "ndkforge.yaml").write_text(
            "env:\n  CFLAGS: -O2\n  LDFLAGS: -s\nversions:\n  zlib: 1.3\n"
        )

        config = load_configuration(
            "python",
            {"version": "3.13.9", "env": {"CFLAGS": "-O3"}},
            environ={"PYTHON_XZ_VERSION": "5.8.1"},
            cwd=cwd,
        )

        assert config.env_overrides == {"CFLAGS": "-O3", "LDFLAGS": "-s"}
        assert config.component_versions == {"zlib": "1.3", "xz": "5.8.1"}
        assert config.component_version("xz", "5.0") == "5.8.1"
        assert config.component_version("bzip2", "1.0.8") == "1.0.8"

    def test_sqlite_override_reaches_source(self, cwd):
        config = load_configuration(
            "python",
            {"version": "3.13.9"},
            environ={"PYTHON_SQLITE_VERSION": "3.52.0", "PYTHON_SQLITE_CODE": "3520000"},
            cwd=cwd,
        )

        sqlite = PythonRecipe(config).components()[-1]
        assert sqlite.name == "sqlite-3.52.0"
        assert sqlite.dirname == "sqlite-src-3520000"
        assert sqlite.source.filename == "sqlite-src-3520000.zip"

    def test_explicit_config_file_required(self, cwd):
        with pytest.raises(ConfigError):
            load_configuration(
                "python", {"version": "3.13.9"}, config_file=cwd / "missing.yaml", environ={}
            )

    def test_unknown_arch_rejected(self, cwd):
        """Test mips is refused while the configuration is built."""
        with pytest.raises(UnknownArchitectureError) as exc_info:
            load_configuration(
                "python", {"version": "3.13.9", "arch": "mips"}, environ={}, cwd=cwd
            )

        assert isinstance(exc_info.value, FatalError)
        assert "mips" in str(exc_info.value)

    def test_version_required(self, cwd):
        with pytest.raises(ConfigError, match="No version"):
            load_configuration("python", {}, environ={}, cwd=cwd)

    def test_version_optional(self, cwd):
        config = load_configuration("python", {}, environ={}, cwd=cwd, require_version=False)

        assert config.version == ""

    @pytest.mark.parametrize("value", ["abc", "0", "-1"])
    def test_invalid_api_level(self, cwd, value):
        with pytest.raises(ConfigError, match="API level"):
            load_configuration(
                "python", {"version": "3.13.9", "api": value}, environ={}, cwd=cwd
            )

    def test_paths_expanded(self, cwd, tmp_path):
        config = load_configuration(
            "python",
            {"version": "3.13.9", "workspace": str(tmp_path / "ws"), "ndk_root": "/opt/ndk"},
            environ={},
            cwd=cwd,
        )

        assert config.workspace_root == tmp_path / "ws"
        assert config.ndk_root == Path("/opt/ndk")

    def test_configuration_is_immutable(self, cwd):
        config = load_configuration("python", {"version": "3.13.9"}, environ={}, cwd=cwd)

        with pytest.raises(AttributeError):
            config.api_level = 21
