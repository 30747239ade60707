"""
Unit tests for the CPython recipe.
"""

import dataclasses
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ndkforge.backends.autotools import AutotoolsStrategy
from ndkforge.core.exceptions import ConfigError, HostToolchainError
from ndkforge.recipes import RECIPES, get_recipe_class
from ndkforge.recipes.python import (
    Bzip2Strategy,
    CrossPythonStrategy,
    HostPythonStrategy,
    OpenSSLStrategy,
    PythonRecipe,
    ZlibStrategy,
    find_system_python,
)


def _executable(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n")
    path.chmod(0o755)
    return path


@pytest.fixture
def recipe(config):
    return PythonRecipe(config)


class TestRecipeRegistry:
    """Test recipe lookup."""

    def test_python_registered(self):
        assert get_recipe_class("python") is PythonRecipe
        assert "python" in RECIPES

    def test_unknown_recipe(self):
        with pytest.raises(ConfigError, match="Unknown recipe: perl"):
            get_recipe_class("perl")


class TestPythonRecipe:
    """Test sources, components and naming."""

    def test_invalid_version(self, make_config):
        with pytest.raises(ConfigError, match="Invalid Python version"):
            PythonRecipe(make_config(version="three"))

    def test_major_minor(self, recipe):
        assert recipe.major_minor == "3.13"

    def test_component_order(self, recipe):
        names = [component.name for component in recipe.components()]

        assert names == [
            "zlib-1.3.1",
            "bzip2-1.0.8",
            "libffi-3.5.2",
            "openssl-3.5.4",
            "xz-5.8.1",
            "ncurses-6.5",
            "readline-8.3",
            "gdbm-1.26",
            "sqlite-3.51.0",
        ]

    def test_component_strategies(self, recipe):
        strategies = {c.name.split("-")[0]: c.strategy for c in recipe.components()}

        assert strategies["zlib"] is ZlibStrategy
        assert strategies["bzip2"] is Bzip2Strategy
        assert strategies["openssl"] is OpenSSLStrategy
        assert strategies["readline"] is AutotoolsStrategy

    def test_sqlite_source_directory(self, recipe):
        sqlite = recipe.components()[-1]

        assert sqlite.dirname == "sqlite-src-3510000"
        assert sqlite.source.url == "https://sqlite.org/2025/sqlite-src-3510000.zip"

    def test_sources_cover_product_and_components(self, recipe):
        sources = recipe.sources()

        assert sources[0].filename == "Python-3.13.9.tar.xz"
        assert sources[0].url == "https://www.python.org/ftp/python/3.13.9/Python-3.13.9.tar.xz"
        assert {c.source for c in recipe.components()} <= set(sources)
        assert len({s.filename for s in sources}) == len(sources)

    def test_component_version_override(self, make_config):
        recipe = PythonRecipe(make_config(component_versions={"zlib": "1.3"}))

        zlib = recipe.components()[0]
        assert zlib.name == "zlib-1.3"
        assert zlib.source.filename == "zlib-1.3.tar.xz"

    def test_archive_name(self, recipe, build_context):
        assert recipe.archive_name() == "python-3.13.9-aarch64-linux-android34.tar.gz"
        assert recipe.archive_path(build_context) == (
            build_context.workspace.root / "python-3.13.9-aarch64-linux-android34.tar.gz"
        )

    def test_render_envpatch(self, recipe):
        text = recipe.render_envpatch("aarch64-linux-android")

        assert text.startswith("# Python 3.13.9 environment setup for Android\n")
        assert 'export CPPFLAGS="-I$PREFIX/include -I$PREFIX/include/aarch64-linux-android"' in text
        assert 'export LDSHARED="$CC -shared"' in text
        assert text.endswith("\n")

    def test_post_build_writes_envpatch(self, recipe, build_context):
        recipe.post_build(build_context)

        path = build_context.workspace.output / "etc" / "profile.d" / "python3.13.9-envpatch.sh"
        assert "aarch64-linux-android" in path.read_text()

    def test_post_build_failure_is_not_fatal(self, recipe, build_context):
        with patch("ndkforge.recipes.python.atomic_write", side_effect=PermissionError("ro")):
            recipe.post_build(build_context)


class TestFindSystemPython:
    """Test host interpreter discovery."""

    def test_versioned_interpreter_matches(self, tmp_path, monkeypatch):
        exe = _executable(tmp_path / "python3.13")
        monkeypatch.setenv("PATH", str(tmp_path))

        with patch("ndkforge.recipes.python.query_python_version", return_value="3.13"):
            assert find_system_python("3.13") == exe

    def test_no_versioned_interpreter_skips_search(self, tmp_path, monkeypatch):
        _executable(tmp_path / "python3")
        monkeypatch.setenv("PATH", str(tmp_path))

        with patch("ndkforge.recipes.python.query_python_version") as mock_query:
            assert find_system_python("3.13") is None

        mock_query.assert_not_called()

    def test_forced_search_uses_python3(self, tmp_path, monkeypatch):
        exe = _executable(tmp_path / "python3")
        monkeypatch.setenv("PATH", str(tmp_path))

        with patch("ndkforge.recipes.python.query_python_version", return_value="3.13"):
            assert find_system_python("3.13", force_search=True) == exe

    def test_version_mismatch(self, tmp_path, monkeypatch):
        _executable(tmp_path / "python3.13")
        monkeypatch.setenv("PATH", str(tmp_path))

        with patch("ndkforge.recipes.python.query_python_version", return_value="3.12"):
            assert find_system_python("3.13") is None


class TestPrepareHost:
    """Test host interpreter preparation."""

    def test_system_python_used(self, recipe, build_context, tmp_path):
        driver = MagicMock()
        system = tmp_path / "python3.13"

        with patch("ndkforge.recipes.python.find_system_python", return_value=system):
            context = recipe.prepare_host(build_context, driver)

        assert context.host_python == system
        driver.build_component.assert_not_called()

    def test_previous_host_build_reused(self, recipe, build_context):
        built = _executable(build_context.workspace.root / "host-python" / "bin" / "python3")
        driver = MagicMock()

        with patch("ndkforge.recipes.python.find_system_python", return_value=None):
            context = recipe.prepare_host(build_context, driver)

        assert context.host_python == built
        driver.build_component.assert_not_called()

    def test_host_build_through_driver(self, recipe, build_context):
        workspace = build_context.workspace
        built = workspace.root / "host-python" / "bin" / "python3"
        driver = MagicMock()
        driver.build_component.side_effect = lambda *args, **kwargs: _executable(built)

        with patch("ndkforge.recipes.python.find_system_python", return_value=None):
            context = recipe.prepare_host(build_context, driver)

        name, archive, source_dir, strategy = driver.build_component.call_args.args
        assert name == "python-host-3.13.9"
        assert archive == workspace.download_path("Python-3.13.9.tar.xz")
        assert source_dir == workspace.source_dir("Python-3.13.9-host")
        assert isinstance(strategy, HostPythonStrategy)
        assert context.host_python == built

    def test_stale_host_marker_cleared(self, recipe, build_context):
        markers = build_context.markers
        markers.mark_built("python-host-3.13.9", "api=34;arch=aarch64")
        built = build_context.workspace.root / "host-python" / "bin" / "python3"
        driver = MagicMock()

        def build(name, *args, **kwargs):
            assert not markers.is_built(name)
            _executable(built)

        driver.build_component.side_effect = build

        with patch("ndkforge.recipes.python.find_system_python", return_value=None):
            context = recipe.prepare_host(build_context, driver)

        driver.build_component.assert_called_once()
        assert context.host_python == built

    def test_host_build_produces_nothing(self, recipe, build_context):
        with patch("ndkforge.recipes.python.find_system_python", return_value=None):
            with pytest.raises(HostToolchainError):
                recipe.prepare_host(build_context, MagicMock())


@patch("ndkforge.backends.base.run_command")
class TestBespokeStrategies:
    """Test the command lines of recipe-specific strategies."""

    def _source(self, build_context, name):
        path = build_context.workspace.source_dir(name)
        path.mkdir(parents=True)
        return path

    def test_zlib(self, mock_run, build_context):
        source = self._source(build_context, "zlib-1.3.1")

        ZlibStrategy(build_context).build("zlib-1.3.1", source)

        first = [str(a) for a in mock_run.call_args_list[0].args[0]]
        assert first == ["./configure", f"--prefix={build_context.staging}", "--static"]

    def test_bzip2_passes_tools(self, mock_run, build_context):
        source = self._source(build_context, "bzip2-1.0.8")

        Bzip2Strategy(build_context).build("bzip2-1.0.8", source)

        make = [str(a) for a in mock_run.call_args_list[0].args[0]]
        assert f"CC={build_context.toolchain.cc}" in make
        assert "libbz2.a" in make

    def test_openssl_target_and_path(self, mock_run, build_context):
        source = self._source(build_context, "openssl-3.5.4")

        OpenSSLStrategy(build_context).build("openssl-3.5.4", source)

        configure = mock_run.call_args_list[0]
        assert [str(a) for a in configure.args[0]][:3] == ["perl", "Configure", "android-arm64"]
        env = configure.kwargs["env"]
        assert env["PATH"].startswith(str(build_context.toolchain.bin_dir))
        assert env["ANDROID_NDK_ROOT"] == str(build_context.toolchain.ndk_root)

    def test_host_python_fingerprint_ignores_target(self, mock_run, build_context):
        fp = HostPythonStrategy(build_context).fingerprint("H1")

        assert fp.arch is None
        assert fp.uname

    def test_cross_python_requires_host(self, mock_run, build_context):
        source = self._source(build_context, "Python-3.13.9")

        with pytest.raises(HostToolchainError):
            CrossPythonStrategy(build_context).build("Python-3.13.9", source)

        mock_run.assert_not_called()

    def test_cross_python_configure(self, mock_run, build_context, tmp_path):
        host = _executable(tmp_path / "host" / "python3")
        context = dataclasses.replace(build_context, host_python=host)
        source = self._source(context, "Python-3.13.9")

        CrossPythonStrategy(context).build("Python-3.13.9", source)

        configure = [str(a) for a in mock_run.call_args_list[0].args[0]]
        assert "--host=aarch64-linux-android" in configure
        assert f"--with-build-python={host}" in configure
        assert f"--prefix={context.workspace.output}" in configure
        assert any(arg.startswith("CFLAGS=") and "-march=armv8-a" in arg for arg in configure)
