"""
Pytest configuration and shared fixtures for ndkforge tests.
"""

import pytest
from pathlib import Path

from ndkforge.backends.base import BuildContext
from ndkforge.config.settings import BuildConfiguration
from ndkforge.core.markers import MarkerCache
from ndkforge.core.workspace import Workspace
from ndkforge.cross.targets import Architecture
from ndkforge.cross.toolchain import ToolchainResolver
from tests.fixtures.ndk import make_fake_ndk


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that need real build tools",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def fake_ndk(tmp_path: Path) -> Path:
    """Minimal NDK layout with a linux-x86_64 prebuilt toolchain."""
    return make_fake_ndk(tmp_path / "android-ndk")


@pytest.fixture
def make_config(tmp_path: Path, fake_ndk: Path):
    """Factory for BuildConfiguration with test-friendly defaults."""

    def factory(**overrides) -> BuildConfiguration:
        values = dict(
            recipe="python",
            version="3.13.9",
            arch=Architecture.AARCH64,
            api_level=34,
            host_tag="linux-x86_64",
            jobs=2,
            workspace_root=tmp_path / "workspace",
            ndk_root=fake_ndk,
        )
        values.update(overrides)
        return BuildConfiguration(**values)

    return factory


@pytest.fixture
def config(make_config) -> BuildConfiguration:
    return make_config()


@pytest.fixture
def workspace(config) -> Workspace:
    return Workspace.for_target(
        config.workspace_root, config.recipe, config.target_triple, config.api_level
    ).ensure()


@pytest.fixture
def toolchain(config, workspace):
    """Descriptor resolved against the fake NDK with no ambient flags."""
    return ToolchainResolver(config, workspace, ambient_env={}).resolve()


@pytest.fixture
def build_context(config, workspace, toolchain) -> BuildContext:
    return BuildContext(
        config=config,
        workspace=workspace,
        markers=MarkerCache(workspace.markers),
        toolchain=toolchain,
    )
