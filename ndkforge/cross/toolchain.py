"""
Toolchain resolution for Android NDK cross builds.

The :class:`ToolchainResolver` moves through a single transition::

    UNRESOLVED --ensure_ndk()--> NDK_LOCATED --setup()--> CONFIGURED

and produces an immutable :class:`ToolchainDescriptor`. The descriptor
carries every tool path and flag string the build strategies need; it is
passed explicitly to each component build rather than exported into the
process environment.

Variable precedence follows :mod:`ndkforge.config.layers`: values already
set by the caller (``CFLAGS``, ``CXXFLAGS``, ``CPPFLAGS``, ``LDFLAGS``) and
explicit ``env`` overrides win over derived values.

Example:
    >>> resolver = ToolchainResolver(config, workspace)
    >>> descriptor = resolver.resolve()
    >>> descriptor.cc
    PosixPath('.../bin/aarch64-linux-android34-clang')
    >>> descriptor.host_flag()
    '--host=aarch64-linux-android'
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional

from ndkforge.config.layers import (
    DefaultLayer,
    DerivedLayer,
    LayeredEnvironment,
    OverrideLayer,
)
from ndkforge.core.exceptions import ToolchainNotFoundError, ToolchainStateError
from ndkforge.core.platform import native_build_triple
from ndkforge.cross.ndk import ensure_ndk
from ndkforge.cross.targets import Architecture

logger = logging.getLogger(__name__)

# Variables the caller may preset to override the derived flags.
AMBIENT_FLAG_VARIABLES = ("CFLAGS", "CXXFLAGS", "CPPFLAGS", "LDFLAGS")

# Variable name -> tool file name ('{prefix}' is '<triple><api>')
TOOL_NAMES = {
    "CC": "{prefix}-clang",
    "CXX": "{prefix}-clang++",
    "AR": "llvm-ar",
    "AS": "llvm-as",
    "LD": "ld",
    "RANLIB": "llvm-ranlib",
    "STRIP": "llvm-strip",
    "NM": "llvm-nm",
    "OBJDUMP": "llvm-objdump",
}


class ResolverState(Enum):
    UNRESOLVED = "unresolved"
    NDK_LOCATED = "ndk-located"
    CONFIGURED = "configured"


# ============================================================================
# Toolchain Descriptor
# ============================================================================


@dataclass(frozen=True)
class ToolchainDescriptor:
    """
    Resolved cross toolchain for one (API level, architecture).

    Attributes:
        arch: Target architecture
        api_level: Android API level
        ndk_root: NDK installation root
        toolchain_root: ``<ndk>/toolchains/llvm/prebuilt/<host tag>``
        sysroot: Target sysroot
        staging: Shared install prefix for dependencies
        variables: Resolved environment contract (CC, CFLAGS, SYSROOT, ...)
        origins: Variable name -> layer that produced it
    """

    arch: Architecture
    api_level: int
    ndk_root: Path
    toolchain_root: Path
    sysroot: Path
    staging: Path
    variables: Mapping[str, str] = field(default_factory=dict)
    origins: Mapping[str, str] = field(default_factory=dict)

    @property
    def triple(self) -> str:
        return self.arch.triple

    @property
    def bin_dir(self) -> Path:
        return self.toolchain_root / "bin"

    def get(self, name: str, default: str = "") -> str:
        return self.variables.get(name, default)

    @property
    def cc(self) -> str:
        return self.get("CC")

    @property
    def cxx(self) -> str:
        return self.get("CXX")

    @property
    def ar(self) -> str:
        return self.get("AR")

    @property
    def ranlib(self) -> str:
        return self.get("RANLIB")

    @property
    def strip(self) -> str:
        return self.get("STRIP")

    @property
    def cflags(self) -> str:
        return self.get("CFLAGS")

    @property
    def cxxflags(self) -> str:
        return self.get("CXXFLAGS")

    @property
    def cppflags(self) -> str:
        return self.get("CPPFLAGS")

    @property
    def ldflags(self) -> str:
        return self.get("LDFLAGS")

    def environment(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        Environment for a build subprocess.

        Args:
            base: Starting environment (defaults to the current process environment)

        Returns:
            A new dict: ``base`` updated with the toolchain variables
        """
        env = dict(os.environ if base is None else base)
        env.update(self.variables)
        return env

    def host_flag(self) -> str:
        """Autotools ``--host`` argument for the target."""
        return f"--host={self.triple}"

    def build_flag(self) -> str:
        """Autotools ``--build`` argument for the build machine."""
        return f"--build={native_build_triple()}"


# ============================================================================
# Toolchain Resolver
# ============================================================================


class ToolchainResolver:
    """
    Locates the NDK and derives the toolchain descriptor.

    Not reentrant: ``setup`` requires ``ensure_ndk`` first, and once
    configured the resolver only hands back the same descriptor.

    Attributes:
        config: Build configuration
        workspace: Target workspace layout
        state: Current resolver state
    """

    def __init__(self, config, workspace, ambient_env: Optional[Mapping[str, str]] = None):
        self.config = config
        self.workspace = workspace
        self.ambient_env = dict(os.environ if ambient_env is None else ambient_env)
        self.state = ResolverState.UNRESOLVED
        self.ndk_root: Optional[Path] = None
        self._descriptor: Optional[ToolchainDescriptor] = None

    def ensure_ndk(self) -> Path:
        """
        Make sure the NDK is available locally.

        Raises:
            NdkNotFoundError: If the NDK cannot be found or installed
        """
        if self.ndk_root is not None:
            return self.ndk_root

        self.ndk_root = ensure_ndk(
            workspace_root=self.config.workspace_root,
            version=self.config.ndk_version,
            downloads_dir=self.workspace.downloads,
            external_root=self.config.ndk_root,
            url=self.config.ndk_url,
        )
        self.state = ResolverState.NDK_LOCATED
        return self.ndk_root

    def setup(self, api_level: int, arch) -> ToolchainDescriptor:
        """
        Derive the toolchain descriptor for ``(api_level, arch)``.

        Args:
            api_level: Android API level
            arch: Architecture or architecture name

        Returns:
            ToolchainDescriptor

        Raises:
            ToolchainStateError: If called before ensure_ndk, or again with
                different arguments
            UnknownArchitectureError: If ``arch`` is unsupported
            ToolchainNotFoundError: If the prebuilt toolchain for this host is absent
        """
        arch = Architecture.parse(arch)

        if self.state is ResolverState.UNRESOLVED:
            raise ToolchainStateError("ensure_ndk() must complete before setup()")

        if self._descriptor is not None:
            if (self._descriptor.api_level, self._descriptor.arch) == (api_level, arch):
                return self._descriptor
            raise ToolchainStateError(
                f"Toolchain already configured for {self._descriptor.arch} "
                f"API {self._descriptor.api_level}"
            )

        toolchain_root = (
            self.ndk_root / "toolchains" / "llvm" / "prebuilt" / self.config.host_tag
        )
        if not toolchain_root.is_dir():
            raise ToolchainNotFoundError(f"Toolchain not found: {toolchain_root}")

        sysroot = toolchain_root / "sysroot"
        staging = self.workspace.staging

        context = LayeredEnvironment(
            [
                DefaultLayer({"CPPFLAGS": ""}),
                DerivedLayer(
                    self._derived_variables(toolchain_root, sysroot, staging, arch, api_level),
                    name="ndk",
                ),
                OverrideLayer(
                    {
                        name: self.ambient_env.get(name) or None
                        for name in AMBIENT_FLAG_VARIABLES
                    },
                    name="ambient",
                ),
                OverrideLayer(dict(self.config.env_overrides), name="config"),
            ]
        ).resolve()

        self._descriptor = ToolchainDescriptor(
            arch=arch,
            api_level=api_level,
            ndk_root=self.ndk_root,
            toolchain_root=toolchain_root,
            sysroot=sysroot,
            staging=staging,
            variables=dict(context.variables),
            origins=dict(context.origins),
        )
        self.state = ResolverState.CONFIGURED

        logger.info("Toolchain configured")
        logger.debug(f"Target: {arch.triple}{api_level}")
        logger.debug(f"CC: {self._descriptor.cc}")
        logger.debug(f"Staging: {staging}")
        return self._descriptor

    def resolve(self) -> ToolchainDescriptor:
        """``ensure_ndk`` then ``setup`` with the configured API level and arch."""
        self.ensure_ndk()
        return self.setup(self.config.api_level, self.config.arch)

    @property
    def descriptor(self) -> ToolchainDescriptor:
        if self._descriptor is None:
            raise ToolchainStateError("Toolchain has not been configured")
        return self._descriptor

    def _derived_variables(
        self, toolchain_root: Path, sysroot: Path, staging: Path, arch, api_level: int
    ) -> Dict[str, str]:
        bin_dir = toolchain_root / "bin"
        prefix = f"{arch.triple}{api_level}"

        variables = {
            name: str(bin_dir / template.format(prefix=prefix))
            for name, template in TOOL_NAMES.items()
        }

        compile_flags = f"--sysroot={sysroot} -fPIC"
        pkg_config_libdir = f"{staging}/lib/pkgconfig:{staging}/share/pkgconfig"
        existing_pkg_path = self.ambient_env.get("PKG_CONFIG_PATH", "")

        variables.update(
            {
                "SYSROOT": str(sysroot),
                "CFLAGS": compile_flags,
                "CXXFLAGS": compile_flags,
                "CPPFLAGS": f"-I{staging}/include",
                "LDFLAGS": f"--sysroot={sysroot} -L{staging}/lib",
                "PKG_CONFIG_LIBDIR": pkg_config_libdir,
                "PKG_CONFIG_PATH": (
                    f"{pkg_config_libdir}:{existing_pkg_path}"
                    if existing_pkg_path
                    else pkg_config_libdir
                ),
            }
        )
        return variables
