"""
Host platform detection.

Provides the NDK prebuilt host tag (``linux-x86_64``, ``darwin-x86_64``)
and the native GNU triple passed to autotools as ``--build``.
"""

import functools
import platform
from dataclasses import dataclass


# NDK ships x86_64 host binaries only; Apple Silicon runs them via Rosetta.
_NDK_HOST_TAGS = {
    "linux": "linux-x86_64",
    "darwin": "darwin-x86_64",
}

_MACHINE_ALIASES = {
    "amd64": "x86_64",
    "arm64": "aarch64",
}


@dataclass(frozen=True)
class HostPlatform:
    """
    Build host information.

    Attributes:
        system: Lower-case OS name ('linux', 'darwin')
        machine: Normalized CPU name ('x86_64', 'aarch64')
    """

    system: str
    machine: str

    @property
    def ndk_host_tag(self) -> str:
        """Directory name under ``toolchains/llvm/prebuilt`` for this host."""
        return _NDK_HOST_TAGS.get(self.system, f"{self.system}-x86_64")

    @property
    def build_triple(self) -> str:
        """
        GNU triple of the build machine.

        Example:
            >>> HostPlatform('linux', 'x86_64').build_triple
            'x86_64-linux-gnu'
        """
        if self.system == "darwin":
            return f"{self.machine}-apple-darwin"
        return f"{self.machine}-{self.system}-gnu"


@functools.lru_cache(maxsize=1)
def detect_host() -> HostPlatform:
    """
    Detect the current build host.

    This function is cached - it only runs detection once per process.
    """
    system = platform.system().lower()
    machine = platform.machine().lower()
    return HostPlatform(system=system, machine=_MACHINE_ALIASES.get(machine, machine))


def default_host_tag() -> str:
    return detect_host().ndk_host_tag


def native_build_triple() -> str:
    return detect_host().build_triple
