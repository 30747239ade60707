"""
Centralized exception hierarchy for ndkforge.

Two severities exist. ``FatalError`` subclasses describe an unrecoverable
environment problem: the run stops immediately with a nonzero exit and no
retry is attempted. Every other ``NdkForgeError`` is a recoverable failure
that propagates to the caller, halts the pipeline at that point, and leaves
disk state such that a rerun skips everything already built.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class NdkForgeError(Exception):
    """Base exception for all ndkforge errors."""

    pass


class FatalError(NdkForgeError):
    """Unrecoverable environment problem; the whole run must stop."""

    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigError(NdkForgeError):
    """Raised when configuration cannot be loaded or is invalid."""

    pass


class UnknownArchitectureError(ConfigError, FatalError):
    """Raised when a target architecture outside the supported set is requested."""

    def __init__(self, arch: str, supported: tuple = ()):
        self.arch = arch
        self.supported = supported
        msg = f"Unknown architecture: {arch}"
        if supported:
            msg += f" (supported: {', '.join(supported)})"
        super().__init__(msg)


# ============================================================================
# Host Environment Exceptions
# ============================================================================


class HostDependencyError(FatalError):
    """Raised when required host tools are missing."""

    def __init__(self, missing: list):
        self.missing = list(missing)
        super().__init__(f"Missing host tools: {', '.join(self.missing)}")


class HostToolchainError(FatalError):
    """Raised when the host-side helper toolchain is missing or unusable."""

    pass


# ============================================================================
# Toolchain Exceptions
# ============================================================================


class ToolchainError(NdkForgeError):
    """Base exception for toolchain-related errors."""

    pass


class NdkNotFoundError(ToolchainError, FatalError):
    """Raised when the Android NDK cannot be located or installed."""

    pass


class ToolchainNotFoundError(ToolchainError, FatalError):
    """Raised when the prebuilt toolchain directory for this host is absent."""

    pass


class ToolchainStateError(ToolchainError):
    """Raised when the resolver is used out of order."""

    pass


# ============================================================================
# Build Exceptions
# ============================================================================


class BuildError(NdkForgeError):
    """Base exception for component build failures."""

    pass


class SourceDirectoryError(BuildError):
    """Raised when a component's source directory is missing."""

    pass


class BootstrapError(BuildError):
    """Raised when no configure script exists and none could be generated."""

    pass


class CommandError(BuildError):
    """Raised when an external build command fails."""

    def __init__(self, command: list, returncode: int, description: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.description = description
        what = description or "Command"
        super().__init__(
            f"{what} failed with exit code {returncode}\n"
            f"Command: {' '.join(str(c) for c in self.command)}"
        )
