"""
Android cross-compilation targets.

The supported architectures are a closed set. Every member maps to exactly
one target triple, and any other name is rejected; there is no fallback
and no alias table.
"""

from enum import Enum
from typing import Tuple

from ndkforge.core.exceptions import UnknownArchitectureError


class Architecture(Enum):
    """Target CPU architecture."""

    AARCH64 = "aarch64"
    ARMV7A = "armv7a"
    X86_64 = "x86_64"
    I686 = "i686"

    @classmethod
    def names(cls) -> Tuple[str, ...]:
        return tuple(member.value for member in cls)

    @classmethod
    def parse(cls, name) -> "Architecture":
        """
        Convert a user-supplied name to an Architecture.

        Args:
            name: Architecture name or an Architecture

        Returns:
            The matching Architecture

        Raises:
            UnknownArchitectureError: If ``name`` is not one of the supported names

        Example:
            >>> Architecture.parse('aarch64')
            <Architecture.AARCH64: 'aarch64'>
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownArchitectureError(str(name), cls.names()) from None

    @property
    def triple(self) -> str:
        """Clang target triple (without the API level suffix)."""
        return _TRIPLES[self]

    @property
    def android_abi(self) -> str:
        return _ABIS[self]

    @property
    def openssl_target(self) -> str:
        """OpenSSL ``Configure`` platform name."""
        return _OPENSSL_TARGETS[self]

    @property
    def march_flags(self) -> Tuple[str, ...]:
        return _MARCH_FLAGS[self]

    def __str__(self) -> str:
        return self.value


_TRIPLES = {
    Architecture.AARCH64: "aarch64-linux-android",
    Architecture.ARMV7A: "armv7a-linux-androideabi",
    Architecture.X86_64: "x86_64-linux-android",
    Architecture.I686: "i686-linux-android",
}

_ABIS = {
    Architecture.AARCH64: "arm64-v8a",
    Architecture.ARMV7A: "armeabi-v7a",
    Architecture.X86_64: "x86_64",
    Architecture.I686: "x86",
}

_OPENSSL_TARGETS = {
    Architecture.AARCH64: "android-arm64",
    Architecture.ARMV7A: "android-arm",
    Architecture.X86_64: "android-x86_64",
    Architecture.I686: "android-x86",
}

_MARCH_FLAGS = {
    Architecture.AARCH64: ("-march=armv8-a",),
    Architecture.ARMV7A: ("-march=armv7-a", "-mthumb"),
    Architecture.X86_64: ("-march=x86-64",),
    Architecture.I686: ("-march=i686",),
}
