"""
ndkforge - cross-compile native software for Android with the NDK.

The package is organised leaves first:

- ``core``: hashing, archives, downloads, build markers, locking, workspace
- ``config``: build configuration and layered environment resolution
- ``cross``: target architectures, NDK location and toolchain resolution
- ``backends``: generic build strategies (autotools, CMake)
- ``build``: the component build driver
- ``pipeline``: the end-to-end orchestrator
- ``recipes``: concrete products (e.g. CPython for Android)
- ``cli``: command-line entry point
"""
