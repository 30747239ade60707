"""
CPython for Android.

Cross-compiles CPython and its native dependencies with the NDK clang
toolchain. The result is laid out for the Termux prefix
(``/data/data/com.termux/files/usr``) and packaged as
``python-<version>-<triple><api>.tar.gz``.

Dependencies are built in this order (later ones link against earlier
ones through the staging prefix)::

    zlib -> bzip2 -> libffi -> openssl -> xz -> ncurses -> readline -> gdbm -> sqlite

A host interpreter of the same major.minor version is required to drive
the cross build. One from PATH is used when available, otherwise it is
built from the same source archive.
"""

import dataclasses
import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader
from packaging.version import InvalidVersion, Version

from ndkforge.backends.autotools import AutotoolsStrategy
from ndkforge.backends.base import BuildContext, BuildStrategy, host_fingerprint
from ndkforge.core.exceptions import ConfigError, HostToolchainError
from ndkforge.core.filesystem import (
    atomic_write,
    find_executable,
    is_executable,
    reset_dir,
)
from ndkforge.core.archive import extract_source
from ndkforge.recipes.base import Component, Recipe, SourcePackage

logger = logging.getLogger(__name__)

TERMUX_PREFIX = "/data/data/com.termux/files/usr"
TEMPLATE_DIR = Path(__file__).parent / "templates"

DEFAULT_VERSIONS = {
    "zlib": "1.3.1",
    "libffi": "3.5.2",
    "openssl": "3.5.4",
    "xz": "5.8.1",
    "ncurses": "6.5",
    "readline": "8.3",
    "bzip2": "1.0.8",
    "gdbm": "1.26",
    "sqlite": "3.51.0",
    "sqlite_code": "3510000",
    "sqlite_year": "2025",
}

NCURSES_ARGS = (
    "--with-shared",
    "--enable-widec",
    "--with-termlib",
    f"--with-terminfo-dirs={TERMUX_PREFIX}/share/terminfo",
    "--without-tests",
    "--without-manpages",
    "--without-progs",
    "--without-debug",
)


# ============================================================================
# Bespoke Strategies
# ============================================================================


class ZlibStrategy(BuildStrategy):
    """zlib's hand-written configure does not understand ``--host``."""

    def build(self, component: str, source_dir: Path, extra_args: Sequence[str] = ()) -> None:
        source_dir = self.require_source(component, source_dir)
        logger.info(f"=== Building {component} ===")

        self.run(
            ["./configure", f"--prefix={self.context.staging}", "--static", *extra_args],
            cwd=source_dir,
            component=component,
            step="configure",
        )
        self.run(["make", f"-j{self.context.jobs}"], cwd=source_dir, component=component, step="make")
        self.run(["make", "install"], cwd=source_dir, component=component, step="install")

        logger.info(f"{component} built")


class Bzip2Strategy(BuildStrategy):
    """bzip2 ships a plain Makefile; tools are passed as make variables."""

    def build(self, component: str, source_dir: Path, extra_args: Sequence[str] = ()) -> None:
        source_dir = self.require_source(component, source_dir)
        toolchain = self.context.require_toolchain()
        staging = self.context.staging
        logger.info(f"=== Building {component} ===")

        self.run(
            [
                "make",
                f"-j{self.context.jobs}",
                f"CC={toolchain.cc}",
                f"CFLAGS={toolchain.cflags}",
                f"AR={toolchain.ar}",
                f"RANLIB={toolchain.ranlib}",
                f"PREFIX={staging}",
                "libbz2.a",
                "bzip2",
                "bzip2recover",
                *extra_args,
            ],
            cwd=source_dir,
            component=component,
            step="make",
        )
        self.run(
            ["make", f"PREFIX={staging}", "install"],
            cwd=source_dir,
            component=component,
            step="install",
        )

        logger.info(f"{component} built")


class OpenSSLStrategy(BuildStrategy):
    """OpenSSL's perl ``Configure`` selects the platform from the architecture."""

    def build(self, component: str, source_dir: Path, extra_args: Sequence[str] = ()) -> None:
        source_dir = self.require_source(component, source_dir)
        toolchain = self.context.require_toolchain()
        staging = self.context.staging
        target = toolchain.arch.openssl_target
        logger.info(f"=== Building {component} ===")

        base_env = self.environment()
        env = dict(
            base_env,
            PATH=f"{toolchain.bin_dir}:{base_env.get('PATH', '')}",
            ANDROID_NDK_ROOT=str(toolchain.ndk_root),
        )

        logger.info(f"Configuring {component} for {target}...")
        self.run(
            [
                "perl",
                "Configure",
                target,
                f"--prefix={staging}",
                f"--openssldir={staging}/ssl",
                "no-shared",
                *extra_args,
            ],
            cwd=source_dir,
            component=component,
            step="Configure",
            env=env,
        )
        self.run(
            ["make", f"CC={toolchain.cc}", f"-j{self.context.jobs}"],
            cwd=source_dir,
            component=component,
            step="make",
            env=env,
        )
        self.run(["make", "install_sw"], cwd=source_dir, component=component, step="install", env=env)

        logger.info(f"{component} built")


class HostPythonStrategy(BuildStrategy):
    """Native CPython build used as ``--with-build-python`` for the cross build."""

    def prefix(self) -> Path:
        return self.context.workspace.root / "host-python"

    def fingerprint(self, archive_hash: str):
        return host_fingerprint(archive_hash)

    def environment(self, **extra: str):
        env = dict(os.environ)
        env["LDFLAGS"] = f"-Wl,-rpath={self.prefix()}/lib"
        env.update(extra)
        return env

    def build(self, component: str, source_dir: Path, extra_args: Sequence[str] = ()) -> None:
        source_dir = self.require_source(component, source_dir)
        prefix = self.prefix()
        logger.info(f"=== Building {component} ===")

        self.run(
            [
                "./configure",
                f"--prefix={prefix}",
                "--enable-shared",
                "--enable-optimizations",
                *extra_args,
            ],
            cwd=source_dir,
            component=component,
            step="configure",
        )
        self.run(["make", f"-j{self.context.jobs}"], cwd=source_dir, component=component, step="make")
        self.run(["make", "install"], cwd=source_dir, component=component, step="install")

        if not is_executable(prefix / "bin" / "python3"):
            raise HostToolchainError(f"Host Python installation failed: {prefix}/bin/python3")


class CrossPythonStrategy(BuildStrategy):
    """Final CPython cross build into the output prefix."""

    def flags(self):
        """Return (CPPFLAGS, CFLAGS, LDFLAGS) for the product build."""
        toolchain = self.context.require_toolchain()
        staging = self.context.staging
        sysroot = toolchain.get("SYSROOT", str(toolchain.sysroot))

        cppflags = f"-I{staging}/include -I{staging}/include/ncursesw"
        cflags = " ".join(
            [
                f"--sysroot={sysroot}",
                "-fPIC",
                "-O3",
                *toolchain.arch.march_flags,
                "-fomit-frame-pointer",
                "-ffunction-sections",
                "-fdata-sections",
                "-fvisibility=hidden",
                "-g0",
            ]
        )
        ldflags = " ".join(
            [
                f"--sysroot={sysroot}",
                "-Wl,-Bstatic",
                "-ltinfow",
                "-Wl,-Bdynamic",
                f"-L{staging}/lib",
                f"-Wl,-rpath={TERMUX_PREFIX}/lib",
                "-Wl,-O1",
                "-Wl,--gc-sections",
                "-Wl,-z,relro",
                "-Wl,-z,now",
                "-Wl,-s",
                "-flto",
            ]
        )
        return cppflags, cflags, ldflags

    def build(self, component: str, source_dir: Path, extra_args: Sequence[str] = ()) -> None:
        source_dir = self.require_source(component, source_dir)
        toolchain = self.context.require_toolchain()
        host_python = self.context.host_python
        output = self.context.workspace.output

        if not is_executable(host_python):
            raise HostToolchainError(
                "Host Python is missing or not executable. It must be prepared first."
            )

        cppflags, cflags, ldflags = self.flags()
        env = self.environment(CPPFLAGS=cppflags, CFLAGS=cflags, LDFLAGS=ldflags)

        logger.info(f"Configuring Python for {toolchain.triple}{toolchain.api_level}...")
        self.run(
            [
                "./configure",
                toolchain.host_flag(),
                toolchain.build_flag(),
                f"--prefix={output}",
                f"--with-build-python={host_python}",
                "--enable-shared",
                "--with-ensurepip=install",
                "--disable-test-modules",
                f"--with-openssl={self.context.staging}",
                f"CC={toolchain.cc}",
                f"AR={toolchain.ar}",
                f"RANLIB={toolchain.ranlib}",
                f"STRIP={toolchain.strip}",
                f"HOSTPYTHON={host_python}",
                f"CPPFLAGS={cppflags}",
                f"CFLAGS={cflags}",
                f"LDFLAGS={ldflags}",
                *extra_args,
            ],
            cwd=source_dir,
            component=component,
            step="configure",
            env=env,
        )

        logger.info("Building Python...")
        self.run(
            ["make", f"HOSTPYTHON={host_python}", f"-j{self.context.jobs}"],
            cwd=source_dir,
            component=component,
            step="make",
            env=env,
        )

        logger.info("Installing Python...")
        self.run(["make", "install"], cwd=source_dir, component=component, step="install", env=env)


# ============================================================================
# Host Interpreter Discovery
# ============================================================================


def query_python_version(executable: Path) -> Optional[str]:
    """Return ``major.minor`` reported by ``executable``, or None if it cannot run."""
    try:
        result = subprocess.run(
            [str(executable), "-c", "import sys; print('%d.%d' % sys.version_info[:2])"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Could not query {executable}: {e}")
        return None

    if result.returncode != 0:
        return None
    return result.stdout.strip()


def find_system_python(major_minor: str, force_search: bool = False) -> Optional[Path]:
    """
    Find a PATH interpreter whose version matches ``major_minor``.

    The search runs when ``python<major.minor>`` exists or ``force_search``
    is set, trying ``python<major.minor>``, ``python3`` and ``python`` in
    that order; only the first one found is considered.
    """
    versioned = find_executable(f"python{major_minor}")
    if versioned is None and not force_search:
        return None

    candidate = versioned or find_executable("python3") or find_executable("python")
    if candidate is None:
        return None

    found = query_python_version(candidate)
    if found == major_minor:
        logger.info(f"Using system Python: {candidate} ({found})")
        return candidate

    logger.warning(
        f"System Python version ({found or 'unknown'}) doesn't match target ({major_minor})"
    )
    return None


# ============================================================================
# Recipe
# ============================================================================


class PythonRecipe(Recipe):
    """Cross-compile CPython for Android."""

    name = "python"
    description = "Cross-compile Python for Android"
    required_tools = ("make", "perl", "autoreconf", "libtoolize", "pkg-config", "cc")

    def __init__(self, config):
        super().__init__(config)
        try:
            parsed = Version(config.version)
        except InvalidVersion as e:
            raise ConfigError(f"Invalid Python version: {config.version}") from e
        self.major_minor = f"{parsed.major}.{parsed.minor}"
        self._jinja_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def version_of(self, component: str) -> str:
        return self.config.component_version(component, DEFAULT_VERSIONS[component])

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def python_source(self) -> SourcePackage:
        v = self.config.version
        return SourcePackage(
            "Python",
            v,
            f"https://www.python.org/ftp/python/{v}/Python-{v}.tar.xz",
            f"Python-{v}.tar.xz",
        )

    def sources(self) -> List[SourcePackage]:
        ver = self.version_of
        sqlite_code = ver("sqlite_code")
        return [
            self.python_source(),
            SourcePackage(
                "zlib", ver("zlib"),
                f"https://zlib.net/zlib-{ver('zlib')}.tar.xz",
                f"zlib-{ver('zlib')}.tar.xz",
            ),
            SourcePackage(
                "libffi", ver("libffi"),
                f"https://github.com/libffi/libffi/archive/refs/tags/v{ver('libffi')}.tar.gz",
                f"libffi-{ver('libffi')}.tar.gz",
            ),
            SourcePackage(
                "openssl", ver("openssl"),
                f"https://www.openssl.org/source/openssl-{ver('openssl')}.tar.gz",
                f"openssl-{ver('openssl')}.tar.gz",
            ),
            SourcePackage(
                "xz", ver("xz"),
                f"https://github.com/tukaani-project/xz/archive/refs/tags/v{ver('xz')}.tar.gz",
                f"xz-{ver('xz')}.tar.gz",
            ),
            SourcePackage(
                "ncurses", ver("ncurses"),
                f"https://ftp.gnu.org/pub/gnu/ncurses/ncurses-{ver('ncurses')}.tar.gz",
                f"ncurses-{ver('ncurses')}.tar.gz",
            ),
            SourcePackage(
                "readline", ver("readline"),
                f"https://ftp.gnu.org/gnu/readline/readline-{ver('readline')}.tar.gz",
                f"readline-{ver('readline')}.tar.gz",
            ),
            SourcePackage(
                "sqlite", ver("sqlite"),
                f"https://sqlite.org/{ver('sqlite_year')}/sqlite-src-{sqlite_code}.zip",
                f"sqlite-src-{sqlite_code}.zip",
            ),
            SourcePackage(
                "bzip2", ver("bzip2"),
                f"https://sourceware.org/pub/bzip2/bzip2-{ver('bzip2')}.tar.gz",
                f"bzip2-{ver('bzip2')}.tar.gz",
            ),
            SourcePackage(
                "gdbm", ver("gdbm"),
                f"https://ftp.gnu.org/gnu/gdbm/gdbm-{ver('gdbm')}.tar.gz",
                f"gdbm-{ver('gdbm')}.tar.gz",
            ),
        ]

    def components(self) -> List[Component]:
        by_name = {source.name: source for source in self.sources()}

        def component(name, strategy, args=(), dirname=None):
            source = by_name[name]
            return Component(f"{name}-{source.version}", source, strategy, tuple(args), dirname)

        return [
            component("zlib", ZlibStrategy),
            component("bzip2", Bzip2Strategy),
            component("libffi", AutotoolsStrategy, ["--disable-shared"]),
            component("openssl", OpenSSLStrategy),
            component("xz", AutotoolsStrategy, ["--disable-shared", "SKIP_WERROR_CHECK=yes"]),
            component("ncurses", AutotoolsStrategy, NCURSES_ARGS),
            component("readline", AutotoolsStrategy, ["--disable-shared"]),
            component("gdbm", AutotoolsStrategy, ["--enable-libgdbm-compat"]),
            component(
                "sqlite",
                AutotoolsStrategy,
                ["--enable-all"],
                dirname=f"sqlite-src-{self.version_of('sqlite_code')}",
            ),
        ]

    # ------------------------------------------------------------------
    # Host interpreter
    # ------------------------------------------------------------------

    def prepare_host(self, context: BuildContext, driver) -> BuildContext:
        """
        Locate or build the host interpreter.

        Raises:
            HostToolchainError: If no usable interpreter exists after building
        """
        logger.info("=== Host Python ===")

        host_python = find_system_python(
            self.major_minor, force_search=self.config.skip_host_build
        )
        if host_python is not None:
            return dataclasses.replace(context, host_python=host_python)

        strategy = HostPythonStrategy(context)
        built = strategy.prefix() / "bin" / "python3"
        if is_executable(built):
            logger.info(f"Using previously built host Python: {built}")
            return dataclasses.replace(context, host_python=built)

        source = self.python_source()
        component = f"python-host-{self.config.version}"
        if context.markers.is_built(component):
            logger.warning(f"{component} is marked built but {built} is missing; rebuilding")
            context.markers.clear_marker(component)

        driver.build_component(
            component,
            self.download_path(context, source),
            context.workspace.source_dir(f"Python-{self.config.version}-host"),
            strategy,
        )

        if not is_executable(built):
            raise HostToolchainError(f"Host Python not available: {built}")

        logger.info(f"Host Python ready: {built}")
        return dataclasses.replace(context, host_python=built)

    # ------------------------------------------------------------------
    # Product
    # ------------------------------------------------------------------

    def build_product(self, context: BuildContext) -> None:
        version = self.config.version
        source_dir = context.workspace.source_dir(f"Python-{version}")
        logger.info(f"=== Building cross-compiled Python {version} ===")

        reset_dir(source_dir)
        reset_dir(context.workspace.output)
        context.workspace.output.mkdir(parents=True, exist_ok=True)
        extract_source(
            self.download_path(context, self.python_source()), source_dir, f"Python {version}"
        )

        CrossPythonStrategy(context).build(f"Python-{version}", source_dir)
        logger.info("Cross-compiled Python built")

    def render_envpatch(self, triple: str) -> str:
        template = self._jinja_env.get_template("python-envpatch.sh.j2")
        return template.render(version=self.config.version, triple=triple)

    def post_build(self, context: BuildContext) -> None:
        """Write the shell snippet that sets up compilers for on-device builds."""
        logger.info("=== Applying patches ===")
        triple = context.require_toolchain().triple
        path = (
            context.workspace.output
            / "etc"
            / "profile.d"
            / f"python{self.config.version}-envpatch.sh"
        )
        try:
            atomic_write(path, self.render_envpatch(triple))
        except OSError as e:
            logger.warning(f"Could not write environment patch {path}: {e}")
            return
        logger.info(f"Environment patch written: {path}")

    def archive_name(self) -> str:
        return f"python-{self.config.version}-{self.config.target_name}.tar.gz"
