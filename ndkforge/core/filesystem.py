"""
File system utilities for ndkforge.

This module provides the low-level file operations the build engine is
built on:
- Content hashing (stable SHA-256 digests used in build fingerprints)
- Directory lifecycle (idempotent reset, ensure)
- Archive extraction (tar.gz, tar.xz, tar.bz2, zip) with traversal checks
- Archive creation for distribution tarballs
- Atomic writes (temp file + rename)

The digest algorithm is fixed for a deployment: build markers compare
digests as opaque strings, so switching algorithms between runs silently
invalidates every marker.
"""

import hashlib
import logging
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

from ndkforge.core.exceptions import FatalError, NdkForgeError

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "sha256"

# Suffix -> handler key. Order matters: longer suffixes first.
ARCHIVE_FORMATS = (
    (".tar.gz", "gztar"),
    (".tgz", "gztar"),
    (".tar.xz", "xztar"),
    (".txz", "xztar"),
    (".tar.bz2", "bztar"),
    (".tbz2", "bztar"),
    (".zip", "zip"),
)

_TAR_READ_MODES = {"gztar": "r:gz", "xztar": "r:xz", "bztar": "r:bz2"}
_TAR_WRITE_MODES = {"gztar": "w:gz", "xztar": "w:xz", "bztar": "w:bz2"}


# ============================================================================
# Exceptions
# ============================================================================


class FilesystemError(NdkForgeError):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive (corrupt data, I/O failure)."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError, FatalError):
    """Archive format is not recognized from the file name."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def find_executable(name: str, search_paths: Optional[list] = None) -> Optional[Path]:
    """
    Find an executable in the system PATH or provided search paths.

    Args:
        name: Executable name (e.g., 'make', 'perl')
        search_paths: Optional list of directories to search

    Returns:
        Path to executable if found, None otherwise

    Example:
        >>> find_executable('make')
        PosixPath('/usr/bin/make')
    """
    if search_paths is None:
        path_env = os.environ.get("PATH", "")
        search_paths = [Path(p) for p in path_env.split(os.pathsep) if p]

    for directory in search_paths:
        exe_path = Path(directory) / name
        if exe_path.is_file() and os.access(exe_path, os.X_OK):
            return exe_path

    return None


def is_executable(path: Union[str, Path, None]) -> bool:
    """Return True if ``path`` names an existing executable file."""
    if not path:
        return False
    path = Path(path)
    return path.is_file() and os.access(path, os.X_OK)


# ============================================================================
# Hashing
# ============================================================================


def compute_file_hash(file_path: Union[str, Path], chunk_size: int = 65536) -> str:
    """
    Compute the content digest of a file.

    The same bytes always produce the same digest, independent of file
    name, timestamps or permissions.

    Args:
        file_path: Path to file
        chunk_size: Number of bytes to read at once

    Returns:
        Hex digest of the file contents

    Raises:
        FileNotFoundError: If the file does not exist

    Example:
        >>> compute_file_hash('downloads/zlib-1.3.1.tar.xz')
        '38ef96b8...'
    """
    file_path = Path(file_path)

    if not file_path.is_file():
        raise FileNotFoundError(f"File not found for checksum: {file_path}")

    hasher = hashlib.new(HASH_ALGORITHM)
    with open(file_path, "rb") as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)

    return hasher.hexdigest()


# ============================================================================
# Directory Lifecycle
# ============================================================================


def reset_dir(path: Union[str, Path]) -> None:
    """
    Remove a directory tree if it exists.

    Idempotent: a non-existent path is a no-op. Symlinks and plain files
    at ``path`` are unlinked rather than followed.

    Args:
        path: Directory to remove

    Raises:
        FilesystemError: If removal fails
    """
    path = Path(path)

    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            logger.debug(f"Cleaning directory: {path}")
            shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove '{path}': {e}") from e


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists (idempotent).

    Args:
        path: Directory path

    Returns:
        The directory path
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ============================================================================
# Atomic Writes
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The temp file is created in the destination directory so the rename
    never crosses file systems. Readers observe either the previous file
    (or no file) or the complete new content, never a partial write. If
    anything fails, the temp file is removed and the destination is left
    untouched.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        os.replace(temp_path, file_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


# ============================================================================
# Archive Extraction
# ============================================================================


def detect_archive_format(archive_path: Union[str, Path]) -> str:
    """
    Determine the archive format from the file name suffix.

    Args:
        archive_path: Archive path or file name

    Returns:
        One of 'gztar', 'xztar', 'bztar', 'zip'

    Raises:
        UnsupportedArchiveFormat: If the suffix is not recognized
    """
    name = Path(archive_path).name.lower()
    for suffix, fmt in ARCHIVE_FORMATS:
        if name.endswith(suffix):
            return fmt

    supported = ", ".join(suffix for suffix, _ in ARCHIVE_FORMATS)
    raise UnsupportedArchiveFormat(
        f"Unknown archive format: {Path(archive_path).name} (supported: {supported})"
    )


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()
    if not member_path.is_relative_to(destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "Extraction has been blocked."
        )


def extract_archive(archive_path: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Extract an archive into ``destination`` exactly as stored.

    No layout normalization happens here; see
    :func:`ndkforge.core.archive.extract_source` for that.

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to (created if missing)

    Raises:
        FileNotFoundError: If the archive does not exist
        UnsupportedArchiveFormat: If archive format is not recognized
        InsecureArchiveError: If archive contains malicious paths
        ArchiveExtractionError: If the archive is corrupt or unreadable
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.is_file():
        raise FileNotFoundError(f"Archive not found: {archive_path}")

    fmt = detect_archive_format(archive_path)
    destination.mkdir(parents=True, exist_ok=True)

    try:
        if fmt == "zip":
            _extract_zip(archive_path, destination)
        else:
            _extract_tar(archive_path, destination, _TAR_READ_MODES[fmt])
    except ArchiveExtractionError:
        raise
    except (OSError, EOFError, tarfile.TarError, zipfile.BadZipFile) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e
    except Exception as e:
        # lzma/zlib raise their own error types on corrupt payloads
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def _extract_zip(archive_path: Path, destination: Path) -> None:
    """Extract a ZIP archive, restoring stored POSIX permissions and symlinks."""
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()

        for member in members:
            _validate_archive_path(member.filename, destination)

        for member in members:
            mode = member.external_attr >> 16
            if stat.S_ISLNK(mode):
                _extract_zip_symlink(zf, member, destination)
                continue

            extracted = Path(zf.extract(member, destination))
            mode &= 0o777
            if mode and not member.is_dir():
                os.chmod(extracted, mode)


def _extract_zip_symlink(zf: zipfile.ZipFile, member: zipfile.ZipInfo, destination: Path) -> None:
    """
    Recreate a symlink entry; its stored content is the link target.

    Raises:
        InsecureArchiveError: If the link points outside ``destination``
    """
    target = zf.read(member).decode("utf-8")
    link_path = destination / member.filename.rstrip("/")

    resolved = (link_path.parent / target).resolve()
    if not resolved.is_relative_to(destination.resolve()):
        raise InsecureArchiveError(
            f"Archive symlink '{member.filename}' -> '{target}' points outside "
            "the destination. Extraction has been blocked."
        )

    link_path.parent.mkdir(parents=True, exist_ok=True)
    if link_path.is_symlink() or link_path.exists():
        link_path.unlink()
    os.symlink(target, link_path)


def _extract_tar(archive_path: Path, destination: Path, mode: str) -> None:
    """Extract a tar archive with the given compression mode."""
    with tarfile.open(archive_path, mode) as tar:
        for member in tar.getmembers():
            _validate_archive_path(member.name, destination)

        tar.extractall(destination, filter="data")


# ============================================================================
# Archive Creation
# ============================================================================


def create_archive(archive_path: Union[str, Path], source_dir: Union[str, Path]) -> Path:
    """
    Pack the contents of ``source_dir`` into a single archive.

    Entries are stored relative to ``source_dir`` (the directory itself is
    not a member). The archive is written to a temp file next to
    ``archive_path`` and renamed over any prior archive of the same name.

    Args:
        archive_path: Destination archive; format is chosen by suffix
        source_dir: Directory whose contents are packed

    Returns:
        Path to the created archive

    Raises:
        FilesystemError: If ``source_dir`` is not a directory
        UnsupportedArchiveFormat: If the suffix is not recognized

    Example:
        >>> create_archive('dist/python-3.13.9-aarch64-linux-android34.tar.gz', 'output')
    """
    archive_path = Path(archive_path)
    source_dir = Path(source_dir)

    if not source_dir.is_dir():
        raise FilesystemError(f"Archive source is not a directory: {source_dir}")

    fmt = detect_archive_format(archive_path)
    archive_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=archive_path.parent, prefix=f".{archive_path.name}.", suffix=".tmp"
    )
    os.close(temp_fd)
    temp_path = Path(temp_path_str)

    entries = sorted(source_dir.iterdir(), key=lambda p: p.name)

    try:
        if fmt == "zip":
            with zipfile.ZipFile(temp_path, "w", zipfile.ZIP_DEFLATED) as zf:
                for entry in entries:
                    zf.write(entry, entry.name)
                    if entry.is_dir() and not entry.is_symlink():
                        for item in sorted(entry.rglob("*")):
                            zf.write(item, item.relative_to(source_dir).as_posix())
        else:
            with tarfile.open(temp_path, _TAR_WRITE_MODES[fmt]) as tar:
                for entry in entries:
                    tar.add(entry, arcname=entry.name)

        os.replace(temp_path, archive_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Archive created: {archive_path}")
    return archive_path


__all__ = [
    "HASH_ALGORITHM",
    "ARCHIVE_FORMATS",
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "find_executable",
    "is_executable",
    "compute_file_hash",
    "reset_dir",
    "ensure_directory",
    "atomic_write",
    "detect_archive_format",
    "extract_archive",
    "create_archive",
]
