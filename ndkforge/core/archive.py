"""
Source archive service: extraction into a normalized source root.

Upstream archives inconsistently wrap their payload in a version-named
directory (``zlib-1.3.1/...``) or not at all. ``extract_source`` hides
that difference: after it returns, ``dest_dir`` is always the logical
source root.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from ndkforge.core.download import fetch, filename_from_url
from ndkforge.core.filesystem import extract_archive

logger = logging.getLogger(__name__)


def _normalize_root_directory(extract_dir: Path) -> Path:
    """Return the single top-level directory if that is all there is."""
    items = list(extract_dir.iterdir())

    if len(items) == 1 and items[0].is_dir() and not items[0].is_symlink():
        return items[0]

    return extract_dir


def extract_source(
    archive_path: Union[str, Path],
    dest_dir: Union[str, Path],
    label: Optional[str] = None,
) -> Path:
    """
    Extract an archive so that ``dest_dir`` becomes its source root.

    If ``dest_dir`` already exists it is assumed to hold a previous
    extraction and is returned untouched; callers that need a fresh tree
    must reset it first. Otherwise the archive is unpacked into a private
    temporary directory next to ``dest_dir``. When that directory holds
    exactly one entry and the entry is a directory, the entry is moved to
    ``dest_dir``; otherwise the temporary directory itself is.

    Args:
        archive_path: Archive to extract
        dest_dir: Final source root
        label: Name used in log messages (defaults to the dest dir name)

    Returns:
        ``dest_dir``

    Raises:
        FileNotFoundError: If the archive does not exist
        UnsupportedArchiveFormat: If the suffix is not recognized
        ArchiveExtractionError: If extraction fails

    Example:
        >>> extract_source('downloads/zlib-1.3.1.tar.xz', 'src/zlib', 'zlib')
        PosixPath('src/zlib')
    """
    archive_path = Path(archive_path)
    dest_dir = Path(dest_dir)
    label = label or dest_dir.name

    if not archive_path.is_file():
        raise FileNotFoundError(f"Archive not found: {archive_path}")

    if dest_dir.exists():
        logger.debug(f"{label}: already extracted at {dest_dir}")
        return dest_dir

    dest_dir.parent.mkdir(parents=True, exist_ok=True)
    temp_dir = Path(
        tempfile.mkdtemp(dir=dest_dir.parent, prefix=f".extract-{dest_dir.name}-")
    )

    logger.info(f"Extracting {label} from {archive_path.name}")

    try:
        extract_archive(archive_path, temp_dir)
        root = _normalize_root_directory(temp_dir)
        root.rename(dest_dir)
    except BaseException:
        shutil.rmtree(temp_dir, ignore_errors=True)
        raise

    if root != temp_dir:
        shutil.rmtree(temp_dir, ignore_errors=True)

    return dest_dir


def fetch_and_extract(
    url: str,
    downloads_dir: Union[str, Path],
    dest_dir: Union[str, Path],
    label: Optional[str] = None,
    expected_sha256: Optional[str] = None,
) -> Path:
    """
    Download ``url`` into the download cache and extract it to ``dest_dir``.

    The cached file is ``<downloads_dir>/<basename of the URL path>``.

    Returns:
        ``dest_dir``
    """
    archive_path = Path(downloads_dir) / filename_from_url(url)
    fetch(url, archive_path, expected_sha256=expected_sha256)
    return extract_source(archive_path, dest_dir, label)
