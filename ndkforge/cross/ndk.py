"""
Android NDK location and installation.

Lookup order:
1. An externally configured NDK root (``ANDROID_NDK_ROOT`` or ``ndk.root``),
   trusted as-is if it is a directory
2. ``<workspace>/ndk/android-ndk-<version>`` from an earlier download
3. Download the NDK archive and extract it to that workspace path
"""

import logging
from pathlib import Path
from typing import Optional

from ndkforge.core.archive import fetch_and_extract
from ndkforge.core.exceptions import NdkNotFoundError
from ndkforge.core.filesystem import ArchiveExtractionError
from ndkforge.core.download import DownloadError

logger = logging.getLogger(__name__)

NDK_URL_TEMPLATE = "https://dl.google.com/android/repository/android-ndk-{version}-linux.zip"


def ndk_download_url(version: str) -> str:
    return NDK_URL_TEMPLATE.format(version=version)


def workspace_ndk_dir(workspace_root: Path, version: str) -> Path:
    return Path(workspace_root) / "ndk" / f"android-ndk-{version}"


def locate_ndk(
    workspace_root: Path,
    version: str,
    external_root: Optional[Path] = None,
) -> Optional[Path]:
    """
    Find an NDK that is already on disk.

    Returns:
        The NDK root, or None if neither location exists
    """
    if external_root is not None and Path(external_root).is_dir():
        logger.info(f"Using existing NDK: {external_root}")
        return Path(external_root)

    ndk_dir = workspace_ndk_dir(workspace_root, version)
    if ndk_dir.is_dir():
        logger.info(f"Using NDK from workspace: {ndk_dir}")
        return ndk_dir

    return None


def ensure_ndk(
    workspace_root: Path,
    version: str,
    downloads_dir: Path,
    external_root: Optional[Path] = None,
    url: Optional[str] = None,
) -> Path:
    """
    Return a usable NDK root, downloading the NDK if necessary.

    Args:
        workspace_root: Top-level workspace (shared across targets)
        version: NDK release (e.g. 'r27d')
        downloads_dir: Where the NDK archive is cached
        external_root: Externally configured NDK root
        url: Download URL (defaults to the official Linux archive)

    Returns:
        Path to the NDK root

    Raises:
        NdkNotFoundError: If the NDK cannot be downloaded or did not
            materialize at the expected path
    """
    existing = locate_ndk(workspace_root, version, external_root)
    if existing is not None:
        return existing

    ndk_dir = workspace_ndk_dir(workspace_root, version)
    url = url or ndk_download_url(version)

    logger.info(f"Downloading Android NDK {version}...")
    try:
        fetch_and_extract(url, downloads_dir, ndk_dir, f"Android NDK {version}")
    except (DownloadError, ArchiveExtractionError, FileNotFoundError) as e:
        raise NdkNotFoundError(f"Could not install Android NDK {version}: {e}") from e

    if not ndk_dir.is_dir():
        raise NdkNotFoundError(
            f"NDK extraction failed. Expected directory: {ndk_dir}"
        )

    logger.info(f"NDK ready: {ndk_dir}")
    return ndk_dir
