"""
Source archive fetching over HTTP(S).

This module implements the fetch capability the archive service composes
with extraction:
- Idempotent: an existing destination file is trusted and not re-fetched
- Streaming download into a sibling ``.part`` file, renamed into place on
  success, so the presence of the destination implies a complete file
- Optional SHA-256 verification; a mismatching file is deleted so the next
  run downloads it again instead of reusing bad bytes

There is no retry loop here. A failed fetch is retried by rerunning the
pipeline.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import requests
from requests.exceptions import RequestException

from ndkforge.core.exceptions import NdkForgeError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536
DEFAULT_TIMEOUT = 60


class DownloadError(NdkForgeError):
    """Exception raised when download fails."""

    pass


class ChecksumError(NdkForgeError):
    """Exception raised when checksum verification fails."""

    pass


class StreamingHasher:
    """Compute a SHA-256 digest incrementally while bytes are written."""

    def __init__(self):
        self.hasher = hashlib.sha256()

    def update(self, data: bytes):
        self.hasher.update(data)

    def finalize(self) -> str:
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """Return True if the computed digest matches ``expected_hash``."""
        return self.finalize().lower() == expected_hash.lower()


def filename_from_url(url: str) -> str:
    """
    Derive the download cache file name from a URL.

    Args:
        url: Source URL

    Returns:
        Basename of the URL path (query and fragment ignored)

    Raises:
        ValueError: If the URL path has no file name component

    Example:
        >>> filename_from_url('https://zlib.net/zlib-1.3.1.tar.xz')
        'zlib-1.3.1.tar.xz'
    """
    name = Path(unquote(urlparse(url).path)).name
    if not name:
        raise ValueError(f"Cannot derive a file name from URL: {url}")
    return name


def fetch(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Path:
    """
    Download ``url`` to ``destination`` unless it already exists.

    Args:
        url: URL to download from
        destination: Local path to save file
        expected_sha256: Expected SHA-256 hex digest (verified while streaming)
        timeout: Request timeout in seconds

    Returns:
        Path to the downloaded (or already present) file

    Raises:
        DownloadError: If the transfer fails
        ChecksumError: If the checksum doesn't match (file is removed)
        ValueError: If URL is empty

    Example:
        >>> fetch('https://zlib.net/zlib-1.3.1.tar.xz',
        ...       Path('downloads/zlib-1.3.1.tar.xz'))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)

    if destination.exists():
        logger.debug(f"Already downloaded: {destination}")
        return destination

    destination.parent.mkdir(parents=True, exist_ok=True)
    part_path = destination.with_name(destination.name + ".part")
    hasher = StreamingHasher() if expected_sha256 else None

    logger.info(f"Downloading {url}")

    try:
        with requests.get(
            url, stream=True, timeout=timeout, allow_redirects=True
        ) as response:
            response.raise_for_status()
            with open(part_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        if hasher:
                            hasher.update(chunk)
    except RequestException as e:
        part_path.unlink(missing_ok=True)
        raise DownloadError(f"Failed to download {url}: {e}") from e
    except OSError as e:
        part_path.unlink(missing_ok=True)
        raise DownloadError(f"Failed to write {part_path}: {e}") from e

    if hasher and not hasher.verify(expected_sha256):
        part_path.unlink(missing_ok=True)
        raise ChecksumError(
            f"Checksum mismatch for {destination.name}: "
            f"expected {expected_sha256}, got {hasher.finalize()}"
        )

    os.replace(part_path, destination)
    logger.info(f"Download complete: {destination}")
    return destination
