"""
Unit tests for NDK lookup and installation.
"""

from unittest.mock import patch

import pytest

from ndkforge.core.download import DownloadError
from ndkforge.core.exceptions import NdkNotFoundError
from ndkforge.cross.ndk import (
    ensure_ndk,
    locate_ndk,
    ndk_download_url,
    workspace_ndk_dir,
)
from tests.fixtures.archives import make_zip


class TestLocateNdk:
    """Test lookup order."""

    def test_external_root_wins(self, tmp_path):
        external = tmp_path / "external"
        external.mkdir()
        workspace_ndk_dir(tmp_path / "ws", "r27d").mkdir(parents=True)

        assert locate_ndk(tmp_path / "ws", "r27d", external) == external

    def test_missing_external_falls_back_to_workspace(self, tmp_path):
        ndk_dir = workspace_ndk_dir(tmp_path / "ws", "r27d")
        ndk_dir.mkdir(parents=True)

        assert locate_ndk(tmp_path / "ws", "r27d", tmp_path / "missing") == ndk_dir

    def test_nothing_found(self, tmp_path):
        assert locate_ndk(tmp_path / "ws", "r27d") is None


class TestEnsureNdk:
    """Test NDK download and extraction."""

    def test_download_url(self):
        assert ndk_download_url("r27d") == (
            "https://dl.google.com/android/repository/android-ndk-r27d-linux.zip"
        )

    def test_existing_ndk_not_downloaded(self, tmp_path):
        external = tmp_path / "ndk"
        external.mkdir()

        with patch("ndkforge.cross.ndk.fetch_and_extract") as mock_fetch:
            assert ensure_ndk(tmp_path / "ws", "r27d", tmp_path / "dl", external) == external

        mock_fetch.assert_not_called()

    def test_downloads_and_extracts(self, tmp_path):
        downloads = tmp_path / "dl"
        make_zip(
            downloads / "android-ndk-r27d-linux.zip",
            {"source.properties": "Pkg.Revision = 27.3"},
            root="android-ndk-r27d",
        )

        with patch("ndkforge.core.archive.fetch") as mock_fetch:
            result = ensure_ndk(tmp_path / "ws", "r27d", downloads)

        mock_fetch.assert_called_once()
        assert result == tmp_path / "ws" / "ndk" / "android-ndk-r27d"
        assert (result / "source.properties").exists()

    def test_download_failure(self, tmp_path):
        with patch(
            "ndkforge.cross.ndk.fetch_and_extract", side_effect=DownloadError("offline")
        ):
            with pytest.raises(NdkNotFoundError, match="offline"):
                ensure_ndk(tmp_path / "ws", "r27d", tmp_path / "dl")

    def test_directory_missing_after_extract(self, tmp_path):
        with patch("ndkforge.cross.ndk.fetch_and_extract"):
            with pytest.raises(NdkNotFoundError, match="Expected directory"):
                ensure_ndk(tmp_path / "ws", "r27d", tmp_path / "dl")
