"""
Unit tests for download module.

Tests download functionality with mocked network requests.
"""

import asyncio
import hashlib
import threading

import pytest
import responses

from gdenv.core.download import (
    DownloadProgress,
    async_download_file,
    download_file,
    format_progress,
    verify_checksum,
)
from gdenv.core.exceptions import ChecksumError, DownloadError, InstallCancelledError

URL = "https://example.com/Godot_v4.4.1-stable_linux.x86_64.zip"


class TestVerifyChecksum:
    """Test verify_checksum function."""

    def test_matching_checksum(self, tmp_path):
        """Test matching hash returns True, case-insensitively."""
        file = tmp_path / "file.bin"
        file.write_bytes(b"godot")
        digest = hashlib.sha256(b"godot").hexdigest()

        assert verify_checksum(file, digest)
        assert verify_checksum(file, digest.upper())

    def test_mismatching_checksum(self, tmp_path):
        """Test wrong hash returns False."""
        file = tmp_path / "file.bin"
        file.write_bytes(b"godot")

        assert not verify_checksum(file, "0" * 64)

    def test_missing_file(self, tmp_path):
        """Test missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            verify_checksum(tmp_path / "missing", "a" * 64)


class TestFormatProgress:
    """Test format_progress function."""

    def test_known_size(self):
        """Test progress with a known total."""
        progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)

        assert format_progress(progress) == "50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s"

    def test_unknown_size(self):
        """Test progress without a total."""
        progress = DownloadProgress(1048576, 0, 0, 1048576, 0)

        assert str(progress) == "1.0 MB at 1.0 MB/s"


class TestDownloadFile:
    """Test download_file function."""

    @responses.activate
    def test_simple_download(self, tmp_path):
        """Test simple download creates parent directories."""
        content = b"archive content"
        destination = tmp_path / "cache" / "godot.zip"
        responses.add(
            responses.GET,
            URL,
            body=content,
            status=200,
            headers={"content-length": str(len(content))},
        )

        result = download_file(URL, destination)

        assert result == destination
        assert destination.read_bytes() == content

    @responses.activate
    def test_download_with_wrong_checksum(self, tmp_path):
        """Test checksum mismatch removes the file."""
        destination = tmp_path / "godot.zip"
        responses.add(responses.GET, URL, body=b"content", status=200)

        with pytest.raises(ChecksumError, match="Checksum mismatch"):
            download_file(URL, destination, expected_sha256="a" * 64)

        assert not destination.exists()

    def test_skip_download_if_cached_file_valid(self, tmp_path):
        """Test a cached file with the right checksum is not downloaded again."""
        destination = tmp_path / "godot.zip"
        destination.write_bytes(b"cached")
        digest = hashlib.sha256(b"cached").hexdigest()

        with responses.RequestsMock() as rsps:
            result = download_file(URL, destination, expected_sha256=digest)
            assert len(rsps.calls) == 0

        assert result == destination

    @responses.activate
    def test_resume_partial_download(self, tmp_path):
        """Test a partial file is resumed with a Range header."""
        destination = tmp_path / "godot.zip"
        destination.write_bytes(b"hello ")
        responses.add(
            responses.GET,
            URL,
            body=b"world",
            status=206,
            headers={"content-length": "5"},
        )

        download_file(
            URL,
            destination,
            expected_sha256=hashlib.sha256(b"hello world").hexdigest(),
            max_retries=1,
        )

        assert destination.read_bytes() == b"hello world"
        assert responses.calls[0].request.headers["Range"] == "bytes=6-"

    @responses.activate
    def test_server_ignoring_range_restarts(self, tmp_path):
        """Test a 200 answer to a Range request overwrites the partial file."""
        destination = tmp_path / "godot.zip"
        destination.write_bytes(b"stale")
        responses.add(responses.GET, URL, body=b"fresh content", status=200)

        download_file(URL, destination, max_retries=1)

        assert destination.read_bytes() == b"fresh content"

    @responses.activate
    def test_range_not_satisfiable_means_complete(self, tmp_path):
        """Test 416 on resume keeps the already complete file."""
        destination = tmp_path / "godot.zip"
        destination.write_bytes(b"complete")
        responses.add(responses.GET, URL, status=416)

        result = download_file(URL, destination, max_retries=1)

        assert result.read_bytes() == b"complete"

    @responses.activate
    def test_http_error_raises_download_error(self, tmp_path):
        """Test HTTP errors surface as DownloadError after retries."""
        responses.add(responses.GET, URL, status=404)

        with pytest.raises(DownloadError, match="after 1 attempts"):
            download_file(URL, tmp_path / "godot.zip", max_retries=1)

    @responses.activate
    def test_progress_callback(self, tmp_path):
        """Test the final progress report covers the whole file."""
        content = b"x" * 100000
        responses.add(
            responses.GET,
            URL,
            body=content,
            status=200,
            headers={"content-length": str(len(content))},
        )
        updates = []

        download_file(URL, tmp_path / "godot.zip", progress_callback=updates.append)

        assert updates
        assert updates[-1].bytes_downloaded == len(content)
        assert updates[-1].percentage == pytest.approx(100.0)

    def test_cancelled_before_start(self, tmp_path):
        """Test a set cancel event stops the download before any request."""
        cancel_event = threading.Event()
        cancel_event.set()

        with responses.RequestsMock() as rsps:
            with pytest.raises(InstallCancelledError):
                download_file(URL, tmp_path / "godot.zip", cancel_event=cancel_event)
            assert len(rsps.calls) == 0

    def test_empty_url(self, tmp_path):
        """Test empty URL is rejected."""
        with pytest.raises(ValueError):
            download_file("", tmp_path / "godot.zip")


class TestAsyncDownloadFile:
    """Test async_download_file function."""

    @responses.activate
    def test_downloads_in_worker_thread(self, tmp_path):
        """Test the async wrapper returns the downloaded file."""
        responses.add(responses.GET, URL, body=b"content", status=200)
        destination = tmp_path / "godot.zip"

        result = asyncio.run(async_download_file(URL, destination))

        assert result == destination
        assert destination.read_bytes() == b"content"

    @responses.activate
    def test_errors_propagate(self, tmp_path):
        """Test worker errors reach the awaiting task."""
        responses.add(responses.GET, URL, status=500)

        with pytest.raises(DownloadError):
            asyncio.run(async_download_file(URL, tmp_path / "godot.zip", max_retries=1))
