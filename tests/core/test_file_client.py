"""
Unit tests for FileClient and MemoryFileClient.
"""

import pytest

from gdenv.core.file_client import FileClient, MemoryFileClient


class TestCombine:
    """Test path combination."""

    def test_joins_with_separator(self):
        """Test parts are joined with the client's separator."""
        assert FileClient("/").combine("project", "global.json") == "project/global.json"
        assert FileClient("\\").combine("C:\\game", "Game.csproj") == "C:\\game\\Game.csproj"

    def test_strips_duplicate_separators(self):
        """Test separators at part boundaries are not doubled."""
        assert FileClient("/").combine("project/", "/addons/", "imrp") == "project/addons/imrp"

    def test_keeps_root(self):
        """Test an absolute head keeps its root."""
        assert FileClient("/").combine("/", "home") == "/home"
        assert FileClient("/").combine("/project") == "/project"

    def test_skips_empty_parts(self):
        """Test empty parts are ignored."""
        assert FileClient("/").combine("", "a", "", "b") == "a/b"
        assert FileClient("/").combine() == ""


class TestFileClient:
    """Test the disk-backed client."""

    def test_write_and_read(self, tmp_path):
        """Test text round trip through the disk."""
        client = FileClient()
        path = client.combine(str(tmp_path), ".godotrc")

        client.write_text(path, "4.4.1-stable\n")

        assert client.exists(path)
        assert client.read_text(path) == "4.4.1-stable\n"

    def test_reader_strips_bom(self, tmp_path):
        """Test a UTF-8 byte order mark is ignored."""
        path = tmp_path / "global.json"
        path.write_bytes(b"\xef\xbb\xbf{}")

        assert FileClient().read_text(str(path)) == "{}"

    def test_missing_file(self, tmp_path):
        """Test reading a missing file raises FileNotFoundError."""
        client = FileClient()

        assert not client.exists(str(tmp_path / "missing"))
        with pytest.raises(FileNotFoundError):
            client.get_reader(str(tmp_path / "missing"))

    def test_glob(self, tmp_path):
        """Test glob lists matching files only, sorted."""
        (tmp_path / "B.csproj").write_text("")
        (tmp_path / "A.csproj").write_text("")
        (tmp_path / "project.godot").write_text("")
        (tmp_path / "dir.csproj").mkdir()
        client = FileClient()

        names = [path.rsplit(client.separator, 1)[-1] for path in client.glob(str(tmp_path), "*.csproj")]

        assert names == ["A.csproj", "B.csproj"]

    def test_glob_missing_directory(self, tmp_path):
        """Test glob on a missing directory is empty."""
        assert FileClient().glob(str(tmp_path / "missing"), "*") == []


class TestMemoryFileClient:
    """Test the in-memory client."""

    def test_reads_seeded_files(self):
        """Test seeded content is readable."""
        client = MemoryFileClient({"project/.godotrc": "4.3-stable"})

        assert client.exists("project/.godotrc")
        with client.get_reader("project/.godotrc") as reader:
            assert reader.read() == "4.3-stable"

    def test_missing_file(self):
        """Test reading a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            MemoryFileClient().get_reader("nope")

    def test_glob_direct_children_only(self):
        """Test glob does not descend into subdirectories."""
        client = MemoryFileClient(
            {
                "project/Game.csproj": "",
                "project/sub/Other.csproj": "",
                "project/global.json": "",
            }
        )

        assert client.glob("project", "*.csproj") == ["project/Game.csproj"]
