"""Tests for file_handler: directory checks, reads, and staged writes."""

from pathlib import Path

import pytest

from project_config.file_handler import (
    commit_staged,
    discard_staged,
    read_file_with_encoding,
    relative_posix,
    stage_file,
    validate_directory,
    write_file_atomic,
)


class TestValidateDirectory:
    def test_existing_directory(self, tmp_path: Path):
        assert validate_directory(str(tmp_path)) == tmp_path.resolve()

    def test_missing_directory_raises(self, tmp_path: Path):
        with pytest.raises(ValueError, match="Directory not found"):
            validate_directory(tmp_path / "missing")

    def test_missing_directory_created(self, tmp_path: Path):
        target = tmp_path / "a" / "b"
        assert validate_directory(target, create=True) == target.resolve()
        assert target.is_dir()

    def test_file_rejected(self, tmp_path: Path):
        path = tmp_path / "project.yaml"
        path.write_text("a: 1\n")
        with pytest.raises(ValueError, match="not a directory"):
            validate_directory(path, create=True)


def test_relative_posix(tmp_path: Path):
    assert relative_posix(tmp_path / "sections" / "news.yaml", tmp_path) == "sections/news.yaml"


class TestReadFileWithEncoding:
    def test_utf8(self, tmp_path: Path):
        path = tmp_path / "project.yaml"
        path.write_text("name: Café\n", encoding="utf-8")
        assert read_file_with_encoding(path) == ("name: Café\n", "utf-8")

    def test_empty(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_bytes(b"")
        assert read_file_with_encoding(path) == ("", "utf-8")

    def test_non_utf8_detected(self, tmp_path: Path):
        path = tmp_path / "latin.yaml"
        text = "description: Élodie écrit des données à la française\n" * 4
        path.write_bytes(text.encode("latin-1"))
        content, encoding = read_file_with_encoding(path)
        assert encoding != "utf-8"
        assert "description:" in content


class TestStagedWrites:
    def test_stage_then_commit(self, tmp_path: Path):
        target = tmp_path / "sections" / "news.yaml"
        tmp = stage_file(target, "handle: news\n")
        assert tmp.parent == target.parent
        assert not target.exists()

        commit_staged([(tmp, target)])
        assert target.read_text() == "handle: news\n"
        assert not tmp.exists()

    def test_discard_removes_temp_files(self, tmp_path: Path):
        target = tmp_path / "project.yaml"
        tmp = stage_file(target, "a: 1\n")
        discard_staged([(tmp, target)])
        discard_staged([(tmp, target)])
        assert not tmp.exists()
        assert not target.exists()

    def test_write_file_atomic_replaces(self, tmp_path: Path):
        target = tmp_path / "project.yaml"
        target.write_text("old: true\n")
        written = write_file_atomic(target, "name: Café\n")
        assert written == len("name: Café\n".encode("utf-8"))
        assert target.read_text(encoding="utf-8") == "name: Café\n"
        assert [p.name for p in tmp_path.iterdir()] == ["project.yaml"]
