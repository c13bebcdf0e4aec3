from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from conftest import write_zip
from modkit.errors import ArchiveError
from modkit.tools.archive import (
    ArchiveReader,
    DirectoryArchiveReader,
    ZipArchiveReader,
    load_archive,
    load_fileset,
    open_archive,
    write_fileset,
)


def test_zip_reader_exposes_entries(project_zip: Path) -> None:
    with open_archive(project_zip) as reader:
        assert isinstance(reader, ZipArchiveReader)
        assert isinstance(reader, ArchiveReader)
        assert "project/src/App.jsx" in reader.entries
        assert reader.is_directory("project/")
        assert not reader.is_directory("project/README.md")
        assert reader.read_text("project/README.md") == "# Project"


def test_load_fileset_strips_shared_root_and_metadata(project_zip: Path) -> None:
    with open_archive(project_zip) as reader:
        files = load_fileset(reader)

    assert sorted(files) == ["README.md", "src/App.jsx"]


def test_load_fileset_keeps_paths_without_shared_root(tmp_path: Path) -> None:
    path = write_zip(tmp_path / "flat.zip", {"a/one.txt": "1", "b/two.txt": "2", "top.txt": "t"})

    with open_archive(path) as reader:
        assert load_fileset(reader) == {"a/one.txt": "1", "b/two.txt": "2", "top.txt": "t"}


def test_load_archive_from_bytes(project_zip: Path) -> None:
    reader = load_archive(project_zip.read_bytes())

    assert load_fileset(reader)["README.md"] == "# Project"


def test_undecodable_bytes_are_replaced(tmp_path: Path) -> None:
    path = tmp_path / "binary.zip"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("blob.bin", b"ok\xff")

    with open_archive(path) as reader:
        assert reader.read_text("blob.bin") == "ok\ufffd"


def test_corrupt_or_missing_archives_raise(tmp_path: Path) -> None:
    broken = tmp_path / "broken.zip"
    broken.write_bytes(b"not a zip")

    with pytest.raises(ArchiveError):
        open_archive(broken)
    with pytest.raises(ArchiveError):
        open_archive(tmp_path / "absent.zip")
    with pytest.raises(ArchiveError):
        load_archive(b"").read_text("x")


def test_missing_entry_raises(project_zip: Path) -> None:
    with open_archive(project_zip) as reader, pytest.raises(ArchiveError) as excinfo:
        reader.read_text("project/nope.txt")

    assert excinfo.value.details == {"path": "project/nope.txt"}


def test_directory_reader(tmp_path: Path) -> None:
    root = tmp_path / "site"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.js").write_text("main", encoding="utf-8")
    (root / "index.html").write_text("<html>", encoding="utf-8")

    reader = open_archive(root)

    assert isinstance(reader, DirectoryArchiveReader)
    assert "src/" in reader.entries
    assert reader.is_directory("src/")
    assert load_fileset(reader) == {"index.html": "<html>", "src/main.js": "main"}
    with pytest.raises(ArchiveError):
        reader.read_text("../outside.txt")


def test_write_fileset_to_directory_and_zip(tmp_path: Path) -> None:
    files = {"src/b.js": "b", "a.txt": "a"}

    directory = write_fileset(files, tmp_path / "out")
    archive = write_fileset(files, tmp_path / "out.zip")

    assert (directory / "src" / "b.js").read_text(encoding="utf-8") == "b"
    with zipfile.ZipFile(archive) as written:
        assert written.namelist() == ["a.txt", "src/b.js"]


def test_write_fileset_refuses_escaping_paths(tmp_path: Path) -> None:
    with pytest.raises(ArchiveError):
        write_fileset({"../escape.txt": "x"}, tmp_path / "out")
