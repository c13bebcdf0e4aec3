"""Archive readers that expose ZIP files or directories as flat entry lists."""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path
from typing import BinaryIO, Dict, Mapping, Protocol, Sequence, Tuple, runtime_checkable

from ..errors import ArchiveError

__all__ = [
    "ArchiveReader",
    "DirectoryArchiveReader",
    "ZipArchiveReader",
    "is_metadata_entry",
    "load_archive",
    "load_fileset",
    "open_archive",
    "write_fileset",
]

LOGGER = logging.getLogger(__name__)

_METADATA_PREFIX = "__MACOSX"


@runtime_checkable
class ArchiveReader(Protocol):
    """Read-only view of an archive as forward-slash entry names."""

    @property
    def entries(self) -> Sequence[str]: ...

    def is_directory(self, path: str) -> bool: ...

    def read_text(self, path: str) -> str: ...


def is_metadata_entry(path: str) -> bool:
    """Return ``True`` for resource-fork folders added by macOS archivers."""
    return path.startswith(_METADATA_PREFIX)


class ZipArchiveReader:
    """Archive reader backed by :mod:`zipfile`."""

    def __init__(self, source: Path | str | bytes | bytearray | BinaryIO) -> None:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(bytes(source))
        try:
            self._zip = zipfile.ZipFile(source)
        except (zipfile.BadZipFile, OSError) as error:
            raise ArchiveError(f"Unable to open ZIP archive: {error}") from error
        self._entries: Tuple[str, ...] = tuple(info.filename for info in self._zip.infolist())

    @property
    def entries(self) -> Sequence[str]:
        return self._entries

    def is_directory(self, path: str) -> bool:
        try:
            return self._zip.getinfo(path).is_dir()
        except KeyError:
            return path.endswith("/")

    def read_text(self, path: str) -> str:
        try:
            data = self._zip.read(path)
        except KeyError as error:
            raise ArchiveError(f"Archive entry not found: {path}", details={"path": path}) from error
        except (zipfile.BadZipFile, OSError, RuntimeError) as error:
            raise ArchiveError(f"Unable to read archive entry {path}: {error}", details={"path": path}) from error
        return data.decode("utf-8", errors="replace")

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> "ZipArchiveReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class DirectoryArchiveReader:
    """Archive reader over an unpacked directory tree."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise ArchiveError(f"Not a directory: {self.root}")
        entries: list[str] = []
        for candidate in sorted(self.root.rglob("*")):
            relative = candidate.relative_to(self.root).as_posix()
            entries.append(f"{relative}/" if candidate.is_dir() else relative)
        self._entries = tuple(entries)

    @property
    def entries(self) -> Sequence[str]:
        return self._entries

    def is_directory(self, path: str) -> bool:
        return path.endswith("/") or (self.root / path).is_dir()

    def read_text(self, path: str) -> str:
        target = (self.root / path).resolve()
        try:
            target.relative_to(self.root)
        except ValueError as error:
            raise ArchiveError(f"Entry escapes archive root: {path}", details={"path": path}) from error
        try:
            return target.read_bytes().decode("utf-8", errors="replace")
        except OSError as error:
            raise ArchiveError(f"Unable to read {path}: {error}", details={"path": path}) from error

    def close(self) -> None:
        return None

    def __enter__(self) -> "DirectoryArchiveReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def open_archive(path: Path | str) -> ZipArchiveReader | DirectoryArchiveReader:
    """Open ``path`` as a directory reader or a ZIP reader."""
    source = Path(path)
    if source.is_dir():
        return DirectoryArchiveReader(source)
    if not source.exists():
        raise ArchiveError(f"Archive not found: {source}")
    return ZipArchiveReader(source)


def load_archive(data: bytes) -> ZipArchiveReader:
    """Wrap in-memory ZIP bytes in a reader."""
    return ZipArchiveReader(data)


def _shared_root(paths: Sequence[str]) -> str:
    first_parts = paths[0].split("/")
    if len(first_parts) < 2:
        return ""
    candidate = f"{first_parts[0]}/"
    if all(path.startswith(candidate) for path in paths):
        return candidate
    return ""


def load_fileset(reader: ArchiveReader) -> Dict[str, str]:
    """Load every file in ``reader`` into a path -> text mapping.

    When all files sit under one top-level folder, that folder is stripped.
    """
    paths = [
        entry
        for entry in reader.entries
        if not reader.is_directory(entry) and not is_metadata_entry(entry)
    ]
    if not paths:
        return {}
    prefix = _shared_root(paths)
    files: Dict[str, str] = {}
    for entry in paths:
        relative = entry[len(prefix) :] if prefix and entry.startswith(prefix) else entry
        if relative:
            files[relative] = reader.read_text(entry)
    LOGGER.debug("Loaded %d file(s) (root prefix %r)", len(files), prefix)
    return files


def write_fileset(files: Mapping[str, str], destination: Path | str) -> Path:
    """Write ``files`` to a directory, or to a ZIP when ``destination`` ends in ``.zip``."""
    target = Path(destination)
    if target.suffix.lower() == ".zip":
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for path in sorted(files):
                    archive.writestr(path, files[path])
        except OSError as error:
            raise ArchiveError(f"Unable to write {target}: {error}") from error
        return target

    root = target.resolve()
    root.mkdir(parents=True, exist_ok=True)
    for path in sorted(files):
        output = (root / path).resolve()
        try:
            output.relative_to(root)
        except ValueError as error:
            raise ArchiveError(f"Refusing to write outside {root}: {path}", details={"path": path}) from error
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(files[path], encoding="utf-8")
    return root
