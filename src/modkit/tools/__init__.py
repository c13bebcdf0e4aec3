"""Archive and tree helpers used around the instruction engine."""

from .archive import (
    ArchiveReader,
    DirectoryArchiveReader,
    ZipArchiveReader,
    load_archive,
    load_fileset,
    open_archive,
    write_fileset,
)
from .tree import TreeNode, VirtualEntry, build_tree, render_tree

__all__ = [
    "ArchiveReader",
    "DirectoryArchiveReader",
    "TreeNode",
    "VirtualEntry",
    "ZipArchiveReader",
    "build_tree",
    "load_archive",
    "load_fileset",
    "open_archive",
    "render_tree",
    "write_fileset",
]
