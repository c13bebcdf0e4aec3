"""Build a sorted folder/file tree from flat file paths."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Literal, Mapping, Optional

__all__ = ["TreeNode", "VirtualEntry", "build_tree", "render_tree"]


@dataclass(slots=True, frozen=True)
class VirtualEntry:
    """Folder or empty file created in the editor but not backed by the file set."""

    is_folder: bool = False
    content: str = ""


@dataclass(slots=True)
class TreeNode:
    """Folder or file node in the presentation tree."""

    name: str
    type: Literal["folder", "file"]
    path: str | None = None
    is_virtual: bool = False
    children: List["TreeNode"] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "path": self.path,
            "is_virtual": self.is_virtual,
            "children": [child.to_dict() for child in self.children] if self.is_folder else None,
        }


def _sort_key(node: TreeNode) -> tuple[int, str]:
    return (0 if node.is_folder else 1, node.name)


def _sort_level(level: List[TreeNode]) -> None:
    level.sort(key=_sort_key)
    for node in level:
        if node.is_folder:
            _sort_level(node.children)


def build_tree(
    files: Mapping[str, Any],
    extra_entries: Optional[Mapping[str, VirtualEntry]] = None,
) -> List[TreeNode]:
    """Return the sorted forest for ``files`` plus any virtual entries.

    Folders sort before files, then names compare ordinally.
    """
    extras = dict(extra_entries or {})
    roots: List[TreeNode] = []
    for path in {**files, **extras}:
        virtual = extras.get(path)
        parts = path.split("/")
        level = roots
        for index, part in enumerate(parts):
            is_file = index == len(parts) - 1 and not (virtual is not None and virtual.is_folder)
            kind: Literal["folder", "file"] = "file" if is_file else "folder"
            node = next((item for item in level if item.name == part and item.type == kind), None)
            if node is None:
                node = TreeNode(
                    name=part,
                    type=kind,
                    path=path if is_file else None,
                    is_virtual=virtual is not None,
                )
                level.append(node)
            level = node.children
    _sort_level(roots)
    return roots


def _render(nodes: Iterable[TreeNode], depth: int, indent: str, lines: List[str]) -> None:
    for node in nodes:
        marker = "/" if node.is_folder else ""
        virtual = " (virtual)" if node.is_virtual else ""
        lines.append(f"{indent * depth}{node.name}{marker}{virtual}")
        if node.is_folder:
            _render(node.children, depth + 1, indent, lines)


def render_tree(nodes: Iterable[TreeNode], *, indent: str = "  ") -> str:
    """Render the forest as an indented outline."""
    lines: List[str] = []
    _render(nodes, 0, indent, lines)
    return "\n".join(lines)
