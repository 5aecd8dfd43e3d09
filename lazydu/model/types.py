"""Domain datatypes for disk-usage tree nodes.

Nodes are plain mutable records addressed by integer id inside a
``NodeArena``; parent links are ids, never object references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

BLOCK_SIZE = 512


class NodeKind(Enum):
    """Kind of filesystem entry a node stands for."""

    DIRECTORY = "dir"
    FILE = "file"
    SYMLINK = "symlink"
    HARDLINK = "hardlink"
    SPECIAL = "special"
    ERROR = "error"
    EXCLUDED = "excluded"
    OTHER_FILESYSTEM = "otherfs"
    KERNEL_FILESYSTEM = "kernfs"

    @property
    def is_directory_like(self) -> bool:
        """Directories plus the placeholders recorded in place of one."""
        return self in _DIRECTORY_LIKE

    @property
    def is_placeholder(self) -> bool:
        """Entries recorded for visibility only, with zero totals."""
        return self in _PLACEHOLDERS

    @property
    def is_countable(self) -> bool:
        """Whether the entry counts toward a parent's item total."""
        return self not in _PLACEHOLDERS

    @property
    def marker(self) -> str:
        return _MARKERS[self]


_DIRECTORY_LIKE = frozenset(
    {NodeKind.DIRECTORY, NodeKind.OTHER_FILESYSTEM, NodeKind.KERNEL_FILESYSTEM}
)
_PLACEHOLDERS = frozenset(
    {
        NodeKind.ERROR,
        NodeKind.EXCLUDED,
        NodeKind.OTHER_FILESYSTEM,
        NodeKind.KERNEL_FILESYSTEM,
    }
)
_MARKERS = {
    NodeKind.DIRECTORY: "/",
    NodeKind.FILE: " ",
    NodeKind.SYMLINK: "@",
    NodeKind.HARDLINK: "H",
    NodeKind.SPECIAL: "=",
    NodeKind.ERROR: "!",
    NodeKind.EXCLUDED: "<",
    NodeKind.OTHER_FILESYSTEM: ">",
    NodeKind.KERNEL_FILESYSTEM: "^",
}


@dataclass(frozen=True)
class ExtendedInfo:
    """Optional per-entry metadata collected with ``--extended``."""

    mtime: int | None = None
    uid: int | None = None
    gid: int | None = None
    mode: int | None = None


@dataclass(frozen=True)
class Aggregate:
    """Bottom-up totals for one directory subtree."""

    total_size: int = 0
    total_blocks: int = 0
    total_items: int = 0
    shared_blocks: int = 0
    unique_blocks: int = 0


@dataclass(eq=False, slots=True)
class Node:
    """One entry of the usage tree."""

    id: int
    kind: NodeKind
    name: str
    apparent_size: int = 0
    allocated_blocks: int = 0
    device_id: int = 0
    inode: int = 0
    link_count: int = 0
    extended: ExtendedInfo | None = None
    error: str | None = None
    children: list[int] = field(default_factory=list)
    parent: int | None = None
    aggregate: Aggregate | None = None

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def disk_usage(self) -> int:
        """Bytes allocated on disk, using the aggregate for directories."""
        if self.aggregate is not None and self.is_directory:
            return self.aggregate.total_blocks * BLOCK_SIZE
        return self.allocated_blocks * BLOCK_SIZE

    @property
    def total_size(self) -> int:
        if self.aggregate is not None and self.is_directory:
            return self.aggregate.total_size
        return self.apparent_size

    @property
    def total_items(self) -> int:
        if self.aggregate is not None and self.is_directory:
            return self.aggregate.total_items
        return 0

    @property
    def shared_usage(self) -> int:
        """Bytes of later links credited to this entry or subtree."""
        if self.aggregate is None:
            return 0
        return self.aggregate.shared_blocks * BLOCK_SIZE

    @property
    def unique_usage(self) -> int:
        if self.aggregate is None:
            return 0
        return self.aggregate.unique_blocks * BLOCK_SIZE

    @property
    def mtime(self) -> int | None:
        if self.extended is None:
            return None
        return self.extended.mtime


__all__ = [
    "BLOCK_SIZE",
    "NodeKind",
    "ExtendedInfo",
    "Aggregate",
    "Node",
]
