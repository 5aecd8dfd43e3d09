"""Node arena, completed usage tree wrapper, and the structural tree builder.

Nodes are stored in one list and addressed by index. Creation is the only
operation shared between worker threads; attaching children and tracking
directory closure happen on the scan coordinator thread.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from dataclasses import dataclass

from .types import Node, NodeKind


class NodeArena:
    """Append-only node storage with thread-safe id allocation."""

    def __init__(self) -> None:
        self._nodes: list[Node] = []
        self._lock = threading.Lock()

    def create(self, kind: NodeKind, name: str, **fields: object) -> Node:
        """Create and store a node; its id is its arena index."""
        with self._lock:
            node = Node(len(self._nodes), kind, name, **fields)
            self._nodes.append(node)
        return node

    def __getitem__(self, node_id: int) -> Node:
        return self._nodes[node_id]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def children(self, node: Node) -> list[Node]:
        nodes = self._nodes
        return [nodes[child_id] for child_id in node.children]


@dataclass(frozen=True)
class UsageTree:
    """A finalized scan or import result rooted at ``root_id``."""

    arena: NodeArena
    root_id: int
    root_path: str

    @property
    def root(self) -> Node:
        return self.arena[self.root_id]

    def node(self, node_id: int) -> Node:
        return self.arena[node_id]

    def children(self, node: Node) -> list[Node]:
        return self.arena.children(node)

    def parent(self, node: Node) -> Node | None:
        if node.parent is None:
            return None
        return self.arena[node.parent]

    def ancestors(self, node: Node) -> list[Node]:
        """Return the chain from the root down to ``node`` inclusive."""
        chain: list[Node] = []
        current: Node | None = node
        while current is not None:
            chain.append(current)
            current = self.parent(current)
        chain.reverse()
        return chain

    def full_path(self, node: Node) -> str:
        chain = self.ancestors(node)
        if not chain or chain[0].id != self.root_id:
            return node.name
        return os.path.join(self.root_path, *(entry.name for entry in chain[1:]))

    def iter_postorder(self) -> Iterator[Node]:
        """Yield every reachable node children-first without recursion."""
        nodes = self.arena
        stack: list[tuple[int, bool]] = [(self.root_id, False)]
        while stack:
            node_id, expanded = stack.pop()
            node = nodes[node_id]
            if expanded or not node.children:
                yield node
                continue
            stack.append((node_id, True))
            for child_id in reversed(node.children):
                stack.append((child_id, False))


class TreeBuilder:
    """Attach listed children to parents and track directory closure.

    A directory closes once its own listing has been attached and every
    subdirectory it queued for expansion has closed. Closing cascades to
    ancestors, so the root closes last.
    """

    def __init__(self, arena: NodeArena) -> None:
        self.arena = arena
        self._open_subdirs: dict[int, int] = {}
        self._closed: set[int] = set()

    def attach(self, parent_id: int, child_ids: list[int]) -> None:
        parent = self.arena[parent_id]
        if parent_id in self._closed:
            raise ValueError(f"directory {parent_id} is already closed")
        for child_id in child_ids:
            self.arena[child_id].parent = parent_id
        parent.children.extend(child_ids)

    def expect(self, dir_id: int, pending_subdirs: int) -> list[int]:
        """Record that ``dir_id`` was listed and queued ``pending_subdirs`` children.

        Returns ids of directories that closed as a result.
        """
        if pending_subdirs > 0:
            self._open_subdirs[dir_id] = pending_subdirs
            return []
        return self.close(dir_id)

    def close(self, dir_id: int) -> list[int]:
        closed: list[int] = []
        current: int | None = dir_id
        while current is not None:
            self._open_subdirs.pop(current, None)
            self._closed.add(current)
            closed.append(current)
            parent_id = self.arena[current].parent
            if parent_id is None:
                break
            remaining = self._open_subdirs.get(parent_id)
            if remaining is None:
                break
            if remaining > 1:
                self._open_subdirs[parent_id] = remaining - 1
                break
            current = parent_id
        return closed

    def is_closed(self, dir_id: int) -> bool:
        return dir_id in self._closed

    @property
    def open_directories(self) -> int:
        return len(self._open_subdirs)


__all__ = ["NodeArena", "UsageTree", "TreeBuilder"]
