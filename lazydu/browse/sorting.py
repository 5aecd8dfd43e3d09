"""Ordering of a directory's children for display."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from ..config import ScanConfig, SortColumn, SortOrder
from ..model import Node, UsageTree

_DIGIT_RUN_RE = re.compile(r"(\d+)")


@dataclass(frozen=True)
class SortOptions:
    column: SortColumn = SortColumn.BLOCKS
    order: SortOrder = SortOrder.DESC
    dirs_first: bool = False
    natural: bool = True
    show_hidden: bool = True

    @classmethod
    def from_config(cls, config: ScanConfig) -> SortOptions:
        return cls(
            column=config.sort_column,
            order=config.sort_order,
            dirs_first=config.dirs_first,
            natural=config.natural_sort,
            show_hidden=config.show_hidden,
        )

    def with_column(self, column: SortColumn) -> SortOptions:
        """Select ``column``; selecting the active column flips the order."""
        if column is self.column:
            return replace(self, order=self.order.flipped())
        default_order = SortOrder.ASC if column is SortColumn.NAME else SortOrder.DESC
        return replace(self, column=column, order=default_order)

    def reversed(self) -> SortOptions:
        return replace(self, order=self.order.flipped())

    @property
    def indicator(self) -> str:
        arrow = "^" if self.order is SortOrder.ASC else "v"
        return f"{self.column.value}{arrow}"


def natural_key(name: str) -> tuple[tuple[int, int | str, str], ...]:
    """Sort key comparing digit runs numerically: file1 < file2 < file10."""
    parts = _DIGIT_RUN_RE.split(name)
    key: list[tuple[int, int | str, str]] = []
    for index, part in enumerate(parts):
        if not part:
            continue
        if index % 2:
            key.append((0, int(part), part))
        else:
            key.append((1, part.casefold(), part))
    return tuple(key)


def name_key(name: str, natural: bool) -> tuple[tuple[int, int | str, str], ...] | str:
    return natural_key(name) if natural else name


def _column_value(node: Node, column: SortColumn) -> int:
    if column is SortColumn.BLOCKS:
        return node.disk_usage
    if column is SortColumn.SIZE:
        return node.total_size
    if column is SortColumn.ITEMS:
        return node.total_items
    if column is SortColumn.MTIME:
        return node.mtime or 0
    return 0


def is_hidden(node: Node) -> bool:
    return node.name.startswith(".")


def sort_nodes(nodes: list[Node], options: SortOptions) -> list[Node]:
    """Return ``nodes`` ordered by ``options`` with ties broken by name."""
    if not options.show_hidden:
        nodes = [node for node in nodes if not is_hidden(node)]
    descending = options.order is SortOrder.DESC
    ordered = sorted(nodes, key=lambda node: name_key(node.name, options.natural))
    if options.column is SortColumn.NAME:
        if descending:
            ordered.reverse()
    else:
        column = options.column
        ordered.sort(key=lambda node: _column_value(node, column), reverse=descending)
    if options.dirs_first:
        ordered.sort(key=lambda node: not node.kind.is_directory_like)
    return ordered


def sorted_children(tree: UsageTree, node: Node, options: SortOptions) -> list[Node]:
    return sort_nodes(tree.children(node), options)


__all__ = [
    "SortOptions",
    "is_hidden",
    "name_key",
    "natural_key",
    "sort_nodes",
    "sorted_children",
]
