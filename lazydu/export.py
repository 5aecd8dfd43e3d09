"""Export a finished usage tree and import it back without touching disk.

Two encodings share one document shape::

    {"format": "lazydu", "version": 1, "nodes": [NODE, ...]}
    NODE = {"parent", "kind", "name", "size", "blocks", "dev", "ino", "nlink",
            "extended"?, "error"?}

Nodes are listed in preorder; ``parent`` is the list index of the parent
node and is ``null`` only for the first (root) node.

``json`` is ASCII text. ``binary`` is ``MAGIC`` followed by one msgpack
document whose names are raw bytes. Aggregates are not stored; import
recomputes them.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, BinaryIO

import msgpack
from msgpack.exceptions import UnpackException

from .errors import ExportError, ImportFormatError
from .model import ExtendedInfo, Node, NodeArena, NodeKind, UsageTree, aggregate_tree

logger = logging.getLogger(__name__)

FORMAT_NAME = "lazydu"
FORMAT_VERSION = 1
MAGIC = b"LZDU\x01"
_EXTENDED_FIELDS = ("mtime", "uid", "gid", "mode")


def _node_fields(node: Node, parent: int | None, raw_names: bool) -> dict[str, Any]:
    data: dict[str, Any] = {
        "parent": parent,
        "kind": node.kind.value,
        "name": os.fsencode(node.name) if raw_names else node.name,
        "size": node.apparent_size,
        "blocks": node.allocated_blocks,
        "dev": node.device_id,
        "ino": node.inode,
        "nlink": node.link_count,
    }
    if node.extended is not None:
        data["extended"] = {
            name: getattr(node.extended, name)
            for name in _EXTENDED_FIELDS
            if getattr(node.extended, name) is not None
        }
    if node.error is not None:
        data["error"] = node.error
    return data


def tree_document(tree: UsageTree, raw_names: bool = False) -> dict[str, Any]:
    """Build the export document, listing nodes in preorder."""
    nodes: list[dict[str, Any]] = []
    stack: list[tuple[int, int | None]] = [(tree.root_id, None)]
    while stack:
        node_id, parent_index = stack.pop()
        node = tree.node(node_id)
        index = len(nodes)
        nodes.append(_node_fields(node, parent_index, raw_names))
        for child_id in reversed(node.children):
            stack.append((child_id, index))
    return {"format": FORMAT_NAME, "version": FORMAT_VERSION, "nodes": nodes}


def export_tree(tree: UsageTree, stream: BinaryIO, fmt: str) -> None:
    """Write ``tree`` to a binary stream as ``json`` or ``binary``."""
    if fmt == "json":
        payload = json.dumps(tree_document(tree), separators=(",", ":")).encode("ascii")
    elif fmt == "binary":
        payload = MAGIC + msgpack.packb(tree_document(tree, raw_names=True), use_bin_type=True)
    else:
        raise ExportError(f"unknown export format: {fmt!r}")
    try:
        stream.write(payload)
        stream.flush()
    except OSError as exc:
        raise ExportError(f"cannot write export: {exc.strerror or exc}") from exc
    logger.info("exported %d nodes as %s", len(tree.arena), fmt)


def _decode_document(data: bytes) -> dict[str, Any]:
    if data.startswith(MAGIC):
        try:
            document = msgpack.unpackb(data[len(MAGIC) :], raw=False)
        except (ValueError, UnpackException) as exc:
            raise ImportFormatError(f"corrupt binary export: {exc}") from exc
    else:
        try:
            document = json.loads(data.decode("utf-8", errors="surrogateescape"))
        except ValueError as exc:
            raise ImportFormatError(f"not a lazydu export: {exc}") from exc
    if not isinstance(document, dict) or document.get("format") != FORMAT_NAME:
        raise ImportFormatError("not a lazydu export")
    if document.get("version") != FORMAT_VERSION:
        raise ImportFormatError(f"unsupported export version: {document.get('version')!r}")
    nodes = document.get("nodes")
    if not isinstance(nodes, list) or not nodes:
        raise ImportFormatError("export has no nodes")
    return document


def _int_field(data: dict[str, Any], key: str) -> int:
    value = data.get(key, 0)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ImportFormatError(f"field {key!r} must be an integer")
    return value


def _create_node(arena: NodeArena, data: dict[str, Any]) -> Node:
    try:
        kind = NodeKind(data.get("kind"))
    except ValueError as exc:
        raise ImportFormatError(f"unknown node kind: {data.get('kind')!r}") from exc
    name = data.get("name")
    if isinstance(name, bytes):
        name = os.fsdecode(name)
    if not isinstance(name, str):
        raise ImportFormatError("node name must be a string")
    extended = None
    raw_extended = data.get("extended")
    if isinstance(raw_extended, dict):
        extended = ExtendedInfo(**{key: raw_extended.get(key) for key in _EXTENDED_FIELDS})
    error = data.get("error")
    return arena.create(
        kind,
        name,
        apparent_size=_int_field(data, "size"),
        allocated_blocks=_int_field(data, "blocks"),
        device_id=_int_field(data, "dev"),
        inode=_int_field(data, "ino"),
        link_count=_int_field(data, "nlink"),
        extended=extended,
        error=error if isinstance(error, str) else None,
    )


def import_tree(stream: BinaryIO) -> UsageTree:
    """Rebuild a tree from an export stream, auto-detecting the encoding."""
    document = _decode_document(stream.read())
    arena = NodeArena()
    for index, data in enumerate(document["nodes"]):
        if not isinstance(data, dict):
            raise ImportFormatError("node entries must be objects")
        parent = data.get("parent")
        if index == 0:
            if parent is not None:
                raise ImportFormatError("first node must be the root")
        elif not isinstance(parent, int) or isinstance(parent, bool) or not 0 <= parent < index:
            raise ImportFormatError(f"node {index} has an invalid parent reference")
        node = _create_node(arena, data)
        if parent is not None:
            node.parent = parent
            arena[parent].children.append(node.id)
    tree = UsageTree(arena, 0, arena[0].name)
    aggregate_tree(tree)
    logger.info("imported %d nodes", len(arena))
    return tree


def count_errors(tree: UsageTree) -> int:
    return sum(1 for node in tree.iter_postorder() if node.kind is NodeKind.ERROR)


__all__ = [
    "FORMAT_NAME",
    "FORMAT_VERSION",
    "MAGIC",
    "count_errors",
    "export_tree",
    "import_tree",
    "tree_document",
]
