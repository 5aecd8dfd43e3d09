"""Bottom-up aggregation of directory totals with hardlink-aware block rules.

Rules per directory, summed over direct children:
- size: child directory totals, or the child's apparent size
- blocks: child directory totals, or the child's blocks when it owns them;
  links that share an owner's inode add nothing here
- shared blocks: the tally of every later link of an inode, credited to the
  owning link and therefore to the owner's parent
- unique blocks: the blocks counted above, from plain files and owning links
- items: ``1 + child items`` for every countable child

Ownership comes from the ``HardlinkRegistry`` filled during the scan. Trees
without one (imports) get a registry rebuilt from their node kinds.
"""

from __future__ import annotations

from .arena import UsageTree
from .hardlinks import HardlinkKey, HardlinkRegistry
from .types import Aggregate, Node, NodeKind

_LINKABLE_KINDS = frozenset({NodeKind.FILE, NodeKind.SPECIAL, NodeKind.HARDLINK})


def hardlink_key(node: Node) -> HardlinkKey:
    return HardlinkKey(node.device_id, node.inode)


def registry_for_tree(tree: UsageTree) -> HardlinkRegistry:
    """Rebuild hardlink ownership from node kinds.

    Non-``HARDLINK`` nodes register first so the link recorded as owner keeps
    its blocks; a ``HARDLINK`` node whose owner is missing becomes the owner.
    """
    registry = HardlinkRegistry()
    shared: list[Node] = []
    for node in tree.iter_postorder():
        if node.kind is NodeKind.HARDLINK:
            shared.append(node)
    shared_keys = {hardlink_key(node) for node in shared}
    for node in tree.iter_postorder():
        if node.kind in (NodeKind.FILE, NodeKind.SPECIAL):
            key = hardlink_key(node)
            if node.link_count > 1 or key in shared_keys:
                registry.register(key, node.id, node.allocated_blocks)
    for node in shared:
        registry.register(hardlink_key(node), node.id, node.allocated_blocks)
    return registry


def _leaf_aggregate(node: Node, hardlinks: HardlinkRegistry) -> Aggregate:
    if node.kind.is_placeholder:
        return Aggregate()
    shared = 0
    if node.kind in _LINKABLE_KINDS:
        info = hardlinks.get(hardlink_key(node))
        if info is not None:
            if info.first_node_id != node.id:
                return Aggregate(total_size=node.apparent_size)
            shared = info.shared_blocks
    return Aggregate(
        total_size=node.apparent_size,
        total_blocks=node.allocated_blocks,
        shared_blocks=shared,
        unique_blocks=node.allocated_blocks,
    )


def aggregate_directory(node: Node, children: list[Node], hardlinks: HardlinkRegistry) -> Aggregate:
    """Compute one directory aggregate from already-finalized children."""
    total_size = 0
    total_blocks = 0
    total_items = 0
    shared_blocks = 0
    unique_blocks = 0
    for child in children:
        if child.is_directory:
            part = child.aggregate
            if part is None:
                raise ValueError(f"child directory {child.id} of {node.id} is not aggregated")
        else:
            part = child.aggregate = _leaf_aggregate(child, hardlinks)
        total_size += part.total_size
        total_blocks += part.total_blocks
        shared_blocks += part.shared_blocks
        unique_blocks += part.unique_blocks
        if child.kind.is_countable:
            total_items += 1 + part.total_items
    return Aggregate(
        total_size=total_size,
        total_blocks=total_blocks,
        total_items=total_items,
        shared_blocks=shared_blocks,
        unique_blocks=unique_blocks,
    )


def aggregate_tree(tree: UsageTree, hardlinks: HardlinkRegistry | None = None) -> Aggregate:
    """Finalize every directory aggregate in one iterative post-order pass.

    Leaves get their own aggregate too, so an owning link carries the shared
    tally of its inode. The root always receives one, even as a single file.
    """
    if hardlinks is None:
        hardlinks = registry_for_tree(tree)
    arena = tree.arena
    for node in tree.iter_postorder():
        if node.is_directory:
            node.aggregate = aggregate_directory(node, arena.children(node), hardlinks)
    root = tree.root
    if root.aggregate is None:
        root.aggregate = _leaf_aggregate(root, hardlinks)
    return root.aggregate


__all__ = ["aggregate_directory", "aggregate_tree", "hardlink_key", "registry_for_tree"]
