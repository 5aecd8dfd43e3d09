"""Domain model for disk-usage trees.

This package contains non-UI tree primitives:
- node datatypes and the id-addressed node arena
- scan-wide statistics counters
- the hardlink ownership registry
- structural tree building and bottom-up aggregation
"""

from __future__ import annotations

from .types import BLOCK_SIZE, Aggregate, ExtendedInfo, Node, NodeKind
from .arena import NodeArena, TreeBuilder, UsageTree
from .stats import ScanStats, StatsSnapshot
from .hardlinks import HardlinkInfo, HardlinkKey, HardlinkRegistry, HardlinkTotals, Ownership
from .aggregate import aggregate_directory, aggregate_tree, hardlink_key, registry_for_tree

__all__ = [
    "BLOCK_SIZE",
    "Aggregate",
    "ExtendedInfo",
    "Node",
    "NodeKind",
    "NodeArena",
    "TreeBuilder",
    "UsageTree",
    "ScanStats",
    "StatsSnapshot",
    "HardlinkInfo",
    "HardlinkKey",
    "HardlinkRegistry",
    "HardlinkTotals",
    "Ownership",
    "aggregate_directory",
    "aggregate_tree",
    "hardlink_key",
    "registry_for_tree",
]
