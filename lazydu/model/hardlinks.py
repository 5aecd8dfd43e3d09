"""Concurrent (device, inode) registry deciding hardlink accounting ownership.

The first node registered for a key owns its blocks; every later node with
the same key is shared and its blocks are tallied on the owner's record
instead of being counted again. Which physical link wins depends on the
order workers discover them, so ownership is not stable across runs.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum

from ..errors import HardlinkRegistryError

DEFAULT_SHARD_COUNT = 16


@dataclass(frozen=True)
class HardlinkKey:
    device: int
    inode: int


class Ownership(Enum):
    OWNER = "owner"
    SHARED = "shared"


@dataclass
class HardlinkInfo:
    """Bookkeeping for the first-seen node of one physical file."""

    first_node_id: int
    accounted_blocks: int
    observed_link_count: int = 1
    shared_blocks: int = 0


@dataclass(frozen=True)
class HardlinkTotals:
    inodes: int
    links: int
    shared_blocks: int


class _Shard:
    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: dict[HardlinkKey, HardlinkInfo] = {}


class HardlinkRegistry:
    """Striped-lock map from ``HardlinkKey`` to ``HardlinkInfo``."""

    def __init__(self, shard_count: int = DEFAULT_SHARD_COUNT) -> None:
        if shard_count <= 0:
            raise ValueError("shard_count must be >= 1")
        self._shards = tuple(_Shard() for _ in range(shard_count))

    def _shard_for(self, key: HardlinkKey) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def register(self, key: HardlinkKey, node_id: int, blocks: int) -> Ownership:
        """Record one link of ``key`` and report whether it owns the blocks."""
        shard = self._shard_for(key)
        with shard.lock:
            info = shard.entries.get(key)
            if info is None:
                shard.entries[key] = HardlinkInfo(first_node_id=node_id, accounted_blocks=blocks)
                return Ownership.OWNER
            if info.first_node_id == node_id:
                raise HardlinkRegistryError(f"node {node_id} registered twice for {key}")
            info.observed_link_count += 1
            info.shared_blocks += blocks
            return Ownership.SHARED

    def claim(self, key: HardlinkKey, node_id: int) -> bool:
        """Return True only for the first claimant of ``key``.

        Used to visit each physical directory once when following symlinks.
        """
        return self.register(key, node_id, 0) is Ownership.OWNER

    def get(self, key: HardlinkKey) -> HardlinkInfo | None:
        shard = self._shard_for(key)
        with shard.lock:
            return shard.entries.get(key)

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def totals(self) -> HardlinkTotals:
        """Sum link and shared-block counts over every registered inode."""
        inodes = links = shared = 0
        for shard in self._shards:
            with shard.lock:
                for info in shard.entries.values():
                    inodes += 1
                    links += info.observed_link_count
                    shared += info.shared_blocks
        return HardlinkTotals(inodes, links, shared)


__all__ = [
    "DEFAULT_SHARD_COUNT",
    "HardlinkKey",
    "HardlinkInfo",
    "HardlinkRegistry",
    "HardlinkTotals",
    "Ownership",
]
