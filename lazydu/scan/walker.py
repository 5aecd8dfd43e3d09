"""Parallel directory traversal that builds a ``UsageTree``.

One coordinator (the calling thread) owns the ``TreeBuilder`` and a
``ThreadPoolExecutor``. Each submitted job lists one directory with a single
``os.scandir`` pass and returns the leaf nodes it created plus the included
subdirectories to expand next. The coordinator attaches finished listings in
completion order, so sibling order inside a directory is discovery order
while the set of nodes and the final aggregates do not depend on scheduling.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from ..config import ScanConfig
from ..errors import RootInaccessibleError, ScanCancelled, describe_os_error
from ..model import (
    ExtendedInfo,
    HardlinkKey,
    HardlinkRegistry,
    Node,
    NodeArena,
    NodeKind,
    Ownership,
    ScanStats,
    StatsSnapshot,
    TreeBuilder,
    UsageTree,
    aggregate_tree,
)
from .filters import Decision, FilterContext, classify, has_cachedir_tag

logger = logging.getLogger(__name__)

CANCEL_POLL_SECONDS = 0.05

ProgressCallback = Callable[[StatsSnapshot], None]

_PLACEHOLDER_KINDS = {
    Decision.EXCLUDE_PATTERN: NodeKind.EXCLUDED,
    Decision.EXCLUDE_CACHE_DIR: NodeKind.EXCLUDED,
    Decision.EXCLUDE_OTHER_FILESYSTEM: NodeKind.OTHER_FILESYSTEM,
    Decision.EXCLUDE_KERNEL_FS: NodeKind.KERNEL_FILESYSTEM,
}


def allocated_blocks(metadata: os.stat_result) -> int:
    """512-byte blocks allocated for an entry, estimated where unsupported."""
    blocks = getattr(metadata, "st_blocks", None)
    if blocks is None:
        return (metadata.st_size + 511) // 512
    return int(blocks)


def kind_for_mode(mode: int) -> NodeKind:
    if stat.S_ISDIR(mode):
        return NodeKind.DIRECTORY
    if stat.S_ISREG(mode):
        return NodeKind.FILE
    if stat.S_ISLNK(mode):
        return NodeKind.SYMLINK
    return NodeKind.SPECIAL


def extended_info(metadata: os.stat_result) -> ExtendedInfo:
    return ExtendedInfo(
        mtime=int(metadata.st_mtime),
        uid=metadata.st_uid,
        gid=metadata.st_gid,
        mode=metadata.st_mode,
    )


@dataclass
class DirectoryListing:
    """Result of listing one directory on a worker thread."""

    dir_id: int
    child_ids: list[int] = field(default_factory=list)
    subdirs: list[tuple[int, str]] = field(default_factory=list)
    error: str | None = None


class _Walker:
    def __init__(
        self,
        config: ScanConfig,
        stats: ScanStats,
        cancel_event: threading.Event,
        context: FilterContext,
    ) -> None:
        self.config = config
        self.stats = stats
        self.cancel_event = cancel_event
        self.context = context
        self.arena = NodeArena()
        self.builder = TreeBuilder(self.arena)
        self.hardlinks = HardlinkRegistry()
        self.visited_dirs = HardlinkRegistry()
        self.root_device: int | None = None

    def check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise ScanCancelled("scan cancelled")

    def error_node(self, name: str, path: str, exc: OSError) -> Node:
        reason = describe_os_error(exc)
        logger.debug("cannot access %s: %s", path, reason)
        self.stats.record_error()
        return self.arena.create(NodeKind.ERROR, name, error=reason)

    def create_root(self, root_path: str, metadata: os.stat_result) -> Node:
        self.root_device = metadata.st_dev
        kind = kind_for_mode(metadata.st_mode)
        node = self.arena.create(
            kind,
            root_path,
            apparent_size=metadata.st_size,
            allocated_blocks=allocated_blocks(metadata),
            device_id=metadata.st_dev,
            inode=metadata.st_ino,
            link_count=metadata.st_nlink,
            extended=extended_info(metadata) if self.config.extended else None,
        )
        if kind is NodeKind.DIRECTORY:
            self.stats.record_directory()
            if self.config.follow_symlinks:
                self.visited_dirs.claim(HardlinkKey(node.device_id, node.inode), node.id)
        else:
            self.stats.record_file(node.apparent_size, node.allocated_blocks)
        return node

    def build_entry(self, entry: os.DirEntry[str]) -> tuple[Node, bool]:
        """Create the node for one directory entry; report whether to recurse."""
        path = entry.path
        try:
            metadata = entry.stat(follow_symlinks=False)
        except OSError as exc:
            return self.error_node(entry.name, path, exc), False

        link_metadata = metadata
        if self.config.follow_symlinks and stat.S_ISLNK(metadata.st_mode):
            try:
                metadata = os.stat(path)
            except OSError as exc:
                return self.error_node(entry.name, path, exc), False

        is_dir = stat.S_ISDIR(metadata.st_mode)
        is_cache_dir = self.context.exclude_caches and is_dir and has_cachedir_tag(path)
        decision = classify(path, metadata, self.root_device, self.context, is_cache_dir=is_cache_dir)
        placeholder = _PLACEHOLDER_KINDS.get(decision)
        if placeholder is not None:
            self.stats.record_placeholder()
            return (
                self.arena.create(
                    placeholder,
                    entry.name,
                    device_id=metadata.st_dev,
                    inode=metadata.st_ino,
                ),
                False,
            )

        kind = kind_for_mode(metadata.st_mode)
        blocks = allocated_blocks(metadata)
        node = self.arena.create(
            kind,
            entry.name,
            apparent_size=metadata.st_size,
            allocated_blocks=blocks,
            device_id=metadata.st_dev,
            inode=metadata.st_ino,
            link_count=metadata.st_nlink,
            extended=extended_info(metadata) if self.config.extended else None,
        )

        if kind is NodeKind.DIRECTORY:
            if self.config.follow_symlinks:
                key = HardlinkKey(metadata.st_dev, metadata.st_ino)
                if not self.visited_dirs.claim(key, node.id):
                    # Already visited through another path; keep the link itself.
                    node.kind = NodeKind.SYMLINK
                    node.apparent_size = link_metadata.st_size
                    node.allocated_blocks = allocated_blocks(link_metadata)
                    self.stats.record_file(node.apparent_size, node.allocated_blocks)
                    return node, False
            self.stats.record_directory()
            return node, True

        accounted = blocks
        if metadata.st_nlink > 1 or self.config.follow_symlinks:
            key = HardlinkKey(metadata.st_dev, metadata.st_ino)
            if self.hardlinks.register(key, node.id, blocks) is Ownership.SHARED:
                node.kind = NodeKind.HARDLINK
                accounted = 0
        self.stats.record_file(metadata.st_size, accounted)
        return node, False

    def list_directory(self, dir_id: int, path: str) -> DirectoryListing:
        self.check_cancelled()
        self.stats.set_current_path(path)
        listing = DirectoryListing(dir_id)
        try:
            with os.scandir(path) as iterator:
                entries = list(iterator)
        except OSError as exc:
            listing.error = describe_os_error(exc)
            logger.debug("cannot list %s: %s", path, listing.error)
            return listing
        for entry in entries:
            self.check_cancelled()
            node, recurse = self.build_entry(entry)
            listing.child_ids.append(node.id)
            if recurse:
                listing.subdirs.append((node.id, entry.path))
        return listing

    def mark_listing_failed(self, listing: DirectoryListing) -> None:
        node = self.arena[listing.dir_id]
        node.kind = NodeKind.ERROR
        node.error = listing.error
        node.apparent_size = 0
        node.allocated_blocks = 0
        self.stats.record_error(new_entry=False)

    def run(self, root: Node, root_path: str, on_progress: ProgressCallback | None) -> None:
        executor = ThreadPoolExecutor(
            max_workers=self.config.worker_count,
            thread_name_prefix="lazydu-scan",
        )
        pending: dict[Future[DirectoryListing], int] = {}
        last_progress = 0.0
        try:
            pending[executor.submit(self.list_directory, root.id, root_path)] = root.id
            while pending:
                self.check_cancelled()
                done, _ = wait(pending, timeout=CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)
                for future in done:
                    pending.pop(future)
                    listing = future.result()
                    if listing.error is not None:
                        self.mark_listing_failed(listing)
                        self.builder.expect(listing.dir_id, 0)
                        continue
                    self.builder.attach(listing.dir_id, listing.child_ids)
                    for subdir_id, subdir_path in listing.subdirs:
                        pending[executor.submit(self.list_directory, subdir_id, subdir_path)] = subdir_id
                    self.builder.expect(listing.dir_id, len(listing.subdirs))
                if on_progress is not None:
                    now = time.monotonic()
                    if now - last_progress >= self.config.update_delay:
                        last_progress = now
                        on_progress(self.stats.snapshot())
            self.check_cancelled()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        if not self.builder.is_closed(root.id):
            raise RuntimeError(f"scan drained with {self.builder.open_directories} directories still open")


def scan(
    root_path: str | os.PathLike[str],
    config: ScanConfig,
    *,
    stats: ScanStats | None = None,
    cancel_event: threading.Event | None = None,
    on_progress: ProgressCallback | None = None,
) -> UsageTree:
    """Scan ``root_path`` and return the finalized, aggregated usage tree.

    Raises ``RootInaccessibleError`` when the root cannot be stat'ed and
    ``ScanCancelled`` when ``cancel_event`` is set before the walk drains.
    Per-entry failures are recorded as ERROR nodes instead of raising.
    """
    path = os.path.abspath(os.fspath(root_path))
    stats = stats if stats is not None else ScanStats()
    cancel_event = cancel_event if cancel_event is not None else threading.Event()
    try:
        metadata = os.stat(path)
    except OSError as exc:
        raise RootInaccessibleError(path, describe_os_error(exc)) from exc

    started = time.monotonic()
    logger.info("scanning %s with %d workers", path, config.worker_count)
    walker = _Walker(config, stats, cancel_event, FilterContext.from_config(config))
    root = walker.create_root(path, metadata)
    if root.kind is NodeKind.DIRECTORY:
        try:
            walker.run(root, path, on_progress)
        except ScanCancelled:
            logger.info("scan of %s cancelled", path)
            raise

    tree = UsageTree(walker.arena, root.id, path)
    aggregate_tree(tree, walker.hardlinks)
    links = walker.hardlinks.totals()
    logger.debug(
        "%d multiply linked inodes seen through %d links, %d shared blocks",
        links.inodes,
        links.links,
        links.shared_blocks,
    )
    stats.freeze()
    snapshot = stats.snapshot()
    logger.info(
        "scanned %s: %d entries, %d errors in %.2fs",
        path,
        snapshot.total_entries,
        snapshot.errors,
        time.monotonic() - started,
    )
    if on_progress is not None:
        on_progress(snapshot)
    return tree


__all__ = [
    "DirectoryListing",
    "ProgressCallback",
    "allocated_blocks",
    "extended_info",
    "kind_for_mode",
    "scan",
]
