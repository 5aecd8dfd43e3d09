"""Tests for parallel traversal against real temporary directory trees."""

from __future__ import annotations

import os
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from lazydu.config import ScanConfig
from lazydu.errors import RootInaccessibleError, ScanCancelled
from lazydu.model import NodeKind, ScanStats, UsageTree
from lazydu.scan import walker
from lazydu.scan.filters import CACHEDIR_SIGNATURE, Decision
from lazydu.scan.walker import scan


def child_named(tree: UsageTree, parent_path: str, name: str):
    node = tree.root
    for part in [p for p in parent_path.split("/") if p]:
        node = next(child for child in tree.children(node) if child.name == part)
    return next(child for child in tree.children(node) if child.name == name)


def write_bytes(path: Path, size: int) -> None:
    path.write_bytes(b"x" * size)


class WalkerScanTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "root"
        self.root.mkdir()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_sizes_items_and_pattern_exclusion(self) -> None:
        sub = self.root / "sub"
        sub.mkdir()
        write_bytes(sub / "a", 100)
        write_bytes(sub / "b", 200)
        write_bytes(sub / "c", 300)
        write_bytes(self.root / "skip.log", 999)
        stats = ScanStats()

        tree = scan(self.root, ScanConfig(threads=2, exclude_patterns=("*.log",)), stats=stats)

        root = tree.root
        assert root.aggregate is not None
        self.assertEqual(root.aggregate.total_size, 600)
        self.assertEqual(root.aggregate.total_items, 4)
        self.assertEqual(stats.snapshot().errors, 0)
        self.assertTrue(stats.snapshot().complete)
        skipped = child_named(tree, "", "skip.log")
        self.assertIs(skipped.kind, NodeKind.EXCLUDED)
        self.assertEqual(skipped.apparent_size, 0)
        expected_blocks = sum(os.stat(sub / name).st_blocks for name in ("a", "b", "c"))
        self.assertEqual(root.aggregate.total_blocks, expected_blocks)

    def test_excluded_directory_is_not_recursed(self) -> None:
        skipped = self.root / "node_modules"
        skipped.mkdir()
        write_bytes(skipped / "big", 5000)

        tree = scan(self.root, ScanConfig(threads=1, exclude_patterns=("node_modules",)))

        node = child_named(tree, "", "node_modules")
        self.assertIs(node.kind, NodeKind.EXCLUDED)
        self.assertEqual(node.children, [])
        assert tree.root.aggregate is not None
        self.assertEqual(tree.root.aggregate.total_size, 0)
        self.assertEqual(tree.root.aggregate.total_items, 0)

    def test_hardlinks_count_blocks_once(self) -> None:
        left = self.root / "left"
        right = self.root / "right"
        left.mkdir()
        right.mkdir()
        write_bytes(left / "one", 8192)
        os.link(left / "one", right / "two")
        blocks = os.stat(left / "one").st_blocks

        tree = scan(self.root, ScanConfig(threads=4))

        kinds = sorted(
            [child_named(tree, "left", "one").kind.value, child_named(tree, "right", "two").kind.value]
        )
        self.assertEqual(kinds, ["file", "hardlink"])
        aggregate = tree.root.aggregate
        assert aggregate is not None
        self.assertEqual(aggregate.total_blocks, blocks)
        self.assertEqual(aggregate.shared_blocks, blocks)
        self.assertEqual(aggregate.unique_blocks, blocks)
        self.assertEqual(aggregate.total_size, 8192 * 2)
        owner_parent = next(
            node for node in (child_named(tree, "", "left"), child_named(tree, "", "right"))
            if any(child.kind is NodeKind.FILE for child in tree.children(node))
        )
        link_parent = next(
            node for node in (child_named(tree, "", "left"), child_named(tree, "", "right"))
            if node is not owner_parent
        )
        assert owner_parent.aggregate is not None and link_parent.aggregate is not None
        self.assertEqual(owner_parent.aggregate.shared_blocks, blocks)
        self.assertEqual(owner_parent.aggregate.unique_blocks, blocks)
        self.assertEqual(link_parent.aggregate.total_blocks, 0)
        self.assertEqual(link_parent.aggregate.shared_blocks, 0)

    def test_followed_files_are_counted_once(self) -> None:
        real = self.root / "real"
        real.mkdir()
        write_bytes(real / "data", 4096)
        os.symlink(real / "data", self.root / "alias")
        blocks = os.stat(real / "data").st_blocks

        tree = scan(self.root, ScanConfig(threads=2, follow_symlinks=True))

        aggregate = tree.root.aggregate
        assert aggregate is not None
        self.assertEqual(aggregate.total_blocks, blocks)
        self.assertEqual(aggregate.total_size, 4096 * 2)

    def test_symlinks_are_not_followed_by_default(self) -> None:
        real = self.root / "real"
        real.mkdir()
        write_bytes(real / "data", 1000)
        os.symlink(real, self.root / "link")

        tree = scan(self.root, ScanConfig(threads=2))

        link = child_named(tree, "", "link")
        self.assertIs(link.kind, NodeKind.SYMLINK)
        self.assertEqual(link.children, [])
        assert tree.root.aggregate is not None
        self.assertEqual(tree.root.aggregate.total_items, 3)

    def test_follow_symlinks_visits_each_directory_once(self) -> None:
        real = self.root / "real"
        real.mkdir()
        write_bytes(real / "data", 1000)
        os.symlink(real, self.root / "alias")
        os.symlink(self.root, real / "loop")

        tree = scan(self.root, ScanConfig(threads=2, follow_symlinks=True))

        kinds = sorted(
            [child_named(tree, "", "real").kind.value, child_named(tree, "", "alias").kind.value]
        )
        self.assertEqual(kinds, ["dir", "symlink"])
        assert tree.root.aggregate is not None
        self.assertEqual(
            sum(1 for node in tree.iter_postorder() if node.name == "data"),
            1,
        )
        loop_nodes = [node for node in tree.iter_postorder() if node.name == "loop"]
        self.assertTrue(all(node.kind is NodeKind.SYMLINK for node in loop_nodes))

    def test_broken_symlink_under_follow_is_error_node(self) -> None:
        os.symlink(self.root / "missing", self.root / "dangling")
        stats = ScanStats()

        tree = scan(self.root, ScanConfig(threads=1, follow_symlinks=True), stats=stats)

        node = child_named(tree, "", "dangling")
        self.assertIs(node.kind, NodeKind.ERROR)
        self.assertTrue(node.error)
        self.assertEqual(stats.snapshot().errors, 1)

    def test_unlistable_directory_becomes_error_node(self) -> None:
        locked = self.root / "locked"
        locked.mkdir()
        write_bytes(locked / "secret", 50)
        write_bytes(self.root / "ok", 10)
        real_scandir = os.scandir

        def guarded_scandir(path):
            if os.fspath(path) == str(locked):
                raise PermissionError(13, "Permission denied")
            return real_scandir(path)

        stats = ScanStats()
        with mock.patch("lazydu.scan.walker.os.scandir", side_effect=guarded_scandir):
            tree = scan(self.root, ScanConfig(threads=2), stats=stats)

        node = child_named(tree, "", "locked")
        self.assertIs(node.kind, NodeKind.ERROR)
        self.assertEqual(node.error, "Permission denied")
        self.assertEqual(node.children, [])
        snapshot = stats.snapshot()
        self.assertEqual(snapshot.errors, 1)
        assert tree.root.aggregate is not None
        self.assertEqual(tree.root.aggregate.total_size, 10)
        self.assertEqual(tree.root.aggregate.total_items, 1)

    def test_other_filesystem_is_single_placeholder(self) -> None:
        mount = self.root / "mnt"
        mount.mkdir()
        write_bytes(mount / "remote", 4000)
        write_bytes(self.root / "local", 40)
        real_classify = walker.classify

        def fake_classify(path, metadata, root_device, context, *, is_cache_dir=False):
            if path == str(mount):
                return Decision.EXCLUDE_OTHER_FILESYSTEM
            return real_classify(path, metadata, root_device, context, is_cache_dir=is_cache_dir)

        with mock.patch("lazydu.scan.walker.classify", side_effect=fake_classify):
            tree = scan(self.root, ScanConfig(threads=2, same_fs=True))

        node = child_named(tree, "", "mnt")
        self.assertIs(node.kind, NodeKind.OTHER_FILESYSTEM)
        self.assertEqual(node.children, [])
        assert tree.root.aggregate is not None
        self.assertEqual(tree.root.aggregate.total_size, 40)
        self.assertEqual(tree.root.aggregate.total_items, 1)

    def test_cache_directories_excluded_when_enabled(self) -> None:
        cache = self.root / "cache"
        cache.mkdir()
        (cache / "CACHEDIR.TAG").write_bytes(CACHEDIR_SIGNATURE + b"\n")
        write_bytes(cache / "blob", 3000)

        included = scan(self.root, ScanConfig(threads=1))
        excluded = scan(self.root, ScanConfig(threads=1, exclude_caches=True))

        self.assertIs(child_named(included, "", "cache").kind, NodeKind.DIRECTORY)
        self.assertIs(child_named(excluded, "", "cache").kind, NodeKind.EXCLUDED)
        assert excluded.root.aggregate is not None
        self.assertEqual(excluded.root.aggregate.total_size, 0)

    def test_extended_metadata_is_collected_on_request(self) -> None:
        write_bytes(self.root / "f", 1)

        plain = scan(self.root, ScanConfig(threads=1))
        extended = scan(self.root, ScanConfig(threads=1, extended=True))

        self.assertIsNone(child_named(plain, "", "f").extended)
        info = child_named(extended, "", "f").extended
        assert info is not None
        self.assertEqual(info.mtime, int(os.stat(self.root / "f").st_mtime))
        self.assertEqual(info.uid, os.stat(self.root / "f").st_uid)

    def test_results_do_not_depend_on_worker_count(self) -> None:
        for index in range(5):
            branch = self.root / f"dir{index}"
            branch.mkdir()
            for leaf in range(4):
                write_bytes(branch / f"f{leaf}", 10 * (index + 1) + leaf)

        single = scan(self.root, ScanConfig(threads=1)).root.aggregate
        parallel = scan(self.root, ScanConfig(threads=8)).root.aggregate

        self.assertEqual(single, parallel)

    def test_progress_callback_receives_final_snapshot(self) -> None:
        write_bytes(self.root / "f", 1)
        snapshots = []

        scan(self.root, ScanConfig(threads=1), on_progress=snapshots.append)

        self.assertTrue(snapshots)
        self.assertTrue(snapshots[-1].complete)
        self.assertEqual(snapshots[-1].files, 1)

    def test_cancelled_scan_raises(self) -> None:
        write_bytes(self.root / "f", 1)
        cancel_event = threading.Event()
        cancel_event.set()

        with self.assertRaises(ScanCancelled):
            scan(self.root, ScanConfig(threads=1), cancel_event=cancel_event)

    def test_cancel_during_walk_stops_before_completion(self) -> None:
        for index in range(30):
            branch = self.root / f"dir{index:02d}"
            branch.mkdir()
            write_bytes(branch / "f", 10)
        cancel_event = threading.Event()
        snapshots = []

        def cancel_on_first_progress(snapshot) -> None:
            snapshots.append(snapshot)
            cancel_event.set()

        stats = ScanStats()
        with self.assertRaises(ScanCancelled):
            scan(
                self.root,
                ScanConfig(threads=1, update_delay=0),
                stats=stats,
                cancel_event=cancel_event,
                on_progress=cancel_on_first_progress,
            )

        self.assertEqual(len(snapshots), 1)
        self.assertFalse(snapshots[0].complete)
        self.assertFalse(stats.snapshot().complete)

    def test_stats_total_matches_root_aggregate(self) -> None:
        sub = self.root / "sub"
        sub.mkdir()
        write_bytes(sub / "a", 700)
        write_bytes(self.root / "b", 300)
        locked = self.root / "locked"
        locked.mkdir()
        real_scandir = os.scandir

        def guarded_scandir(path):
            if os.fspath(path) == str(locked):
                raise PermissionError(13, "Permission denied")
            return real_scandir(path)

        stats = ScanStats()
        with mock.patch("lazydu.scan.walker.os.scandir", side_effect=guarded_scandir):
            tree = scan(self.root, ScanConfig(threads=2), stats=stats)

        assert tree.root.aggregate is not None
        snapshot = stats.snapshot()
        self.assertEqual(snapshot.total_size, 1000)
        self.assertEqual(snapshot.total_size, tree.root.aggregate.total_size)
        self.assertEqual(snapshot.total_blocks, tree.root.aggregate.total_blocks)

    def test_missing_root_is_fatal(self) -> None:
        with self.assertRaises(RootInaccessibleError):
            scan(self.root / "does-not-exist", ScanConfig(threads=1))

    def test_file_root_produces_single_node_tree(self) -> None:
        target = self.root / "single"
        write_bytes(target, 321)

        tree = scan(target, ScanConfig(threads=1))

        self.assertIs(tree.root.kind, NodeKind.FILE)
        assert tree.root.aggregate is not None
        self.assertEqual(tree.root.aggregate.total_size, 321)
        self.assertEqual(tree.root_path, str(target))


if __name__ == "__main__":
    unittest.main()
