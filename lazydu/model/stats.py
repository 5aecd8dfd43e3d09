"""Scan-wide counters shared by traversal workers and progress reporting."""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class StatsSnapshot:
    """Immutable copy of ``ScanStats`` counters at one instant."""

    total_entries: int = 0
    directories: int = 0
    files: int = 0
    errors: int = 0
    total_size: int = 0
    total_blocks: int = 0
    current_path: str = ""
    complete: bool = False


class ScanStats:
    """Thread-safe monotonically increasing counters for one scan.

    Workers record entries while the foreground polls ``snapshot()``. Once
    ``freeze()`` is called the counters stop changing, so late updates from
    workers that lost a race with completion are dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_entries = 0
        self._directories = 0
        self._files = 0
        self._errors = 0
        self._total_size = 0
        self._total_blocks = 0
        self._current_path = ""
        self._frozen = False

    def record_directory(self) -> None:
        """Count one directory; its own size is left out like in aggregates."""
        with self._lock:
            if self._frozen:
                return
            self._total_entries += 1
            self._directories += 1

    def record_file(self, size: int, blocks: int) -> None:
        """Count one non-directory entry; ``blocks`` is 0 for shared hardlinks."""
        with self._lock:
            if self._frozen:
                return
            self._total_entries += 1
            self._files += 1
            self._total_size += size
            self._total_blocks += blocks

    def record_placeholder(self) -> None:
        """Count an excluded or out-of-filesystem entry."""
        with self._lock:
            if self._frozen:
                return
            self._total_entries += 1

    def record_error(self, new_entry: bool = True) -> None:
        """Count one failure; ``new_entry=False`` for an already counted entry."""
        with self._lock:
            if self._frozen:
                return
            if new_entry:
                self._total_entries += 1
            self._errors += 1

    def set_current_path(self, path: str) -> None:
        with self._lock:
            if not self._frozen:
                self._current_path = path

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        with self._lock:
            return self._frozen

    @property
    def errors(self) -> int:
        with self._lock:
            return self._errors

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                total_entries=self._total_entries,
                directories=self._directories,
                files=self._files,
                errors=self._errors,
                total_size=self._total_size,
                total_blocks=self._total_blocks,
                current_path=self._current_path,
                complete=self._frozen,
            )


__all__ = ["ScanStats", "StatsSnapshot"]
