"""Include/exclude decisions for traversal entries.

``classify`` is pure: everything it needs that lives on disk (the kernel
mount table, the ``CACHEDIR.TAG`` check) is gathered beforehand and passed in.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum

import psutil

from ..config import ScanConfig

logger = logging.getLogger(__name__)

CACHEDIR_TAG = "CACHEDIR.TAG"
CACHEDIR_SIGNATURE = b"Signature: 8a477f597d28d172789f06886806bc55"

KERNEL_FS_TYPES = frozenset(
    {
        "binfmt_misc",
        "bpf",
        "cgroup",
        "cgroup2",
        "configfs",
        "debugfs",
        "devpts",
        "efivarfs",
        "fusectl",
        "proc",
        "pstore",
        "securityfs",
        "selinuxfs",
        "sysfs",
        "tracefs",
    }
)


class Decision(Enum):
    INCLUDE = "include"
    EXCLUDE_PATTERN = "exclude-pattern"
    EXCLUDE_CACHE_DIR = "exclude-cache"
    EXCLUDE_KERNEL_FS = "exclude-kernfs"
    EXCLUDE_OTHER_FILESYSTEM = "exclude-otherfs"
    ERROR = "error"


@dataclass(frozen=True)
class KernelMounts:
    """Mount points of kernel pseudo-filesystems and their device ids."""

    paths: frozenset[str] = frozenset()
    devices: frozenset[int] = frozenset()


def load_kernel_mounts() -> KernelMounts:
    """Read pseudo-filesystem mounts from the system mount table.

    Returns an empty table when the mount table cannot be read.
    """
    try:
        partitions = psutil.disk_partitions(all=True)
    except (OSError, RuntimeError):
        logger.debug("mount table unavailable", exc_info=True)
        return KernelMounts()
    paths: set[str] = set()
    devices: set[int] = set()
    for partition in partitions:
        if partition.fstype not in KERNEL_FS_TYPES:
            continue
        paths.add(partition.mountpoint)
        try:
            devices.add(os.stat(partition.mountpoint).st_dev)
        except OSError:
            continue
    return KernelMounts(frozenset(paths), frozenset(devices))


@dataclass(frozen=True)
class FilterContext:
    """Per-scan filter inputs compiled once from ``ScanConfig``."""

    same_fs: bool = False
    exclude_caches: bool = False
    exclude_kernfs: bool = False
    exclude_hidden: bool = False
    patterns: tuple[re.Pattern[str], ...] = ()
    kernel_mounts: KernelMounts = field(default_factory=KernelMounts)

    @classmethod
    def from_config(cls, config: ScanConfig, kernel_mounts: KernelMounts | None = None) -> FilterContext:
        if kernel_mounts is None:
            kernel_mounts = load_kernel_mounts() if config.exclude_kernfs else KernelMounts()
        return cls(
            same_fs=config.same_fs,
            exclude_caches=config.exclude_caches,
            exclude_kernfs=config.exclude_kernfs,
            exclude_hidden=config.exclude_hidden,
            patterns=compile_patterns(config.exclude_patterns),
            kernel_mounts=kernel_mounts,
        )

    def matches_pattern(self, path: str) -> bool:
        if not self.patterns:
            return False
        basename = os.path.basename(path.rstrip(os.sep)) or path
        return any(pattern.match(path) or pattern.match(basename) for pattern in self.patterns)


def compile_patterns(patterns: tuple[str, ...] | list[str]) -> tuple[re.Pattern[str], ...]:
    """Compile shell globs (``*``, ``?``, ``[...]``) into anchored regexes."""
    return tuple(re.compile(fnmatch.translate(pattern)) for pattern in patterns)


def has_cachedir_tag(directory: str) -> bool:
    """Whether ``directory`` holds a ``CACHEDIR.TAG`` with the standard signature."""
    try:
        with open(os.path.join(directory, CACHEDIR_TAG), "rb") as handle:
            head = handle.read(len(CACHEDIR_SIGNATURE))
    except OSError:
        return False
    return head == CACHEDIR_SIGNATURE


def classify(
    path: str,
    metadata: os.stat_result | None,
    root_device: int | None,
    context: FilterContext,
    *,
    is_cache_dir: bool = False,
) -> Decision:
    """Decide whether one entry is scanned, excluded, or recorded as an error.

    Rules apply in priority order: missing metadata, other filesystem,
    kernel filesystem, cache directory, exclude patterns, hidden names.
    """
    if metadata is None:
        return Decision.ERROR
    if context.same_fs and (root_device is None or metadata.st_dev != root_device):
        return Decision.EXCLUDE_OTHER_FILESYSTEM
    if context.exclude_kernfs:
        mounts = context.kernel_mounts
        if metadata.st_dev in mounts.devices or path in mounts.paths:
            return Decision.EXCLUDE_KERNEL_FS
    if context.exclude_caches and is_cache_dir:
        return Decision.EXCLUDE_CACHE_DIR
    if context.matches_pattern(path):
        return Decision.EXCLUDE_PATTERN
    if context.exclude_hidden and os.path.basename(path).startswith("."):
        return Decision.EXCLUDE_PATTERN
    return Decision.INCLUDE


__all__ = [
    "CACHEDIR_SIGNATURE",
    "CACHEDIR_TAG",
    "KERNEL_FS_TYPES",
    "Decision",
    "FilterContext",
    "KernelMounts",
    "classify",
    "compile_patterns",
    "has_cachedir_tag",
    "load_kernel_mounts",
]
