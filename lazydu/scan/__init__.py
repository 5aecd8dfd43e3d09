"""Filesystem scanning: entry filters, parallel traversal, and background sessions."""

from __future__ import annotations

from .filters import Decision, FilterContext, KernelMounts, classify, has_cachedir_tag
from .walker import scan
from .session import ScanComplete, ScanFailed, ScanMessage, ScanProgress, ScanSession

__all__ = [
    "Decision",
    "FilterContext",
    "KernelMounts",
    "classify",
    "has_cachedir_tag",
    "scan",
    "ScanComplete",
    "ScanFailed",
    "ScanMessage",
    "ScanProgress",
    "ScanSession",
]
