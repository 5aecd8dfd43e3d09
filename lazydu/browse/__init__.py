"""Browsing layer: child ordering, key bindings, and the navigation state machine."""

from __future__ import annotations

from .sorting import SortOptions, natural_key, sort_nodes, sorted_children
from .state import (
    Action,
    BrowsingState,
    BrowsingView,
    ColumnOptions,
    Frame,
    NavigationController,
    QuitState,
    ScanningState,
    ScanningView,
)
from .keys import KeyBinding, KeyMap, browse_keymap, scan_keymap

__all__ = [
    "Action",
    "BrowsingState",
    "BrowsingView",
    "ColumnOptions",
    "Frame",
    "KeyBinding",
    "KeyMap",
    "NavigationController",
    "QuitState",
    "ScanningState",
    "ScanningView",
    "SortOptions",
    "browse_keymap",
    "natural_key",
    "scan_keymap",
    "sort_nodes",
    "sorted_children",
]
