"""Resolved scan/display settings and persistent JSON config helpers.

Settings resolve as defaults < config file < command line. Config file access
is defensive: malformed or missing config falls back to defaults and write
failures are ignored.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from platformdirs import user_config_dir

from .errors import ConfigError

APP_NAME = "lazydu"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH


class SortColumn(Enum):
    NAME = "name"
    BLOCKS = "disk-usage"
    SIZE = "apparent-size"
    ITEMS = "itemcount"
    MTIME = "mtime"


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> SortOrder:
        return SortOrder.DESC if self is SortOrder.ASC else SortOrder.ASC


class SharedColumn(Enum):
    """Which extra block column the browser shows next to the size."""

    OFF = "off"
    SHARED = "shared"
    UNIQUE = "unique"

    def cycled(self) -> SharedColumn:
        members = list(SharedColumn)
        return members[(members.index(self) + 1) % len(members)]


_SORT_ALIASES: dict[str, SortColumn] = {
    "name": SortColumn.NAME,
    "disk-usage": SortColumn.BLOCKS,
    "blocks": SortColumn.BLOCKS,
    "size": SortColumn.BLOCKS,
    "apparent-size": SortColumn.SIZE,
    "asize": SortColumn.SIZE,
    "itemcount": SortColumn.ITEMS,
    "items": SortColumn.ITEMS,
    "mtime": SortColumn.MTIME,
}


def default_thread_count() -> int:
    return max(1, os.cpu_count() or 1)


@dataclass(frozen=True)
class ScanConfig:
    """Read-only settings consumed by the filter, walker and browser."""

    threads: int = 0
    same_fs: bool = False
    follow_symlinks: bool = False
    exclude_patterns: tuple[str, ...] = ()
    exclude_caches: bool = False
    exclude_kernfs: bool = False
    exclude_hidden: bool = False
    extended: bool = False
    sort_column: SortColumn = SortColumn.BLOCKS
    sort_order: SortOrder = SortOrder.DESC
    dirs_first: bool = False
    natural_sort: bool = True
    show_hidden: bool = True
    apparent_size: bool = False
    si: bool = False
    shared_column: SharedColumn = SharedColumn.OFF
    show_mtime: bool = False
    show_percent: bool = False
    confirm_quit: bool = False
    update_delay: float = 0.1

    @property
    def worker_count(self) -> int:
        return self.threads if self.threads > 0 else default_thread_count()

    def validated(self) -> ScanConfig:
        """Return a copy with thread count resolved; raise on invalid values."""
        if self.threads < 0:
            raise ConfigError("thread count must be >= 1")
        for pattern in self.exclude_patterns:
            if not pattern.strip():
                raise ConfigError("exclude patterns must not be empty")
        if self.update_delay < 0:
            raise ConfigError("update delay must be >= 0")
        return replace(self, threads=self.worker_count)


def parse_sort_spec(spec: str) -> tuple[SortColumn, SortOrder]:
    """Parse ``COLUMN`` or ``COLUMN-asc``/``COLUMN-desc``.

    Name sorts default to ascending, every other column to descending.
    """
    text = spec.strip().lower()
    order: SortOrder | None = None
    for suffix, parsed_order in (("-asc", SortOrder.ASC), ("-desc", SortOrder.DESC)):
        if text.endswith(suffix):
            text = text[: -len(suffix)]
            order = parsed_order
            break
    column = _SORT_ALIASES.get(text)
    if column is None:
        raise ConfigError(f"unknown sort column: {spec!r}")
    if order is None:
        order = SortOrder.ASC if column is SortColumn.NAME else SortOrder.DESC
    return column, order


def read_exclude_file(path: Path) -> list[str]:
    """Read exclude patterns, one per line; blank and ``#`` lines are skipped."""
    try:
        text = path.read_text(encoding="utf-8", errors="surrogateescape")
    except OSError as exc:
        raise ConfigError(f"cannot read exclude file '{path}': {exc.strerror or exc}") from exc
    patterns: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        patterns.append(stripped)
    return patterns


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON, ignoring write failures."""
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError):
        pass


_BOOL_KEYS: dict[str, str] = {
    "same_fs": "same_fs",
    "follow_symlinks": "follow_symlinks",
    "exclude_caches": "exclude_caches",
    "exclude_kernfs": "exclude_kernfs",
    "exclude_hidden": "exclude_hidden",
    "extended": "extended",
    "dirs_first": "dirs_first",
    "natural_sort": "natural_sort",
    "show_hidden": "show_hidden",
    "apparent_size": "apparent_size",
    "si": "si",
    "show_mtime": "show_mtime",
    "show_percent": "show_percent",
    "confirm_quit": "confirm_quit",
}


def config_overrides(data: dict[str, object]) -> dict[str, object]:
    """Translate raw config-file data into ``ScanConfig`` field overrides.

    Values of the wrong type are dropped rather than reported.
    """
    overrides: dict[str, object] = {}
    for key, field_name in _BOOL_KEYS.items():
        value = data.get(key)
        if isinstance(value, bool):
            overrides[field_name] = value

    shared = data.get("shared_column")
    if isinstance(shared, str) and shared in {item.value for item in SharedColumn}:
        overrides["shared_column"] = SharedColumn(shared)

    threads = data.get("threads")
    if isinstance(threads, int) and not isinstance(threads, bool) and threads > 0:
        overrides["threads"] = threads

    patterns = data.get("exclude")
    if isinstance(patterns, list):
        cleaned = tuple(item.strip() for item in patterns if isinstance(item, str) and item.strip())
        if cleaned:
            overrides["exclude_patterns"] = cleaned

    sort_spec = data.get("sort")
    if isinstance(sort_spec, str):
        try:
            column, order = parse_sort_spec(sort_spec)
        except ConfigError:
            pass
        else:
            overrides["sort_column"] = column
            overrides["sort_order"] = order
            sort_order = data.get("sort_order")
            if isinstance(sort_order, str) and sort_order in {"asc", "desc"}:
                overrides["sort_order"] = SortOrder(sort_order)
    return overrides


def load_scan_config(ignore_file: bool = False) -> ScanConfig:
    """Build defaults merged with the persisted config file."""
    config = ScanConfig()
    if ignore_file:
        return config
    return replace(config, **config_overrides(load_config()))


def save_sort_preference(column: SortColumn, order: SortOrder) -> None:
    """Persist the browser's sort column and direction."""
    config = load_config()
    config["sort"] = column.value
    config["sort_order"] = order.value
    save_config(config)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "ScanConfig",
    "SharedColumn",
    "SortColumn",
    "SortOrder",
    "config_overrides",
    "default_thread_count",
    "load_config",
    "load_scan_config",
    "parse_sort_spec",
    "read_exclude_file",
    "save_config",
    "save_sort_preference",
]
