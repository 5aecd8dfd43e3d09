"""Command-line front door for lazydu.

Parses CLI options, resolves the scan configuration, and either runs the
interactive browser or a non-interactive scan/import with optional export.

Exit codes: 0 on a clean run, 1 on a fatal scan/import/export error, 2 on
invalid configuration (argparse usage errors).
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import BinaryIO

from . import __version__
from .config import (
    ScanConfig,
    SharedColumn,
    SortColumn,
    SortOrder,
    load_scan_config,
    parse_sort_spec,
    read_exclude_file,
)
from .errors import ConfigError, LazyduError
from .export import count_errors, export_tree, import_tree
from .format import format_count, format_size
from .model import StatsSnapshot, UsageTree
from .scan import scan

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
STDIO_PATH = "-"


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _sort_spec(value: str) -> tuple[SortColumn, SortOrder]:
    """argparse type for ``COLUMN[-asc|-desc]``."""
    try:
        return parse_sort_spec(value)
    except ConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _exclude_pattern(value: str) -> str:
    if not value.strip():
        raise argparse.ArgumentTypeError("exclude pattern must not be empty")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazydu",
        description="Scan disk usage in parallel and browse it in the terminal.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Directory to scan. Defaults to current directory.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    scan_group = parser.add_argument_group("scan options")
    scan_group.add_argument(
        "-x",
        "--one-file-system",
        dest="same_fs",
        action="store_const",
        const=True,
        default=None,
        help="Do not cross filesystem boundaries.",
    )
    scan_group.add_argument(
        "--cross-file-system",
        dest="same_fs",
        action="store_const",
        const=False,
        help="Cross filesystem boundaries (default).",
    )
    scan_group.add_argument(
        "-e",
        "--extended",
        action="store_const",
        const=True,
        default=None,
        help="Collect mtime, owner and mode for every entry.",
    )
    scan_group.add_argument(
        "-L",
        "--follow-symlinks",
        action="store_const",
        const=True,
        default=None,
        help="Follow symbolic links; each directory is still scanned once.",
    )
    scan_group.add_argument(
        "--exclude",
        action="append",
        default=[],
        type=_exclude_pattern,
        metavar="PATTERN",
        help="Exclude entries matching the shell glob PATTERN (repeatable).",
    )
    scan_group.add_argument(
        "-X",
        "--exclude-from",
        metavar="FILE",
        help="Read exclude patterns from FILE, one per line.",
    )
    scan_group.add_argument(
        "--exclude-caches",
        action="store_const",
        const=True,
        default=None,
        help="Exclude directories containing a CACHEDIR.TAG.",
    )
    scan_group.add_argument(
        "--exclude-kernfs",
        action="store_const",
        const=True,
        default=None,
        help="Exclude Linux pseudo filesystems (proc, sysfs, cgroup, ...).",
    )
    scan_group.add_argument(
        "--exclude-hidden",
        action="store_const",
        const=True,
        default=None,
        help="Exclude entries whose name starts with a dot.",
    )
    scan_group.add_argument(
        "-t",
        "--threads",
        type=_positive_int,
        default=None,
        help="Number of scan worker threads (default: CPU count).",
    )

    display_group = parser.add_argument_group("display options")
    display_group.add_argument(
        "--sort",
        type=_sort_spec,
        default=None,
        metavar="COLUMN[-asc|-desc]",
        help="Initial sort: name, disk-usage, apparent-size, itemcount or mtime.",
    )
    display_group.add_argument(
        "--group-directories-first",
        dest="dirs_first",
        action="store_const",
        const=True,
        default=None,
        help="List directories before files.",
    )
    display_group.add_argument(
        "--disable-natsort",
        dest="natural_sort",
        action="store_const",
        const=False,
        default=None,
        help="Compare names as plain strings.",
    )
    display_group.add_argument(
        "--apparent-size",
        action="store_const",
        const=True,
        default=None,
        help="Show apparent sizes instead of disk usage.",
    )
    display_group.add_argument(
        "--show-hidden",
        dest="show_hidden",
        action="store_const",
        const=True,
        default=None,
        help="Show entries whose name starts with a dot (default).",
    )
    display_group.add_argument(
        "--hide-hidden",
        dest="show_hidden",
        action="store_const",
        const=False,
        help="Hide entries whose name starts with a dot.",
    )
    display_group.add_argument(
        "--si",
        action="store_const",
        const=True,
        default=None,
        help="Use powers of 1000 instead of 1024.",
    )

    display_group.add_argument(
        "--shared-column",
        type=SharedColumn,
        choices=list(SharedColumn),
        default=None,
        metavar="{off,shared,unique}",
        help="Extra column with hardlink-shared or unique disk usage.",
    )
    display_group.add_argument(
        "--show-mtime",
        dest="show_mtime",
        action="store_const",
        const=True,
        default=None,
        help="Show a modification time column (needs -e).",
    )
    display_group.add_argument(
        "--hide-mtime",
        dest="show_mtime",
        action="store_const",
        const=False,
        help="Hide the modification time column (default).",
    )
    display_group.add_argument(
        "--show-percent",
        dest="show_percent",
        action="store_const",
        const=True,
        default=None,
        help="Show each entry's share of its parent directory.",
    )
    display_group.add_argument(
        "--hide-percent",
        dest="show_percent",
        action="store_const",
        const=False,
        help="Hide the percentage column (default).",
    )
    display_group.add_argument(
        "--confirm-quit",
        dest="confirm_quit",
        action="store_const",
        const=True,
        default=None,
        help="Ask before quitting the browser.",
    )
    display_group.add_argument(
        "--no-confirm-quit",
        dest="confirm_quit",
        action="store_const",
        const=False,
        help="Quit the browser without asking (default).",
    )

    io_group = parser.add_argument_group("import/export")
    io_group.add_argument("-o", dest="export_json", metavar="FILE", help="Export as JSON to FILE ('-' for stdout).")
    io_group.add_argument("-O", dest="export_binary", metavar="FILE", help="Export as binary to FILE ('-' for stdout).")
    io_group.add_argument("-f", dest="import_file", metavar="FILE", help="Import an export from FILE ('-' for stdin).")
    io_group.add_argument("-0", dest="no_progress", action="store_true", help="Scan without UI or progress output.")
    io_group.add_argument(
        "-1",
        dest="line_progress",
        action="store_true",
        help="Scan without UI, reporting progress on one stderr line.",
    )

    misc_group = parser.add_argument_group("misc")
    misc_group.add_argument("--ignore-config", action="store_true", help="Do not read the config file.")
    misc_group.add_argument("--log-file", metavar="FILE", help="Write log messages to FILE.")
    misc_group.add_argument("-v", "--verbose", action="store_true", help="Log debug messages.")
    return parser


_FLAG_FIELDS = (
    "same_fs",
    "extended",
    "follow_symlinks",
    "exclude_caches",
    "exclude_kernfs",
    "exclude_hidden",
    "threads",
    "dirs_first",
    "natural_sort",
    "apparent_size",
    "show_hidden",
    "si",
    "shared_column",
    "show_mtime",
    "show_percent",
    "confirm_quit",
)


def resolve_config(args: argparse.Namespace) -> ScanConfig:
    """Merge defaults < config file < command line; raise ``ConfigError``."""
    config = load_scan_config(ignore_file=args.ignore_config)
    overrides: dict[str, object] = {}
    for name in _FLAG_FIELDS:
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    if args.sort is not None:
        overrides["sort_column"], overrides["sort_order"] = args.sort

    patterns = list(config.exclude_patterns)
    patterns.extend(args.exclude)
    if args.exclude_from:
        patterns.extend(read_exclude_file(Path(args.exclude_from)))
    overrides["exclude_patterns"] = tuple(patterns)
    return replace(config, **overrides).validated()


def is_interactive(args: argparse.Namespace) -> bool:
    if args.no_progress or args.line_progress:
        return False
    if args.export_json or args.export_binary:
        return False
    return sys.stdout.isatty()


def configure_logging(verbose: bool, log_file: str | None, interactive: bool) -> None:
    """Route package logs to a file, to stderr, or nowhere.

    Nothing is logged to the terminal while the TUI owns it.
    """
    package_logger = logging.getLogger("lazydu")
    package_logger.handlers.clear()
    package_logger.propagate = False
    level = logging.DEBUG if verbose else logging.INFO
    package_logger.setLevel(level)
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    elif not interactive:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        handler.setFormatter(logging.Formatter("lazydu: %(message)s"))
    else:
        handler = logging.NullHandler()
    package_logger.addHandler(handler)


class LineProgress:
    """Single-line progress printer for ``-1`` runs."""

    def __init__(self, stream=None, si: bool = False) -> None:
        self.stream = stream if stream is not None else sys.stderr
        self.si = si
        self._printed = False

    def __call__(self, snapshot: StatsSnapshot) -> None:
        line = (
            f"\r{format_count(snapshot.total_entries)} items, "
            f"{format_size(snapshot.total_size, self.si)}, "
            f"{format_count(snapshot.errors)} errors"
        )
        self.stream.write(line + "\033[K")
        self.stream.flush()
        self._printed = True

    def finish(self) -> None:
        if self._printed:
            self.stream.write("\n")
            self.stream.flush()


def _read_import(source: str) -> UsageTree:
    if source == STDIO_PATH:
        return import_tree(sys.stdin.buffer)
    try:
        with open(source, "rb") as handle:
            return import_tree(handle)
    except OSError as exc:
        raise LazyduError(f"cannot open '{source}': {exc.strerror or exc}") from exc


def _write_export(tree: UsageTree, target: str, fmt: str) -> None:
    if target == STDIO_PATH:
        export_tree(tree, sys.stdout.buffer, fmt)
        return
    try:
        handle: BinaryIO = open(target, "wb")
    except OSError as exc:
        raise LazyduError(f"cannot create '{target}': {exc.strerror or exc}") from exc
    with handle:
        export_tree(tree, handle, fmt)


def summary_line(tree: UsageTree, errors: int, si: bool = False) -> str:
    root = tree.root
    aggregate = root.aggregate
    items = aggregate.total_items if aggregate is not None else 0
    return (
        f"{tree.root_path}: disk usage {format_size(root.disk_usage, si)}, "
        f"apparent size {format_size(root.total_size, si)}, "
        f"{format_count(items)} items, {format_count(errors)} errors"
    )


def run_batch(args: argparse.Namespace, root_path: str, config: ScanConfig) -> None:
    """Scan or import without the UI, export, and print a summary."""
    started = time.monotonic()
    if args.import_file is not None:
        tree = _read_import(args.import_file)
        errors = count_errors(tree)
    else:
        progress = LineProgress(si=config.si) if args.line_progress else None
        try:
            tree = scan(root_path, config, on_progress=progress)
        finally:
            if progress is not None:
                progress.finish()
        errors = count_errors(tree)

    if args.export_json:
        _write_export(tree, args.export_json, "json")
    if args.export_binary:
        _write_export(tree, args.export_binary, "binary")

    to_stdout = STDIO_PATH in (args.export_json, args.export_binary)
    if not to_stdout:
        print(summary_line(tree, errors, config.si))
    logger.info("finished in %.2fs", time.monotonic() - started)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run lazydu.

    Fatal errors end the process through ``SystemExit``: a message (exit 1)
    for scan/import/export failures, ``parser.error`` (exit 2) for bad
    configuration.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.import_file is not None and args.path is not None:
        parser.error("cannot combine a scan path with -f")
    try:
        config = resolve_config(args)
    except ConfigError as exc:
        parser.error(str(exc))

    interactive = is_interactive(args)
    try:
        configure_logging(args.verbose, args.log_file, interactive)
    except OSError as exc:
        parser.error(f"cannot open log file: {exc.strerror or exc}")

    root_path = os.path.abspath(args.path or os.getcwd())
    try:
        if not interactive:
            run_batch(args, root_path, config)
            return
        from .runtime import run_interactive

        tree = _read_import(args.import_file) if args.import_file is not None else None
        result = run_interactive(
            tree.root_path if tree is not None else root_path,
            config,
            tree=tree,
            errors=count_errors(tree) if tree is not None else 0,
            persist_sort=not args.ignore_config,
        )
    except LazyduError as exc:
        logger.error("%s", exc)
        raise SystemExit(f"lazydu: {exc}") from None
    if result.error is not None:
        raise SystemExit(f"lazydu: {result.error}")


__all__ = [
    "LineProgress",
    "build_parser",
    "configure_logging",
    "is_interactive",
    "main",
    "resolve_config",
    "run_batch",
    "summary_line",
]
