"""Rendering engine for the scanning and browsing terminal screens.

Frames are composed as complete ANSI strings from read-only view snapshots
and written in one ``os.write`` call; nothing here mutates navigation state.
"""

from __future__ import annotations

import os
from collections.abc import Iterable

from ..ansi import clip_ansi_line, fit_ansi_line
from ..browse.state import BrowsingView, ColumnOptions, ScanningView
from ..config import SharedColumn
from ..errors import RenderIOError
from ..format import escape_name, format_count, format_elapsed, format_mtime, format_percent, format_size
from ..model import Node, NodeKind
from .help import help_panel_lines, help_panel_row_count

BAR_WIDTH = 10
HEADER_ROWS = 2
STATUS_ROWS = 1
TITLE = "lazydu"

_KIND_STYLES = {
    NodeKind.DIRECTORY: "\033[1;38;5;81m",
    NodeKind.ERROR: "\033[38;5;203m",
    NodeKind.EXCLUDED: "\033[2m",
    NodeKind.OTHER_FILESYSTEM: "\033[2m",
    NodeKind.KERNEL_FILESYSTEM: "\033[2m",
    NodeKind.SYMLINK: "\033[38;5;141m",
}


def selected_with_ansi(text: str) -> str:
    """Apply selection styling without discarding existing ANSI colors."""
    if not text:
        return text

    # Keep reverse video active even when the text contains internal resets.
    return "\033[7m" + text.replace("\033[0m", "\033[0;7m") + "\033[0m"


def build_status_line(left_text: str, width: int, right_text: str = "│ ? Help") -> str:
    usable = max(1, width - 1)
    if usable <= len(right_text):
        return right_text[-usable:]
    left_limit = max(0, usable - len(right_text) - 1)
    left = left_text[:left_limit]
    gap = " " * (usable - len(left) - len(right_text))
    return f"{left}{gap}{right_text}"


def content_rows_for(height: int, show_help: bool) -> int:
    """Rows available for entry listing after header, status and help."""
    usable = max(1, height - HEADER_ROWS - STATUS_ROWS)
    return max(1, usable - help_panel_row_count(usable, show_help))


def bar_graph(value: int, largest: int, width: int = BAR_WIDTH) -> str:
    """Proportional ``#`` bar relative to the largest sibling."""
    if largest <= 0 or value <= 0:
        return " " * width
    filled = max(1, round(width * value / largest)) if value else 0
    filled = min(width, filled)
    return "#" * filled + " " * (width - filled)


def node_size(node: Node, apparent_size: bool) -> int:
    return node.total_size if apparent_size else node.disk_usage


def format_row(
    node: Node,
    largest: int,
    apparent_size: bool,
    si: bool,
    columns: ColumnOptions | None = None,
    parent_total: int = 0,
) -> str:
    """One listing row.

    Fields in order: marker, size, the optional shared/unique and percent
    columns, bar, item count, the optional mtime column, name, error text.
    """
    columns = columns if columns is not None else ColumnOptions()
    value = node_size(node, apparent_size)
    size_text = format_size(value, si)
    extra = ""
    if columns.shared is SharedColumn.SHARED:
        extra += f"{format_size(node.shared_usage, si):>10} "
    elif columns.shared is SharedColumn.UNIQUE:
        extra += f"{format_size(node.unique_usage, si):>10} "
    if columns.percent:
        extra += f"{format_percent(value, parent_total):>6} "
    mtime = f"{format_mtime(node.mtime):<16}  " if columns.mtime else ""
    items = format_count(node.total_items) if node.is_directory else ""
    name = escape_name(node.name)
    if node.is_directory:
        name += "/"
    style = _KIND_STYLES.get(node.kind, "")
    label = f"{style}{name}\033[0m" if style else name
    row = f"{node.kind.marker} {size_text:>10} {extra}[{bar_graph(value, largest)}] {items:>8}  {mtime}{label}"
    if node.kind is NodeKind.ERROR and node.error:
        row += f"  \033[38;5;203m({node.error})\033[0m"
    return row


def _header_lines(title: str, path_text: str, width: int) -> list[str]:
    header = build_status_line(f" {TITLE} ~ {title}", width)
    crumb = f"\033[1m--- {escape_name(path_text)} \033[0m"
    return [
        "\033[7m" + header + "\033[0m",
        fit_ansi_line(crumb + "-" * width, max(1, width - 1)),
    ]


def build_scanning_frame(view: ScanningView, width: int, height: int, elapsed: float, si: bool = False) -> str:
    progress = view.progress
    lines = _header_lines("scanning, press q to abort", view.root_path, width)
    body = [
        f"  Total items: {format_count(progress.total_entries)}",
        f"  Directories: {format_count(progress.directories)}",
        f"  Files:       {format_count(progress.files)}",
        f"  Size:        {format_size(progress.total_size, si)}",
        f"  Errors:      {format_count(progress.errors)}",
        f"  Elapsed:     {format_elapsed(elapsed)}",
        "",
        f"  Current: {escape_name(progress.current_path)}",
    ]
    lines.extend(clip_ansi_line(line, max(1, width - 1)) for line in body)
    return _compose(lines, height)


def build_browsing_frame(view: BrowsingView, width: int, height: int, si: bool = False) -> str:
    line_width = max(1, width - 1)
    current = view.current
    path_text = view.tree.full_path(current)
    lines = _header_lines("use the arrow keys to navigate, press ? for help", path_text, width)

    content_rows = content_rows_for(height, view.show_help)
    largest = max((node_size(node, view.apparent_size) for node in view.rows), default=0)
    parent_total = node_size(current, view.apparent_size)
    visible = view.rows[view.scroll_top : view.scroll_top + content_rows]
    if not view.rows:
        lines.append(clip_ansi_line("  (empty directory)", line_width))
    for offset, node in enumerate(visible):
        row = fit_ansi_line(
            format_row(node, largest, view.apparent_size, si, view.columns, parent_total),
            line_width,
        )
        if view.scroll_top + offset == view.selected_index:
            row = selected_with_ansi(row)
        lines.append(row)
    pad_to = HEADER_ROWS + content_rows
    while len(lines) < pad_to:
        lines.append("")

    if view.show_help:
        help_rows = help_panel_row_count(max(1, height - HEADER_ROWS - STATUS_ROWS), True)
        lines.extend(clip_ansi_line(line, line_width) for line in help_panel_lines()[:help_rows])

    aggregate = current.aggregate
    total_items = aggregate.total_items if aggregate is not None else 0
    status = (
        f" Total disk usage: {format_size(current.disk_usage, si)}"
        f"  Apparent size: {format_size(current.total_size, si)}"
        f"  Items: {format_count(total_items)}"
    )
    if view.columns.shared is SharedColumn.SHARED:
        status += f"  Shared: {format_size(current.shared_usage, si)}"
    elif view.columns.shared is SharedColumn.UNIQUE:
        status += f"  Unique: {format_size(current.unique_usage, si)}"
    if view.errors:
        status += f"  Errors: {format_count(view.errors)}"
    if view.confirming_quit:
        status = " Really quit? (y/N)"
    right = f"Sort: {view.sort.indicator} │ ? Help"
    lines.append("\033[7m" + build_status_line(status, width, right) + "\033[0m")
    return _compose(lines, height)


def _compose(lines: Iterable[str], height: int) -> str:
    out: list[str] = ["\033[H\033[J"]
    rows = list(lines)[: max(1, height)]
    out.append("\r\n".join(rows))
    return "".join(out)


def write_frame(frame: str, fd: int) -> None:
    """Write a composed frame to ``fd``; raise ``RenderIOError`` on failure."""
    data = frame.encode("utf-8", errors="replace")
    try:
        while data:
            written = os.write(fd, data)
            data = data[written:]
    except OSError as exc:
        raise RenderIOError(f"cannot write to terminal: {exc.strerror or exc}") from exc


__all__ = [
    "bar_graph",
    "build_browsing_frame",
    "build_scanning_frame",
    "build_status_line",
    "content_rows_for",
    "format_row",
    "selected_with_ansi",
    "write_frame",
]
