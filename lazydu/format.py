"""Human-readable sizes, counts, and terminal-safe names."""

from __future__ import annotations

import time

import humanize

MTIME_FORMAT = "%Y-%m-%d %H:%M"


def format_size(num_bytes: int, si: bool = False) -> str:
    """Format a byte count in binary units (KiB) or SI units (kB) with ``si``."""
    return humanize.naturalsize(num_bytes, binary=not si, format="%.1f")


def format_count(count: int) -> str:
    return humanize.intcomma(count)


def format_percent(part: int, whole: int) -> str:
    if whole <= 0:
        return "0.0%"
    return f"{100.0 * part / whole:.1f}%"


def format_mtime(mtime: int | None) -> str:
    """Local modification time, or ``-`` when it was not collected."""
    if mtime is None:
        return "-"
    return time.strftime(MTIME_FORMAT, time.localtime(mtime))


def format_elapsed(seconds: float) -> str:
    whole = max(0, int(seconds))
    hours, rest = divmod(whole, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours:d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def escape_name(name: str) -> str:
    """Make a file name safe to print on a terminal.

    Undecodable bytes (surrogate escapes) render as ``\\xNN`` and control
    characters as ``^X``.
    """
    out: list[str] = []
    for ch in name:
        code = ord(ch)
        if 0xDC80 <= code <= 0xDCFF:
            out.append(f"\\x{code - 0xDC00:02x}")
        elif code < 0x20 or code == 0x7F:
            out.append("^" + chr(code ^ 0x40))
        else:
            out.append(ch)
    return "".join(out)


__all__ = [
    "escape_name",
    "format_count",
    "format_elapsed",
    "format_mtime",
    "format_percent",
    "format_size",
]
