"""Help panel content for the browsing screen.

Rendering helpers here are presentation-only and side-effect free.
"""

from __future__ import annotations

HELP_PANEL_LINES: tuple[str, ...] = (
    "\033[1;38;5;81mKEYS\033[0m",
    "\033[38;5;229mUp/Down\033[0m or \033[38;5;229mj/k\033[0m move  \033[38;5;229mPgUp/PgDn\033[0m page  \033[38;5;229mHome/End\033[0m first/last",
    "\033[38;5;229mRight/Enter/l\033[0m open directory  \033[38;5;229mLeft/Backspace/h\033[0m parent",
    "\033[38;5;229mn\033[0m name  \033[38;5;229ms\033[0m disk usage  \033[38;5;229mS\033[0m apparent size  \033[38;5;229mC\033[0m items  \033[38;5;229mM\033[0m mtime",
    "\033[38;5;229mr\033[0m reverse order  \033[38;5;229mt\033[0m directories first",
    "\033[38;5;229ma\033[0m apparent size/disk usage  \033[38;5;229m.\033[0m hidden entries",
    "\033[38;5;229mu\033[0m shared/unique column  \033[38;5;229m%\033[0m percent column  \033[38;5;229mm\033[0m mtime column",
    "\033[38;5;229m?\033[0m help  \033[38;5;229mq\033[0m quit",
)

HELP_PANEL_LEGEND_LINES: tuple[str, ...] = (
    "\033[1;38;5;81mMARKERS\033[0m",
    "\033[38;5;229m/\033[0m directory  \033[38;5;229m@\033[0m symlink  \033[38;5;229mH\033[0m hardlink  \033[38;5;229m=\033[0m special",
    "\033[38;5;229m!\033[0m error  \033[38;5;229m<\033[0m excluded  \033[38;5;229m>\033[0m other filesystem  \033[38;5;229m^\033[0m kernel fs",
)


def help_panel_lines() -> tuple[str, ...]:
    return HELP_PANEL_LINES + HELP_PANEL_LEGEND_LINES


def help_panel_row_count(max_lines: int, show_help: bool) -> int:
    """Compute visible help panel height constrained by terminal rows."""
    if not show_help:
        return 0
    if max_lines <= 1:
        return 0
    return min(len(help_panel_lines()), max_lines - 1)


__all__ = [
    "HELP_PANEL_LEGEND_LINES",
    "HELP_PANEL_LINES",
    "help_panel_lines",
    "help_panel_row_count",
]
