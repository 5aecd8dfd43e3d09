"""Terminal control helpers for the TUI session.

Owns raw-mode lifecycle and alternate-screen switching.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import termios
import tty

DEFAULT_TERMINAL_SIZE = (80, 24)


class TerminalController:
    """Manage the terminal mode transitions of one interactive session."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def enable_tui_mode(self) -> None:
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        # Enter alternate screen and hide cursor.
        os.write(self.stdout_fd, b"\x1b[?1049h\x1b[?25l")
        self._active = True

    def disable_tui_mode(self) -> None:
        self._active = False
        try:
            # Show cursor and restore the main screen buffer.
            os.write(self.stdout_fd, b"\x1b[?25h\x1b[?1049l")
        finally:
            termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    def size(self) -> tuple[int, int]:
        """Return ``(columns, rows)``, falling back to 80x24."""
        term = shutil.get_terminal_size(DEFAULT_TERMINAL_SIZE)
        return max(1, term.columns), max(1, term.lines)

    @contextlib.contextmanager
    def raw_mode(self):
        """Bracket code with TUI enter/exit; the terminal is restored on any exit."""
        try:
            self.enable_tui_mode()
            yield
        finally:
            self.disable_tui_mode()
