"""Runtime composition for the interactive session.

Wires the scan session, navigation controller, terminal controller and
event loop together and reports how the session ended.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

from ..browse import NavigationController
from ..config import ScanConfig, save_sort_preference
from ..errors import LazyduError
from ..model import UsageTree
from ..scan import ScanSession
from ..terminal import TerminalController
from .loop import RuntimeLoopOptions, run_main_loop

logger = logging.getLogger(__name__)

TTY_PATH = "/dev/tty"


@dataclass(frozen=True)
class SessionResult:
    """Outcome of an interactive session; ``error`` is set on scan failure."""

    error: str | None = None
    cancelled: bool = False


def _open_input_fd() -> tuple[int, bool]:
    """Return an fd to read keys from and whether it must be closed afterwards."""
    stdin = sys.stdin
    if stdin is not None and stdin.isatty():
        return stdin.fileno(), False
    try:
        return os.open(TTY_PATH, os.O_RDONLY), True
    except OSError as exc:
        raise LazyduError(f"no terminal available for interactive mode: {exc.strerror or exc}") from exc


def run_interactive(
    root_path: str,
    config: ScanConfig,
    *,
    tree: UsageTree | None = None,
    errors: int = 0,
    persist_sort: bool = True,
) -> SessionResult:
    """Scan ``root_path`` (or browse ``tree``) in the terminal UI."""
    on_sort_change = save_sort_preference if persist_sort else None
    stdin_fd, close_stdin = _open_input_fd()
    session: ScanSession | None = None
    try:
        terminal = TerminalController(stdin_fd, sys.stdout.fileno())
        if tree is None:
            session = ScanSession(root_path, config)
            controller = NavigationController(
                config,
                root_path,
                on_cancel=session.cancel,
                on_sort_change=on_sort_change,
            )
            session.start()
        else:
            controller = NavigationController.for_tree(
                tree,
                config,
                errors=errors,
                on_sort_change=on_sort_change,
            )
        run_main_loop(
            controller,
            terminal,
            stdin_fd,
            session=session,
            options=RuntimeLoopOptions(si=config.si),
        )
    finally:
        if session is not None:
            session.close()
        if close_stdin:
            os.close(stdin_fd)

    state = controller.state
    cancelled = getattr(state, "cancelled", False)
    if controller.error is not None:
        logger.warning("scan failed: %s", controller.error)
    return SessionResult(error=controller.error, cancelled=cancelled)


__all__ = ["SessionResult", "run_interactive"]
