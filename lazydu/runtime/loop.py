"""Main interactive event loop for the terminal UI.

The loop blocks in a single ``select()`` over stdin and the scan session's
wakeup pipe. A short timeout keeps the elapsed-time counter and terminal
resize handling current while nothing else happens.
"""

from __future__ import annotations

import select
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..browse import Action, NavigationController, browse_keymap, scan_keymap
from ..browse.state import BrowsingView, ScanningView
from ..input import has_pending_input, read_key
from ..render import build_browsing_frame, build_scanning_frame, content_rows_for, write_frame
from ..scan import ScanSession
from ..terminal import TerminalController

IDLE_TICK_SECONDS = 0.25


@dataclass(frozen=True)
class RuntimeLoopOptions:
    """Display settings and clock used by ``run_main_loop``."""

    si: bool = False
    tick_seconds: float = IDLE_TICK_SECONDS
    clock: Callable[[], float] = time.monotonic


def compose_frame(
    controller: NavigationController,
    columns: int,
    rows: int,
    elapsed: float,
    si: bool,
) -> str | None:
    view = controller.view()
    if isinstance(view, ScanningView):
        return build_scanning_frame(view, columns, rows, elapsed, si=si)
    if isinstance(view, BrowsingView):
        return build_browsing_frame(view, columns, rows, si=si)
    return None


def run_main_loop(
    controller: NavigationController,
    terminal: TerminalController,
    stdin_fd: int,
    session: ScanSession | None = None,
    options: RuntimeLoopOptions | None = None,
) -> None:
    """Run the interactive TUI loop until the controller reaches Quit.

    The terminal is restored by ``raw_mode()`` on every exit path, including
    ``RenderIOError`` raised while writing a frame.
    """
    options = options if options is not None else RuntimeLoopOptions()
    browse_keys = browse_keymap()
    scan_keys = scan_keymap()
    started = options.clock()
    last_size: tuple[int, int] | None = None
    dirty = True

    with terminal.raw_mode():
        while not controller.is_quit:
            columns, rows = terminal.size()
            view = controller.view()
            show_help = isinstance(view, BrowsingView) and view.show_help
            controller.set_page_size(content_rows_for(rows, show_help))
            if (columns, rows) != last_size:
                last_size = (columns, rows)
                dirty = True

            if dirty:
                frame = compose_frame(controller, columns, rows, options.clock() - started, options.si)
                if frame is not None:
                    write_frame(frame, terminal.stdout_fd)
                dirty = False

            scanning = isinstance(view, ScanningView)
            read_fds = [stdin_fd]
            if session is not None and scanning:
                read_fds.append(session.fileno())
            if has_pending_input():
                ready = [stdin_fd]
            else:
                ready, _, _ = select.select(read_fds, [], [], options.tick_seconds)

            if not ready:
                # Idle tick refreshes the elapsed counter while scanning.
                dirty = scanning
                continue

            if session is not None and session.fileno() in ready:
                for message in session.drain_messages():
                    if controller.handle_message(message):
                        dirty = True

            if stdin_fd in ready:
                key = read_key(stdin_fd, timeout_ms=0)
                if not key:
                    # Input closed.
                    controller.handle_action(Action.QUIT)
                    continue
                current = controller.view()
                keymap = scan_keys if isinstance(current, ScanningView) else browse_keys
                action = keymap.action_for(key)
                if action is None and isinstance(current, BrowsingView) and current.confirming_quit:
                    action = Action.DISMISS
                if action is not None and controller.handle_action(action):
                    dirty = True


__all__ = ["IDLE_TICK_SECONDS", "RuntimeLoopOptions", "compose_frame", "run_main_loop"]
