"""Background scan session feeding progress and results to the foreground loop."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass
from queue import Empty, Full, Queue

from ..config import ScanConfig
from ..errors import LazyduError, ScanCancelled
from ..model import ScanStats, StatsSnapshot, UsageTree
from .walker import scan

logger = logging.getLogger(__name__)

MESSAGE_QUEUE_SIZE = 64
TERMINAL_POST_POLL_SECONDS = 0.1
CLOSE_JOIN_SECONDS = 0.5


@dataclass(frozen=True)
class ScanProgress:
    snapshot: StatsSnapshot


@dataclass(frozen=True)
class ScanComplete:
    tree: UsageTree
    snapshot: StatsSnapshot


@dataclass(frozen=True)
class ScanFailed:
    message: str


ScanMessage = ScanProgress | ScanComplete | ScanFailed
ScanFunction = Callable[..., UsageTree]


class ScanSession:
    """Run one scan on a daemon thread and hand messages to the foreground.

    Messages go through a bounded queue. Progress is dropped when the queue
    is full; ``ScanComplete``/``ScanFailed`` wait until accepted unless the
    session was cancelled. Each post also writes one byte to a wakeup pipe so
    the foreground can ``select()`` on ``fileno()`` together with stdin.
    """

    def __init__(
        self,
        root_path: str,
        config: ScanConfig,
        *,
        scan_func: ScanFunction = scan,
        queue_size: int = MESSAGE_QUEUE_SIZE,
    ) -> None:
        self.root_path = root_path
        self.config = config
        self.stats = ScanStats()
        self._scan_func = scan_func
        self._messages: Queue[ScanMessage] = Queue(maxsize=queue_size)
        self._cancel_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._wakeup_read, self._wakeup_write = os.pipe()
        os.set_blocking(self._wakeup_read, False)
        os.set_blocking(self._wakeup_write, False)
        self._pipe_lock = threading.Lock()
        self._pipe_open = True
        self._closed = False

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("scan session already started")
        self._thread = threading.Thread(
            target=self._run,
            name="lazydu-scan-session",
            daemon=True,
        )
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def cancel(self) -> None:
        """Ask the scan to stop; no ``ScanComplete`` is posted afterwards."""
        self._cancel_event.set()

    def fileno(self) -> int:
        return self._wakeup_read

    def _wake(self) -> None:
        with self._pipe_lock:
            if not self._pipe_open:
                return
            try:
                os.write(self._wakeup_write, b"\0")
            except (BlockingIOError, OSError):
                pass

    def _release_pipe(self) -> None:
        with self._pipe_lock:
            if not self._pipe_open:
                return
            self._pipe_open = False
            for fd in (self._wakeup_read, self._wakeup_write):
                try:
                    os.close(fd)
                except OSError:
                    pass

    def _post_progress(self, snapshot: StatsSnapshot) -> None:
        try:
            self._messages.put_nowait(ScanProgress(snapshot))
        except Full:
            return
        self._wake()

    def _post_terminal(self, message: ScanMessage) -> None:
        while not self._cancel_event.is_set():
            try:
                self._messages.put(message, timeout=TERMINAL_POST_POLL_SECONDS)
            except Full:
                continue
            self._wake()
            return

    def _run(self) -> None:
        try:
            self._scan_and_post()
        finally:
            if self._closed:
                self._release_pipe()

    def _scan_and_post(self) -> None:
        try:
            tree = self._scan_func(
                self.root_path,
                self.config,
                stats=self.stats,
                cancel_event=self._cancel_event,
                on_progress=self._post_progress,
            )
        except ScanCancelled:
            return
        except LazyduError as exc:
            logger.warning("scan failed: %s", exc)
            self._post_terminal(ScanFailed(str(exc)))
            return
        except Exception as exc:
            logger.exception("unexpected scan failure")
            self._post_terminal(ScanFailed(f"internal error: {exc}"))
            return
        if self._cancel_event.is_set():
            return
        self._post_terminal(ScanComplete(tree, self.stats.snapshot()))

    def drain_messages(self) -> list[ScanMessage]:
        """Drain the wakeup pipe and all queued messages."""
        with self._pipe_lock:
            while self._pipe_open:
                try:
                    if not os.read(self._wakeup_read, 4096):
                        break
                except (BlockingIOError, OSError):
                    break
        out: list[ScanMessage] = []
        while True:
            try:
                out.append(self._messages.get_nowait())
            except Empty:
                break
        return out

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the scan thread; return True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def close(self) -> None:
        """Cancel, wait briefly for the worker, and release the wakeup pipe.

        A worker stuck in a slow system call past ``CLOSE_JOIN_SECONDS`` is
        left behind as a daemon thread and releases the pipe when it exits.
        """
        if self._closed:
            return
        self._closed = True
        self.cancel()
        if self.join(CLOSE_JOIN_SECONDS):
            self._release_pipe()
        else:
            logger.warning("scan thread still running after %.1fs; leaving it behind", CLOSE_JOIN_SECONDS)

    def __enter__(self) -> ScanSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "ScanComplete",
    "ScanFailed",
    "ScanMessage",
    "ScanProgress",
    "ScanSession",
]
