"""Public runtime orchestration entry points.

This package groups the interactive session bootstrap (`run_interactive`) and
the lower-level event loop used by tests and composition code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .app import SessionResult
    from .loop import RuntimeLoopOptions


def run_interactive(*args, **kwargs):
    """Lazily import the session entrypoint to keep CLI startup light."""
    from .app import run_interactive as _run_interactive

    return _run_interactive(*args, **kwargs)


def run_main_loop(*args, **kwargs):
    """Lazily import loop runner to avoid package-import cycles."""
    from .loop import run_main_loop as _run_main_loop

    return _run_main_loop(*args, **kwargs)


def __getattr__(name: str):
    if name == "RuntimeLoopOptions":
        from .loop import RuntimeLoopOptions

        return RuntimeLoopOptions
    if name == "SessionResult":
        from .app import SessionResult

        return SessionResult
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["run_interactive", "run_main_loop", "RuntimeLoopOptions", "SessionResult"]
