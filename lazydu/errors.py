"""Exception taxonomy for scanning, import/export and the terminal session."""

from __future__ import annotations


class LazyduError(Exception):
    """Base class for errors surfaced to the command line."""


class RootInaccessibleError(LazyduError):
    """The scan root itself cannot be stat'ed or listed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot access '{path}': {reason}")
        self.path = path
        self.reason = reason


class HardlinkRegistryError(LazyduError):
    """Internal hardlink bookkeeping invariant was violated."""


class ScanCancelled(LazyduError):
    """The scan stopped early because cancellation was requested."""


class ConfigError(LazyduError):
    """Invalid configuration value from the command line or config file."""


class ImportFormatError(LazyduError):
    """Import data is not a recognized lazydu export."""


class ExportError(LazyduError):
    """Export target could not be written."""


class RenderIOError(LazyduError):
    """Writing a frame to the terminal failed."""


def describe_os_error(exc: OSError) -> str:
    """Short diagnostic text for an ``OSError`` without the path prefix."""
    if exc.strerror:
        return exc.strerror
    return str(exc) or exc.__class__.__name__


__all__ = [
    "LazyduError",
    "RootInaccessibleError",
    "HardlinkRegistryError",
    "ScanCancelled",
    "ConfigError",
    "ImportFormatError",
    "ExportError",
    "RenderIOError",
    "describe_os_error",
]
