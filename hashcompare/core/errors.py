"""
Exception taxonomy.

Only ConfigError, PathError and SnapshotError abort a run. Entry-level
errors are recorded against a single path and the run continues.
"""

from __future__ import annotations

from typing import Optional


class HashCompareError(Exception):
    """Base class for all engine errors."""
    pass


class ConfigError(HashCompareError):
    """Invalid or conflicting option combination."""
    pass


class PathError(HashCompareError):
    """Comparison root is missing or not a directory."""
    pass


class SnapshotError(HashCompareError):
    """Snapshot manifest cannot be read or parsed."""
    pass


class CancelledError(HashCompareError):
    """Raised when a run is cancelled through its stop signal."""
    pass


class EntryIOError(HashCompareError):
    """I/O failure on a single entry."""

    def __init__(self, path: Optional[str], message: str):
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path
        self.message = message


class HashError(EntryIOError):
    """Digest computation failed; handled like any EntryIOError."""
    pass


class SyncActionError(EntryIOError):
    """A planned copy or delete failed."""
    pass
