"""
Directory scanner for folder comparison.

Provides configurable directory traversal with:
- Depth-bounded recursion
- Hidden, extension and gitignore-style filtering
- Symlink handling (ignore, follow with loop guard, compare as links)
- Progress reporting
- Error resilience
"""

from __future__ import annotations

import logging
import os
import stat
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from hashcompare.core.errors import PathError
from hashcompare.core.folder.filters import PathFilter, PatternMatcher, load_ignore_rules
from hashcompare.core.models import (
    EntryError,
    EntryKind,
    FileEntry,
    ScanOptions,
    SymlinkMode,
    path_sort_key,
)


@dataclass
class ScanProgress:
    """Progress information for scanning."""
    current_path: str
    files_found: int
    directories_found: int
    errors: int
    current_depth: int


@dataclass
class ScanResult:
    """Result of a directory scan."""
    root_path: Path
    entries: dict[str, FileEntry]  # Relative path -> entry
    errors: list[EntryError]
    scan_time: float
    cancelled: bool = False

    @property
    def file_count(self) -> int:
        return len(self.entries)

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self.entries.values())

    def iter_sorted(self) -> Iterator[FileEntry]:
        """Iterate over entries ordered by path segments."""
        for rel_path in sorted(self.entries, key=path_sort_key):
            yield self.entries[rel_path]


class FolderScanner:
    """
    Walks a directory tree and produces the accepted file entries.

    Directories are never entries. Per-entry failures are recorded as
    EntryError values and never abort the walk.
    """

    def __init__(
        self,
        options: Optional[ScanOptions] = None,
        side: str = "left",
        stop_event: Optional[threading.Event] = None
    ):
        self.options = options or ScanOptions()
        self.side = side
        self.path_filter = PathFilter(self.options)
        self._stop_event = stop_event or threading.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._stop_event.is_set()

    def cancel(self) -> None:
        """Cancel an ongoing scan at the next directory boundary."""
        self._stop_event.set()

    @staticmethod
    def validate_root(root_path: Path | str) -> Path:
        """
        Resolve and check a comparison root.

        Raises:
            PathError: If the root does not exist or is not a directory
        """
        root_path = Path(root_path).resolve()

        if not root_path.exists():
            logging.error(f"FolderScanner - Root path not found: {root_path}")
            raise PathError(f"Directory not found: {root_path}")

        if not root_path.is_dir():
            logging.error(f"FolderScanner - Root path is not a directory: {root_path}")
            raise PathError(f"Not a directory: {root_path}")

        return root_path

    def walk(
        self,
        root_path: Path | str,
        errors: Optional[list[EntryError]] = None,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None
    ) -> Iterator[FileEntry]:
        """
        Lazily walk a tree, yielding entries as they are found.

        The root is validated before the iterator is returned.

        Args:
            root_path: Root directory to walk
            errors: List that collects per-entry errors
            progress_callback: Called once per visited directory

        Raises:
            PathError: If the root is missing or not a directory
        """
        root_path = self.validate_root(root_path)
        if errors is None:
            errors = []
        return self._walk(root_path, errors, progress_callback)

    def scan(
        self,
        root_path: Path | str,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None
    ) -> ScanResult:
        """
        Scan a directory tree.

        Args:
            root_path: Root directory to scan
            progress_callback: Called with progress updates

        Returns:
            ScanResult with all accepted entries keyed by relative path
        """
        start_time = time.time()
        errors: list[EntryError] = []
        entries: dict[str, FileEntry] = {}

        root = self.validate_root(root_path)
        for entry in self._walk(root, errors, progress_callback):
            entries[entry.relative_path] = entry

        return ScanResult(
            root_path=root,
            entries=entries,
            errors=errors,
            scan_time=time.time() - start_time,
            cancelled=self.is_cancelled,
        )

    def _walk(
        self,
        root_path: Path,
        errors: list[EntryError],
        progress_callback: Optional[Callable[[ScanProgress], None]]
    ) -> Iterator[FileEntry]:
        options = self.options
        follow = options.symlinks == SymlinkMode.FOLLOW

        rules_by_dir: dict[tuple[str, ...], list[PatternMatcher]] = {}
        # Device/inode of each visited directory, for the loop guard
        dir_keys: dict[tuple[str, ...], tuple[int, int]] = {}
        files_found = 0
        directories_found = 0

        def on_walk_error(error: OSError):
            rel_path = self._relative(root_path, error.filename)
            errors.append(EntryError(self.side, rel_path, f"Access error: {error.strerror or error}"))
            logging.warning(f"FolderScanner - Walk error at {rel_path}: {error}")

        for dirpath, dirnames, filenames in os.walk(
            root_path,
            topdown=True,
            followlinks=follow,
            onerror=on_walk_error
        ):
            if self.is_cancelled:
                logging.info(f"FolderScanner - Scan cancelled during os.walk")
                return

            current_path = Path(dirpath)
            rel_parts = current_path.relative_to(root_path).parts

            rules = list(rules_by_dir.get(rel_parts[:-1], [])) if rel_parts else []
            if options.respect_ignore_files:
                rules.extend(load_ignore_rules(current_path, rel_parts))
            rules_by_dir[rel_parts] = rules

            if follow and not rel_parts:
                dir_keys[rel_parts] = self._dir_key(current_path)

            # Filter directories in-place to control recursion
            kept_dirs = []
            for dirname in sorted(dirnames):
                parts = rel_parts + (dirname,)
                dir_full_path = current_path / dirname

                try:
                    is_link = dir_full_path.is_symlink()
                except OSError as e:
                    errors.append(EntryError(self.side, "/".join(parts), str(e)))
                    logging.warning(f"FolderScanner - Error processing directory {'/'.join(parts)}: {e}")
                    continue

                if is_link and options.symlinks == SymlinkMode.COMPARE:
                    # Directory links become link entries, never traversed
                    filenames.append(dirname)
                    continue

                if not self.path_filter.admit(parts, True, is_link, rules):
                    continue

                if follow:
                    try:
                        key = self._dir_key(dir_full_path)
                    except OSError as e:
                        errors.append(EntryError(self.side, "/".join(parts), str(e)))
                        logging.warning(f"FolderScanner - Error processing directory {'/'.join(parts)}: {e}")
                        continue
                    if any(dir_keys.get(parts[:i]) == key for i in range(len(parts))):
                        errors.append(EntryError(self.side, "/".join(parts), "Filesystem loop detected"))
                        logging.warning(f"FolderScanner - Filesystem loop at {'/'.join(parts)}, not following")
                        continue
                    dir_keys[parts] = key

                kept_dirs.append(dirname)

            dirnames[:] = kept_dirs
            directories_found += len(kept_dirs)

            for filename in sorted(filenames):
                entry = self._make_entry(current_path / filename, rel_parts + (filename,), rules, errors)
                if entry is not None:
                    files_found += 1
                    yield entry

            if progress_callback:
                progress_callback(ScanProgress(
                    current_path="/".join(rel_parts),
                    files_found=files_found,
                    directories_found=directories_found,
                    errors=len(errors),
                    current_depth=len(rel_parts)
                ))

    def _make_entry(
        self,
        path: Path,
        parts: tuple[str, ...],
        rules: list[PatternMatcher],
        errors: list[EntryError]
    ) -> Optional[FileEntry]:
        """Build the entry for one discovered name, or None if not admitted."""
        rel_path = "/".join(parts)

        try:
            # Use lstat to not follow symlinks initially
            stat_result = path.lstat()
        except OSError as e:
            errors.append(EntryError(self.side, rel_path, str(e)))
            logging.warning(f"FolderScanner - Error processing file {rel_path}: {e}")
            return None

        is_link = stat.S_ISLNK(stat_result.st_mode)
        if not self.path_filter.admit(parts, False, is_link, rules):
            logging.debug(f"FolderScanner - Excluded {rel_path}")
            return None

        if not is_link:
            if not stat.S_ISREG(stat_result.st_mode):
                logging.debug(f"FolderScanner - Skipping special file {rel_path}")
                return None
            return FileEntry(
                path=path,
                parts=parts,
                kind=EntryKind.REGULAR,
                size=stat_result.st_size,
                modified_ns=stat_result.st_mtime_ns,
            )

        try:
            target = os.readlink(path)
            if self.options.symlinks == SymlinkMode.FOLLOW:
                stat_result = path.stat()
                if not stat.S_ISREG(stat_result.st_mode):
                    logging.debug(f"FolderScanner - Skipping link to non-file {rel_path}")
                    return None
        except OSError as e:
            message = "Broken symlink" if isinstance(e, FileNotFoundError) else str(e)
            errors.append(EntryError(self.side, rel_path, message))
            logging.warning(f"FolderScanner - Error processing symlink {rel_path}: {e}")
            return None

        return FileEntry(
            path=path,
            parts=parts,
            kind=EntryKind.SYMLINK,
            size=stat_result.st_size,
            modified_ns=stat_result.st_mtime_ns,
            symlink_target=target,
        )

    @staticmethod
    def _dir_key(path: Path) -> tuple[int, int]:
        stat_result = path.stat()
        return (stat_result.st_dev, stat_result.st_ino)

    @staticmethod
    def _relative(root_path: Path, filename: Optional[str]) -> str:
        if not filename:
            return "unknown"
        try:
            return "/".join(Path(filename).relative_to(root_path).parts) or "."
        except ValueError:
            return str(filename)
