"""
Snapshots of a folder tree and verification against them.

A snapshot records, for every accepted entry, its size, modification
time and content digests (or link target), together with the algorithm
and filter options used at capture. Verification re-walks the tree with
those options and classifies the snapshot (left) against the live tree
(right).
"""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from hashcompare.core.errors import CancelledError, ConfigError, SnapshotError
from hashcompare.core.folder.fingerprint import select_fingerprinter
from hashcompare.core.folder.scanner import FolderScanner
from hashcompare.core.folder.scheduler import (
    CompareEngine,
    OutputSink,
    ParallelExecutor,
    ProgressCounter,
    ProgressSampler,
)
from hashcompare.core.models import (
    Algorithm,
    CompareProgress,
    CompareReport,
    EntryError,
    EntryKind,
    ErrorIdentity,
    FileEntry,
    HashIdentity,
    Identity,
    LinkTargetIdentity,
    ScanOptions,
    SymlinkMode,
    path_sort_key,
)
from hashcompare.services.hashing import HashingService
from hashcompare.services.settings import RunConfig, parse_enum


FORMAT_VERSION = 1


# =============================================================================
# Snapshot Models
# =============================================================================

@dataclass(frozen=True)
class SnapshotEntry:
    """One recorded file."""
    path: str
    size: int
    modified_ns: int
    digests: Mapping[str, str] = field(default_factory=dict)
    symlink_target: Optional[str] = None
    error: Optional[str] = None

    def identity(self, symlinks: SymlinkMode) -> Identity:
        """Recorded identity under the snapshot's symlink mode."""
        if self.error is not None:
            return ErrorIdentity(self.error)
        if self.symlink_target is not None and symlinks == SymlinkMode.COMPARE:
            return LinkTargetIdentity(self.symlink_target)
        return HashIdentity.from_mapping(self.digests)

    def to_file_entry(self, root_path: Path) -> FileEntry:
        parts = tuple(self.path.split("/"))
        return FileEntry(
            path=root_path.joinpath(*parts),
            parts=parts,
            kind=EntryKind.SYMLINK if self.symlink_target is not None else EntryKind.REGULAR,
            size=self.size,
            modified_ns=self.modified_ns,
            symlink_target=self.symlink_target,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'path': self.path,
            'size': self.size,
            'modified_ns': self.modified_ns,
            'modified': datetime.fromtimestamp(self.modified_ns / 1e9, tz=timezone.utc).isoformat(),
            'digests': dict(self.digests),
            'symlink_target': self.symlink_target,
            'error': self.error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SnapshotEntry':
        return cls(
            path=str(data['path']),
            size=int(data['size']),
            modified_ns=int(data.get('modified_ns', 0)),
            digests={str(k): str(v) for k, v in (data.get('digests') or {}).items()},
            symlink_target=data.get('symlink_target'),
            error=data.get('error'),
        )


@dataclass
class Snapshot:
    """Recorded state of a tree. Read-only once loaded."""
    root_path: str
    created_at: datetime
    algorithm: Algorithm
    options: ScanOptions
    entries: dict[str, SnapshotEntry]
    # Walk errors at capture time; not persisted
    errors: list[EntryError] = field(default_factory=list, compare=False)

    @property
    def file_count(self) -> int:
        return len(self.entries)

    @property
    def error_count(self) -> int:
        return sum(1 for entry in self.entries.values() if entry.error is not None)

    @property
    def identity_variants(self) -> set[type]:
        """Identity variants the recorded entries resolve to."""
        symlinks = self.options.symlinks
        return {type(entry.identity(symlinks)) for entry in self.entries.values()}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON manifest layout."""
        return {
            'format_version': FORMAT_VERSION,
            'root_path': self.root_path,
            'created_at': self.created_at.isoformat(),
            'algorithm': self.algorithm.value,
            'options': self.options.to_dict(),
            'files': [
                self.entries[rel_path].to_dict()
                for rel_path in sorted(self.entries, key=path_sort_key)
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Snapshot':
        """
        Create from a manifest dictionary.

        Raises:
            SnapshotError: If the manifest is malformed or of another version
        """
        if not isinstance(data, Mapping):
            raise SnapshotError("Snapshot manifest must be a JSON object")

        version = data.get('format_version')
        if version != FORMAT_VERSION:
            raise SnapshotError(f"Unsupported snapshot format version: {version!r}")

        try:
            algorithm = parse_enum(Algorithm, data['algorithm'], 'algorithm')
            if not algorithm.is_hash:
                raise SnapshotError(f"Snapshot algorithm must be a hash, got {algorithm.value}")

            entries = {}
            for item in data['files']:
                entry = SnapshotEntry.from_dict(item)
                entries[entry.path] = entry

            return cls(
                root_path=str(data['root_path']),
                created_at=datetime.fromisoformat(data['created_at']),
                algorithm=algorithm,
                options=ScanOptions.from_dict(data.get('options') or {}),
                entries=entries,
            )
        except SnapshotError:
            raise
        except (KeyError, TypeError, ValueError, ConfigError) as e:
            raise SnapshotError(f"Malformed snapshot manifest: {e}") from e


class SnapshotStore:
    """Persists snapshots as self-contained JSON manifests."""

    @staticmethod
    def dumps(snapshot: Snapshot) -> str:
        return json.dumps(snapshot.to_dict(), indent=2)

    @staticmethod
    def loads(text: str) -> Snapshot:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise SnapshotError(f"Snapshot manifest is not valid JSON: {e}") from e
        return Snapshot.from_dict(data)

    @classmethod
    def save(cls, snapshot: Snapshot, path: Path | str) -> Path:
        """
        Write a snapshot manifest.

        Raises:
            SnapshotError: If the file cannot be written
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(cls.dumps(snapshot))
        except OSError as e:
            logging.error(f"SnapshotStore - Could not save snapshot to {path}: {e}")
            raise SnapshotError(f"Could not write snapshot {path}: {e}") from e

        logging.info(f"SnapshotStore - Snapshot with {snapshot.file_count} files saved to {path}")
        return path

    @classmethod
    def load(cls, path: Path | str) -> Snapshot:
        """
        Read a snapshot manifest.

        Raises:
            SnapshotError: If the file cannot be read or parsed
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                text = f.read()
        except OSError as e:
            logging.error(f"SnapshotStore - Could not read snapshot {path}: {e}")
            raise SnapshotError(f"Could not read snapshot {path}: {e}") from e

        return cls.loads(text)


# =============================================================================
# Snapshot / Verify
# =============================================================================

def create_snapshot(
    root_path: Path | str,
    config: Optional[RunConfig] = None,
    progress_callback: Optional[Callable[[CompareProgress], None]] = None,
    stop_event: Optional[threading.Event] = None,
    hashing_service: Optional[HashingService] = None
) -> Snapshot:
    """
    Walk a tree and hash every accepted entry in parallel.

    Raises:
        ConfigError: If the metadata algorithm is selected
        PathError: If the root is missing or not a directory
        CancelledError: If the stop signal is set before completion
    """
    config = (config or RunConfig()).validate()
    if not config.algorithm.is_hash:
        logging.error("create_snapshot - Snapshots require a hash algorithm")
        raise ConfigError("Snapshots require a hash algorithm, not metadata")

    stop_event = stop_event or threading.Event()
    start_time = time.time()
    options = config.scan_options()

    scanner = FolderScanner(options, "snapshot", stop_event)
    scan = scanner.scan(root_path)
    strategy = select_fingerprinter(config.algorithm, options.symlinks, hashing_service)

    logging.info(f"create_snapshot - Hashing {scan.file_count} files under {scan.root_path}")

    def task(entry: FileEntry) -> Optional[SnapshotEntry]:
        if stop_event.is_set():
            return None

        error = None
        digests: dict[str, str] = {}
        try:
            identity = strategy.fingerprint(entry)
            if isinstance(identity, ErrorIdentity):
                error = identity.reason
            elif isinstance(identity, HashIdentity):
                digests = identity.as_dict()
        except Exception as e:
            logging.exception(f"create_snapshot - Error hashing {entry.relative_path}")
            error = str(e)

        counter.increment()
        return SnapshotEntry(
            path=entry.relative_path,
            size=entry.size,
            modified_ns=entry.modified_ns,
            digests=digests,
            symlink_target=entry.symlink_target,
            error=error,
        )

    counter = ProgressCounter(total=scan.file_count, phase="hashing")
    sampler = ProgressSampler(counter, progress_callback) if progress_callback else None
    if sampler:
        sampler.start()
    try:
        results = ParallelExecutor(config.effective_threads).map(task, scan.entries.values())
        entries = {entry.path: entry for entry in results if entry is not None}
    finally:
        if sampler:
            sampler.stop()

    if stop_event.is_set():
        logging.info("create_snapshot - Snapshot cancelled")
        raise CancelledError("Snapshot cancelled")

    logging.info(
        f"create_snapshot - Captured {len(entries)} files in {time.time() - start_time:.2f}s "
        f"({len(scan.errors)} walk errors)"
    )

    return Snapshot(
        root_path=str(scan.root_path),
        created_at=datetime.now(timezone.utc),
        algorithm=config.algorithm,
        options=options,
        entries=entries,
        errors=scan.errors,
    )


def verify_snapshot(
    root_path: Path | str,
    snapshot: Snapshot,
    config: Optional[RunConfig] = None,
    progress_callback: Optional[Callable[[CompareProgress], None]] = None,
    sink: Optional[OutputSink] = None,
    stop_event: Optional[threading.Event] = None,
    hashing_service: Optional[HashingService] = None
) -> CompareReport:
    """
    Verify a live tree against a snapshot.

    The tree is re-walked with the snapshot's filter options and hashed
    with its algorithm set. ``config`` supplies mode, thread count and
    sorting only. Missing in right means removed since capture; extra in
    right means added since capture.

    Raises:
        PathError: If the root is missing or not a directory
    """
    start_time = time.time()
    config = dataclasses.replace(
        config or RunConfig(),
        algorithm=snapshot.algorithm,
        symlinks=snapshot.options.symlinks,
    )
    engine = CompareEngine(config, hashing_service, stop_event)
    root = FolderScanner.validate_root(root_path)

    logging.info(
        f"verify_snapshot - Verifying {root} against snapshot of {snapshot.root_path} "
        f"created at {snapshot.created_at.isoformat()}"
    )

    strategy = select_fingerprinter(snapshot.algorithm, snapshot.options.symlinks, engine.hashing)
    strategy.check_variants(snapshot.identity_variants)
    scan = FolderScanner(snapshot.options, "right", engine.stop_event).scan(root)
    left_entries = {
        rel_path: entry.to_file_entry(Path(snapshot.root_path))
        for rel_path, entry in snapshot.entries.items()
    }

    def recorded_identity(entry: FileEntry) -> Identity:
        return snapshot.entries[entry.relative_path].identity(snapshot.options.symlinks)

    return engine.execute(
        Path(snapshot.root_path),
        root,
        left_entries,
        scan.entries,
        strategy,
        errors=scan.errors,
        progress_callback=progress_callback,
        sink=sink,
        left_source=recorded_identity,
        start_time=start_time,
    )
