"""
Core data models for folder comparison.

This module defines all data structures used across the engine:
- File entries produced by the tree walker
- Identity variants produced by the fingerprint engine
- Comparison outcomes, reports and run summaries
- Synchronization models

All models are designed to be:
- UI-agnostic (can be used with any frontend)
- Immutable where practical
- Type-hinted for IDE support
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Iterator, Mapping, Optional, Union


# =============================================================================
# Enumerations
# =============================================================================

class EntryKind(Enum):
    """Kind of a file entry."""
    REGULAR = auto()
    SYMLINK = auto()


class Outcome(Enum):
    """Classification of one relative path across two trees."""
    MATCH = auto()             # Both present, identities equal
    DIFFER = auto()            # Both present, identities unequal
    MISSING_IN_RIGHT = auto()  # Left only
    EXTRA_IN_RIGHT = auto()    # Right only
    ERRORED = auto()           # Identity computation failed on a side

    @property
    def label(self) -> str:
        return _OUTCOME_LABELS[self]


_OUTCOME_LABELS = {
    Outcome.MATCH: "MATCH",
    Outcome.DIFFER: "DIFF",
    Outcome.MISSING_IN_RIGHT: "MISSING",
    Outcome.EXTRA_IN_RIGHT: "EXTRA",
    Outcome.ERRORED: "ERROR",
}


class RunMode(Enum):
    """Execution discipline of a comparison run."""
    BATCH = "batch"
    REALTIME = "realtime"


class Algorithm(Enum):
    """Identity strategy selected for a run."""
    BLAKE3 = "blake3"
    SHA256 = "sha256"
    BOTH = "both"
    METADATA = "metadata"

    @property
    def is_hash(self) -> bool:
        return self is not Algorithm.METADATA

    @property
    def digest_names(self) -> tuple[str, ...]:
        """Digest algorithms computed under this strategy."""
        if self is Algorithm.BOTH:
            return ("sha256", "blake3")
        if self is Algorithm.METADATA:
            return ()
        return (self.value,)


class SymlinkMode(Enum):
    """How symbolic links are treated during a run."""
    IGNORE = "ignore"
    FOLLOW = "follow"
    COMPARE = "compare"


class TerminalStatus(Enum):
    """Terminal state of a run, mapped to process exit codes by a CLI."""
    IDENTICAL = 0
    DIFFERENT = 1
    ERROR = 2

    @property
    def exit_code(self) -> int:
        return self.value


class SyncAction(Enum):
    """Action to take during synchronization."""
    COPY = auto()
    DELETE = auto()
    SKIP = auto()


# =============================================================================
# File Entries
# =============================================================================

@dataclass(frozen=True)
class FileEntry:
    """A file accepted by the tree walker."""
    path: Path
    parts: tuple[str, ...]
    kind: EntryKind
    size: int
    modified_ns: int
    symlink_target: Optional[str] = None

    @property
    def relative_path(self) -> str:
        return "/".join(self.parts)

    @property
    def name(self) -> str:
        return self.parts[-1]

    @property
    def is_symlink(self) -> bool:
        return self.kind == EntryKind.SYMLINK

    @property
    def modified_time(self) -> datetime:
        return datetime.fromtimestamp(self.modified_ns / 1e9)


def path_sort_key(relative_path: str) -> tuple[str, ...]:
    """Sort key ordering relative paths segment by segment."""
    return tuple(relative_path.split("/"))


@dataclass(frozen=True)
class EntryError:
    """A per-entry failure that did not abort the run."""
    side: str
    relative_path: str
    message: str

    def __str__(self) -> str:
        return f"{self.side}: {self.relative_path} - {self.message}"


# =============================================================================
# Identities
# =============================================================================

@dataclass(frozen=True)
class HashIdentity:
    """Content digests, one hex string per algorithm."""
    digests: tuple[tuple[str, str], ...]

    @classmethod
    def from_mapping(cls, digests: Mapping[str, str]) -> 'HashIdentity':
        return cls(tuple(sorted(digests.items())))

    def as_dict(self) -> dict[str, str]:
        return dict(self.digests)

    def digest(self, algorithm: str) -> Optional[str]:
        return self.as_dict().get(algorithm)


@dataclass(frozen=True)
class MetadataIdentity:
    """Size and modification time; no content is read."""
    size: int
    modified_ns: int


@dataclass(frozen=True)
class LinkTargetIdentity:
    """Unresolved target of a symbolic link."""
    target: str


@dataclass(frozen=True)
class ErrorIdentity:
    """Identity computation failed."""
    reason: str


Identity = Union[HashIdentity, MetadataIdentity, LinkTargetIdentity, ErrorIdentity]


# =============================================================================
# Comparison Models
# =============================================================================

@dataclass(frozen=True)
class ComparisonOutcome:
    """Outcome of one relative path."""
    relative_path: str
    outcome: Outcome
    left_identity: Optional[Identity] = None
    right_identity: Optional[Identity] = None
    left_size: Optional[int] = None
    right_size: Optional[int] = None
    reason: str = ""

    @property
    def is_match(self) -> bool:
        return self.outcome == Outcome.MATCH

    @property
    def is_error(self) -> bool:
        return self.outcome == Outcome.ERRORED

    @property
    def sort_key(self) -> tuple[str, ...]:
        return path_sort_key(self.relative_path)

    def __str__(self) -> str:
        return f"[{self.outcome.label}]  {self.relative_path}"


@dataclass
class CompareProgress:
    """Sampled progress of a run."""
    phase: str  # 'scanning', 'comparing', 'hashing'
    completed: int
    total: int

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.completed / self.total) * 100


@dataclass
class RunSummary:
    """Final summary handed to the reporting layer."""
    mode: RunMode
    algorithm: Algorithm
    thread_count: int
    counts: dict[Outcome, int] = field(default_factory=lambda: {o: 0 for o in Outcome})
    error_count: int = 0
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def matched(self) -> int:
        return self.counts[Outcome.MATCH]

    @property
    def differ(self) -> int:
        return self.counts[Outcome.DIFFER]

    @property
    def missing(self) -> int:
        return self.counts[Outcome.MISSING_IN_RIGHT]

    @property
    def extra(self) -> int:
        return self.counts[Outcome.EXTRA_IN_RIGHT]

    @property
    def errored(self) -> int:
        return self.counts[Outcome.ERRORED]

    @property
    def total_differences(self) -> int:
        return self.differ + self.missing + self.extra

    @property
    def status(self) -> TerminalStatus:
        if self.cancelled or self.error_count or self.errored:
            return TerminalStatus.ERROR
        if self.total_differences:
            return TerminalStatus.DIFFERENT
        return TerminalStatus.IDENTICAL

    @property
    def text(self) -> str:
        """Get a summary string."""
        return (f"Total: {self.total}, Matched: {self.matched}, Differ: {self.differ}, "
                f"Missing: {self.missing}, Extra: {self.extra}, Errors: {self.error_count + self.errored}, "
                f"Mode: {self.mode.value}, Algorithm: {self.algorithm.value}, "
                f"Threads: {self.thread_count}, Elapsed: {self.elapsed:.2f}s")

    def record(self, outcome: ComparisonOutcome) -> None:
        self.counts[outcome.outcome] += 1


@dataclass
class CompareReport:
    """Complete result of a comparison run."""
    left_root: Path
    right_root: Path
    outcomes: list[ComparisonOutcome]
    errors: list[EntryError]
    summary: RunSummary

    @property
    def status(self) -> TerminalStatus:
        return self.summary.status

    def iter_by_outcome(self, outcome: Outcome) -> Iterator[ComparisonOutcome]:
        """Iterate over outcomes of the given kind."""
        for item in self.outcomes:
            if item.outcome == outcome:
                yield item

    def by_path(self) -> dict[str, ComparisonOutcome]:
        return {item.relative_path: item for item in self.outcomes}


# =============================================================================
# Filter Options
# =============================================================================

@dataclass(frozen=True)
class ScanOptions:
    """Filter options applied while walking a tree."""
    max_depth: Optional[int] = None
    symlinks: SymlinkMode = SymlinkMode.IGNORE
    include_hidden: bool = False
    extensions: frozenset[str] = frozenset()
    ignore_patterns: tuple[str, ...] = ()
    respect_ignore_files: bool = True

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'recursion_depth': self.max_depth,
            'symlinks': self.symlinks.value,
            'include_hidden': self.include_hidden,
            'extension_filter': sorted(self.extensions),
            'ignore_patterns': list(self.ignore_patterns),
            'respect_ignore_files': self.respect_ignore_files,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> 'ScanOptions':
        """Create from dictionary."""
        return cls(
            max_depth=data.get('recursion_depth'),
            symlinks=SymlinkMode(data.get('symlinks', SymlinkMode.IGNORE.value)),
            include_hidden=bool(data.get('include_hidden', False)),
            extensions=normalize_extensions(data.get('extension_filter', ())),
            ignore_patterns=tuple(data.get('ignore_patterns', ())),
            respect_ignore_files=bool(data.get('respect_ignore_files', True)),
        )


def normalize_extensions(extensions) -> frozenset[str]:
    """Lowercase extensions and strip leading dots."""
    return frozenset(ext.strip().lstrip('.').lower() for ext in extensions if ext.strip())


# =============================================================================
# Sync Models
# =============================================================================

@dataclass
class SyncItem:
    """An item to be synchronized."""
    relative_path: str
    action: SyncAction
    source_path: Optional[Path] = None
    dest_path: Optional[Path] = None
    size: int = 0
    is_symlink: bool = False
    reason: str = ""

    @property
    def name(self) -> str:
        return Path(self.relative_path).name


@dataclass
class SyncPlan:
    """A plan for one-way synchronization, one item per compared path."""
    items: list[SyncItem]
    source_path: str
    dest_path: str
    delete_extraneous: bool = False

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def copy_count(self) -> int:
        return sum(1 for item in self.items if item.action == SyncAction.COPY)

    @property
    def delete_count(self) -> int:
        return sum(1 for item in self.items if item.action == SyncAction.DELETE)

    @property
    def skip_count(self) -> int:
        return sum(1 for item in self.items if item.action == SyncAction.SKIP)

    @property
    def total_bytes(self) -> int:
        """Total bytes to be copied."""
        return sum(item.size for item in self.items if item.action == SyncAction.COPY)

    def iter_by_action(self, action: SyncAction) -> Iterator[SyncItem]:
        """Iterate over items with the given action."""
        for item in self.items:
            if item.action == action:
                yield item


@dataclass
class SyncProgress:
    """Progress information for sync operation."""
    current_item: str
    items_completed: int
    total_items: int
    bytes_copied: int
    total_bytes: int
    current_action: str = ""

    @property
    def percent_items(self) -> float:
        if self.total_items == 0:
            return 0.0
        return (self.items_completed / self.total_items) * 100


@dataclass
class SyncResult:
    """Result of a synchronization operation."""
    plan: SyncPlan
    dry_run: bool
    items_copied: int = 0
    items_deleted: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    bytes_copied: int = 0
    applied: list[SyncItem] = field(default_factory=list)  # Successful copies and deletes, in execution order
    errors: list[EntryError] = field(default_factory=list)
    compare_errors: int = 0
    duration: float = 0.0
    cancelled: bool = False

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def status(self) -> TerminalStatus:
        if self.cancelled or self.items_failed or self.compare_errors:
            return TerminalStatus.ERROR
        if self.plan.copy_count or self.plan.delete_count:
            return TerminalStatus.DIFFERENT
        return TerminalStatus.IDENTICAL
