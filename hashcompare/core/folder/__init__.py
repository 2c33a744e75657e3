"""
Folder comparison module.

Provides functionality for:
- Recursive directory scanning with gitignore-style filtering
- Content fingerprinting and diff classification
- Batch and realtime execution
- Snapshots, verification and synchronization
"""

from hashcompare.core.folder.filters import (
    PathFilter,
    PatternMatcher,
)
from hashcompare.core.folder.scanner import (
    FolderScanner,
    ScanResult,
)
from hashcompare.core.folder.fingerprint import (
    Fingerprinter,
    HashFingerprinter,
    MetadataFingerprinter,
    select_fingerprinter,
)
from hashcompare.core.folder.comparer import (
    classify,
    classify_pair,
    compare_identities,
)
from hashcompare.core.folder.scheduler import (
    CompareEngine,
    OutputSink,
    ParallelExecutor,
    SequentialExecutor,
    run_pairs,
)
from hashcompare.core.folder.snapshot import (
    Snapshot,
    SnapshotEntry,
    SnapshotStore,
    create_snapshot,
    verify_snapshot,
)
from hashcompare.core.folder.sync import (
    FolderSync,
)

__all__ = [
    # Filters
    'PathFilter',
    'PatternMatcher',
    # Scanner
    'FolderScanner',
    'ScanResult',
    # Fingerprint
    'Fingerprinter',
    'HashFingerprinter',
    'MetadataFingerprinter',
    'select_fingerprinter',
    # Comparer
    'classify',
    'classify_pair',
    'compare_identities',
    # Scheduler
    'CompareEngine',
    'OutputSink',
    'ParallelExecutor',
    'SequentialExecutor',
    'run_pairs',
    # Snapshot
    'Snapshot',
    'SnapshotEntry',
    'SnapshotStore',
    'create_snapshot',
    'verify_snapshot',
    # Sync
    'FolderSync',
]
