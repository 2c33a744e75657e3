"""
Background workers for non-blocking operations.

Provides QThread-based workers for:
- Folder comparison
- Snapshot creation and verification
- Synchronization planning and execution

All workers use Qt signals for thread-safe communication
with the UI thread.
"""

from hashcompare.workers.base_worker import (
    BaseWorker,
    WorkerSignals,
    WorkerState,
    WorkerThread,
)
from hashcompare.workers.compare_worker import (
    FolderCompareWorker,
)
from hashcompare.workers.snapshot_worker import (
    SnapshotWorker,
    VerifyWorker,
)
from hashcompare.workers.sync_worker import (
    SyncWorker,
    SyncPlanWorker,
)

__all__ = [
    # Base
    'BaseWorker',
    'WorkerSignals',
    'WorkerState',
    'WorkerThread',
    # Compare
    'FolderCompareWorker',
    # Snapshot
    'SnapshotWorker',
    'VerifyWorker',
    # Sync
    'SyncWorker',
    'SyncPlanWorker',
]
