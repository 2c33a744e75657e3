"""
Workers for snapshot creation and verification.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from hashcompare.core.folder.scheduler import OutputSink
from hashcompare.core.folder.snapshot import (
    Snapshot,
    SnapshotStore,
    create_snapshot,
    verify_snapshot,
)
from hashcompare.core.models import CompareReport
from hashcompare.services.settings import RunConfig
from hashcompare.workers.base_worker import BaseWorker


class SnapshotWorker(BaseWorker):
    """
    Worker for capturing a snapshot of a folder.

    Optionally saves the manifest when an output path is given.
    """

    def __init__(
        self,
        root_path: str | Path,
        config: Optional[RunConfig] = None,
        output_path: Optional[str | Path] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.root_path = Path(root_path)
        self.config = config or RunConfig()
        self.output_path = Path(output_path) if output_path else None

    def do_work(self) -> Snapshot:
        self.report_status("Creating snapshot...")

        snapshot = create_snapshot(
            self.root_path,
            self.config,
            progress_callback=self.report_progress,
            stop_event=self.stop_event,
        )

        if self.output_path:
            self.report_status(f"Saving snapshot to {self.output_path}...")
            SnapshotStore.save(snapshot, self.output_path)

        return snapshot


class VerifyWorker(BaseWorker):
    """
    Worker for verifying a folder against a snapshot.

    Accepts a loaded Snapshot or a manifest path.
    """

    # Emitted for each classified path
    outcome_ready = pyqtSignal(object)  # ComparisonOutcome

    # Emitted for each per-entry error (the run continues)
    entry_error = pyqtSignal(object)  # EntryError

    def __init__(
        self,
        root_path: str | Path,
        snapshot: Snapshot | str | Path,
        config: Optional[RunConfig] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.root_path = Path(root_path)
        self.snapshot = snapshot
        self.config = config or RunConfig()

    def do_work(self) -> CompareReport:
        snapshot = self.snapshot
        if not isinstance(snapshot, Snapshot):
            self.report_status(f"Loading snapshot {snapshot}...")
            snapshot = SnapshotStore.load(snapshot)

        self.report_status(f"Verifying against snapshot created at {snapshot.created_at.isoformat()}...")

        sink = OutputSink(
            on_outcome=self.outcome_ready.emit,
            on_error=self.entry_error.emit,
        )

        report = verify_snapshot(
            self.root_path,
            snapshot,
            self.config,
            progress_callback=self.report_progress,
            sink=sink,
            stop_event=self.stop_event,
        )

        self.report_status(report.summary.text)
        return report
