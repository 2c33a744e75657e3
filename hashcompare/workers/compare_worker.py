"""
Worker for folder comparison.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from hashcompare.core.folder.scheduler import CompareEngine, OutputSink
from hashcompare.core.models import CompareReport
from hashcompare.services.settings import RunConfig
from hashcompare.workers.base_worker import BaseWorker


class FolderCompareWorker(BaseWorker):
    """
    Worker for comparing folders.

    Handles large directory trees without blocking the UI. Outcomes and
    per-entry errors are re-emitted as signals: as they are classified in
    realtime mode, after the merge in batch mode.
    """

    # Emitted for each classified path
    outcome_ready = pyqtSignal(object)  # ComparisonOutcome

    # Emitted for each per-entry error (the run continues)
    entry_error = pyqtSignal(object)  # EntryError

    def __init__(
        self,
        left_path: str | Path,
        right_path: str | Path,
        config: Optional[RunConfig] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.left_path = Path(left_path)
        self.right_path = Path(right_path)
        self.config = config or RunConfig()

    def do_work(self) -> CompareReport:
        self.report_status("Starting folder comparison...")

        engine = CompareEngine(self.config, stop_event=self.stop_event)
        sink = OutputSink(
            on_outcome=self.outcome_ready.emit,
            on_error=self.entry_error.emit,
        )

        report = engine.compare(
            self.left_path,
            self.right_path,
            progress_callback=self.report_progress,
            sink=sink,
        )

        self.report_status(report.summary.text)
        return report
