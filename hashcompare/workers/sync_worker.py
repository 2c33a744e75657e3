"""
Workers for folder synchronization operations.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from hashcompare.core.folder.scheduler import CompareEngine
from hashcompare.core.folder.sync import FolderSync
from hashcompare.core.models import (
    CompareReport,
    RunMode,
    SyncPlan,
    SyncResult,
)
from hashcompare.services.settings import RunConfig
from hashcompare.workers.base_worker import BaseWorker


class SyncPlanWorker(BaseWorker):
    """
    Worker for creating a synchronization plan.

    Compares folders and generates a plan without executing.
    """

    def __init__(
        self,
        source_path: str | Path,
        dest_path: str | Path,
        config: Optional[RunConfig] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.source_path = Path(source_path)
        self.dest_path = Path(dest_path)
        self.config = config or RunConfig()

    def do_work(self) -> tuple[CompareReport, SyncPlan]:
        self.report_status("Comparing folders...")

        engine_config = dataclasses.replace(self.config, mode=RunMode.BATCH)
        engine = CompareEngine(engine_config, stop_event=self.stop_event)
        report = engine.compare(
            self.source_path,
            self.dest_path,
            progress_callback=self.report_progress,
        )

        if self.is_cancelled:
            return report, SyncPlan([], str(self.source_path), str(self.dest_path))

        self.report_status("Creating sync plan...")

        plan = FolderSync(self.config).create_plan(report)
        self.report_status(
            f"{plan.copy_count} to copy, {plan.delete_count} to delete, {plan.skip_count} unchanged"
        )
        return report, plan


class SyncWorker(BaseWorker):
    """
    Worker for executing a synchronization plan.

    Progress is reported per item as SyncProgress.
    """

    # Emitted for each copy or delete that was applied
    item_synced = pyqtSignal(object)  # SyncItem

    # Emitted for each item that failed (the run continues)
    sync_error = pyqtSignal(object)  # EntryError

    def __init__(
        self,
        plan: SyncPlan,
        config: Optional[RunConfig] = None,
        dry_run: Optional[bool] = None,
        compare_errors: int = 0,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.plan = plan
        self.config = config or RunConfig()
        self.dry_run = dry_run
        self.compare_errors = compare_errors

    def do_work(self) -> SyncResult:
        self.report_status("Starting synchronization...")

        sync = FolderSync(self.config, stop_event=self.stop_event)
        result = sync.execute(
            self.plan,
            dry_run=self.dry_run,
            progress_callback=self.report_progress,
            compare_errors=self.compare_errors,
        )

        for item in result.applied:
            self.item_synced.emit(item)
        for error in result.errors:
            self.sync_error.emit(error)

        self.report_status(
            f"Copied {result.items_copied}, deleted {result.items_deleted}, failed {result.items_failed}"
        )
        return result
