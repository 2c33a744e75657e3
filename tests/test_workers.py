"""Tests for the Qt worker wrappers.

Workers are run synchronously with ``run()`` so signals are delivered
directly; the WorkerThread test drives a real QThread.
"""

from __future__ import annotations

import os
import sys
import tempfile
import unittest
from pathlib import Path

import pytest
from PyQt6.QtCore import QCoreApplication

from hashcompare.core.folder.snapshot import Snapshot, SnapshotStore
from hashcompare.core.models import (
    CompareReport,
    Outcome,
    RunMode,
    SymlinkMode,
    SyncAction,
    TerminalStatus,
)
from hashcompare.services.settings import RunConfig
from hashcompare.workers import (
    FolderCompareWorker,
    SnapshotWorker,
    SyncPlanWorker,
    SyncWorker,
    VerifyWorker,
    WorkerState,
    WorkerThread,
)


def _write_tree(root: Path, files: dict[str, str]) -> None:
    root.mkdir(parents=True, exist_ok=True)
    for rel_path, text in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


class _Recorder:
    def __init__(self, worker) -> None:
        self.finished = []
        self.errors = []
        self.cancelled = 0
        self.progress = []
        worker.signals.finished.connect(self.finished.append)
        worker.signals.error.connect(lambda kind, message: self.errors.append((kind, message)))
        worker.signals.cancelled.connect(self._on_cancelled)
        worker.signals.progress.connect(self.progress.append)

    def _on_cancelled(self) -> None:
        self.cancelled += 1


@pytest.mark.usefixtures("qapp")
class FolderCompareWorkerTests(unittest.TestCase):
    def test_emits_outcomes_and_finishes_with_report(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_tree(Path(tmp) / "left", {"a.txt": "hello"})
            _write_tree(Path(tmp) / "right", {"a.txt": "hello", "b.txt": "x"})
            worker = FolderCompareWorker(Path(tmp) / "left", Path(tmp) / "right")
            recorder = _Recorder(worker)
            outcomes = []
            worker.outcome_ready.connect(outcomes.append)

            worker.run()

            self.assertEqual(worker.state, WorkerState.COMPLETED)
            self.assertEqual(len(recorder.finished), 1)
            report = recorder.finished[0]
            self.assertIsInstance(report, CompareReport)
            self.assertEqual(
                [(o.relative_path, o.outcome) for o in outcomes],
                [("a.txt", Outcome.MATCH), ("b.txt", Outcome.EXTRA_IN_RIGHT)],
            )
            self.assertEqual(recorder.progress[-1].phase, "comparing")

    def test_missing_root_emits_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            worker = FolderCompareWorker(Path(tmp) / "missing", tmp)
            recorder = _Recorder(worker)

            worker.run()

            self.assertEqual(worker.state, WorkerState.FAILED)
            self.assertEqual(recorder.errors[0][0], "PathError")
            self.assertEqual(worker.error, recorder.errors[0])
            self.assertEqual(recorder.finished, [])

    def test_cancel_before_run(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_tree(Path(tmp) / "left", {"a.txt": "1"})
            _write_tree(Path(tmp) / "right", {"a.txt": "1"})
            worker = FolderCompareWorker(Path(tmp) / "left", Path(tmp) / "right")
            recorder = _Recorder(worker)

            worker.cancel()
            worker.run()

            self.assertEqual(worker.state, WorkerState.CANCELLED)
            self.assertEqual(recorder.cancelled, 1)
            self.assertTrue(worker.result.summary.cancelled)

    @unittest.skipIf(sys.platform == "win32", "symlinks need privileges on Windows")
    def test_realtime_entry_errors_are_signalled(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_tree(Path(tmp) / "left", {"a.txt": "1"})
            _write_tree(Path(tmp) / "right", {"a.txt": "1"})
            os.symlink("nowhere", Path(tmp) / "left" / "broken")
            config = RunConfig(mode=RunMode.REALTIME, symlinks=SymlinkMode.FOLLOW)
            worker = FolderCompareWorker(Path(tmp) / "left", Path(tmp) / "right", config)
            errors = []
            worker.entry_error.connect(errors.append)

            worker.run()

            self.assertEqual([(e.side, e.relative_path) for e in errors], [("left", "broken")])
            self.assertEqual(worker.result.status, TerminalStatus.ERROR)


@pytest.mark.usefixtures("qapp")
class SnapshotWorkerTests(unittest.TestCase):
    def test_snapshot_then_verify(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp) / "tree"
            manifest = Path(tmp) / "snap.json"
            _write_tree(root, {"a.txt": "a", "sub/b.txt": "b"})

            snapshot_worker = SnapshotWorker(root, output_path=manifest)
            snapshot_recorder = _Recorder(snapshot_worker)
            snapshot_worker.run()

            self.assertIsInstance(snapshot_recorder.finished[0], Snapshot)
            self.assertEqual(SnapshotStore.load(manifest).file_count, 2)

            (root / "a.txt").write_text("A", encoding="utf-8")
            verify_worker = VerifyWorker(root, manifest)
            verify_recorder = _Recorder(verify_worker)
            outcomes = []
            verify_worker.outcome_ready.connect(outcomes.append)
            verify_worker.run()

            report = verify_recorder.finished[0]
            self.assertEqual(report.by_path()["a.txt"].outcome, Outcome.DIFFER)
            self.assertEqual(len(outcomes), 2)
            self.assertEqual(report.status, TerminalStatus.DIFFERENT)

    def test_cancelled_snapshot(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_tree(Path(tmp), {"a.txt": "a"})
            worker = SnapshotWorker(tmp)
            recorder = _Recorder(worker)

            worker.cancel()
            worker.run()

            self.assertEqual(worker.state, WorkerState.CANCELLED)
            self.assertEqual(recorder.cancelled, 1)
            self.assertEqual(recorder.finished, [])

    def test_unreadable_manifest_emits_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            worker = VerifyWorker(tmp, Path(tmp) / "absent.json")
            recorder = _Recorder(worker)

            worker.run()

            self.assertEqual(recorder.errors[0][0], "SnapshotError")


@pytest.mark.usefixtures("qapp")
class SyncWorkerTests(unittest.TestCase):
    def test_plan_then_sync(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            source, dest = Path(tmp) / "src", Path(tmp) / "dst"
            _write_tree(source, {"a.txt": "a", "b.txt": "b"})
            _write_tree(dest, {"a.txt": "a", "old.txt": "o"})
            config = RunConfig(sync_dry_run=False, sync_delete_extraneous=True)

            plan_worker = SyncPlanWorker(source, dest, config)
            plan_recorder = _Recorder(plan_worker)
            plan_worker.run()
            report, plan = plan_recorder.finished[0]

            self.assertEqual((plan.copy_count, plan.delete_count, plan.skip_count), (1, 1, 1))

            sync_worker = SyncWorker(plan, config, compare_errors=report.summary.errored)
            sync_recorder = _Recorder(sync_worker)
            synced = []
            sync_worker.item_synced.connect(synced.append)
            sync_worker.run()

            result = sync_recorder.finished[0]
            self.assertEqual((result.items_copied, result.items_deleted), (1, 1))
            self.assertEqual(
                sorted((item.relative_path, item.action) for item in synced),
                [("b.txt", SyncAction.COPY), ("old.txt", SyncAction.DELETE)],
            )
            self.assertTrue((dest / "b.txt").exists())
            self.assertFalse((dest / "old.txt").exists())

    def test_sync_progress_is_reported_per_item(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            source, dest = Path(tmp) / "src", Path(tmp) / "dst"
            _write_tree(source, {"a.txt": "a", "b.txt": "b"})
            _write_tree(dest, {})
            config = RunConfig(sync_dry_run=False)
            plan_worker = SyncPlanWorker(source, dest, config)
            plan_recorder = _Recorder(plan_worker)
            plan_worker.run()
            _, plan = plan_recorder.finished[0]

            sync_worker = SyncWorker(plan, config)
            sync_recorder = _Recorder(sync_worker)
            sync_worker.run()

            self.assertEqual(
                [(p.current_item, p.items_completed) for p in sync_recorder.progress],
                [("a.txt", 0), ("b.txt", 1)],
            )

    def test_cancel_stops_the_sync_through_the_stop_event(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            source, dest = Path(tmp) / "src", Path(tmp) / "dst"
            _write_tree(source, {"a.txt": "a"})
            _write_tree(dest, {})
            config = RunConfig(sync_dry_run=False)
            plan_worker = SyncPlanWorker(source, dest, config)
            plan_recorder = _Recorder(plan_worker)
            plan_worker.run()
            _, plan = plan_recorder.finished[0]

            sync_worker = SyncWorker(plan, config)
            recorder = _Recorder(sync_worker)
            sync_worker.cancel()
            sync_worker.run()

            self.assertTrue(sync_worker.stop_event.is_set())
            self.assertEqual(sync_worker.state, WorkerState.CANCELLED)
            self.assertEqual(recorder.cancelled, 1)
            self.assertTrue(sync_worker.result.cancelled)
            self.assertFalse((dest / "a.txt").exists())

    def test_dry_run_emits_no_items(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            source, dest = Path(tmp) / "src", Path(tmp) / "dst"
            _write_tree(source, {"a.txt": "a"})
            _write_tree(dest, {})

            plan_worker = SyncPlanWorker(source, dest)
            plan_recorder = _Recorder(plan_worker)
            plan_worker.run()
            _, plan = plan_recorder.finished[0]

            sync_worker = SyncWorker(plan)
            synced = []
            sync_worker.item_synced.connect(synced.append)
            sync_worker.run()

            self.assertTrue(sync_worker.result.dry_run)
            self.assertEqual(synced, [])
            self.assertFalse((dest / "a.txt").exists())


@pytest.mark.usefixtures("qapp")
class WorkerThreadTests(unittest.TestCase):
    def test_worker_runs_in_its_own_thread(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_tree(Path(tmp) / "left", {"a.txt": "1"})
            _write_tree(Path(tmp) / "right", {"a.txt": "1"})
            worker = FolderCompareWorker(Path(tmp) / "left", Path(tmp) / "right")
            thread = WorkerThread(worker)

            thread.start()
            while not thread.wait(10):
                QCoreApplication.processEvents()
            QCoreApplication.processEvents()

            self.assertIsNone(worker.error)
            self.assertEqual(worker.result.status, TerminalStatus.IDENTICAL)
            self.assertEqual(worker.state, WorkerState.COMPLETED)


if __name__ == "__main__":
    unittest.main()
