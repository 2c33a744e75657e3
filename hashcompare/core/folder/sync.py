"""
Folder synchronization engine.

Provides one-way synchronization (source toward destination) with:
- A plan derived from a comparison report, one item per outcome
- Dry-run mode (the default)
- Timestamp and permission preservation
- Per-item failure isolation and progress reporting
"""

from __future__ import annotations

import dataclasses
import logging
import os
import shutil
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from hashcompare.core.errors import SyncActionError
from hashcompare.core.folder.scheduler import CompareEngine
from hashcompare.core.models import (
    CompareReport,
    ComparisonOutcome,
    EntryError,
    Outcome,
    RunMode,
    SymlinkMode,
    SyncAction,
    SyncItem,
    SyncPlan,
    SyncProgress,
    SyncResult,
)
from hashcompare.services.hashing import HashingService
from hashcompare.services.settings import RunConfig


BUFFER_SIZE = 1024 * 1024


class FolderSync:
    """
    Synchronizes a destination folder toward a source folder.

    Missing and differing files are copied. Extra files are deleted only
    when ``sync_delete_extraneous`` is set.
    """

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        hashing_service: Optional[HashingService] = None,
        stop_event: Optional[threading.Event] = None
    ):
        self.config = (config or RunConfig()).validate()
        self.hashing = hashing_service or HashingService()
        self._stop_event = stop_event or threading.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._stop_event.is_set()

    def create_plan(
        self,
        report: CompareReport,
        source_root: Optional[Path | str] = None,
        dest_root: Optional[Path | str] = None
    ) -> SyncPlan:
        """
        Create a synchronization plan from a comparison report.

        Returns a SyncPlan that can be reviewed before execution.
        """
        source_root = Path(source_root or report.left_root)
        dest_root = Path(dest_root or report.right_root)

        items = [
            self._create_sync_item(outcome, source_root, dest_root)
            for outcome in report.outcomes
        ]

        return SyncPlan(
            items=items,
            source_path=str(source_root),
            dest_path=str(dest_root),
            delete_extraneous=self.config.sync_delete_extraneous,
        )

    def execute(
        self,
        plan: SyncPlan,
        dry_run: Optional[bool] = None,
        progress_callback: Optional[Callable[[SyncProgress], None]] = None,
        compare_errors: int = 0
    ) -> SyncResult:
        """
        Execute a synchronization plan.

        Args:
            plan: The sync plan to execute
            dry_run: Report the plan without touching the filesystem
                (defaults to ``sync_dry_run``)
            progress_callback: Called with progress updates
            compare_errors: Errors from the comparison the plan came from

        Returns:
            SyncResult with execution details
        """
        start_time = time.time()
        if dry_run is None:
            dry_run = self.config.sync_dry_run

        result = SyncResult(plan=plan, dry_run=dry_run, compare_errors=compare_errors)

        if dry_run:
            logging.info(
                f"FolderSync - Dry run: {plan.copy_count} to copy, "
                f"{plan.delete_count} to delete, {plan.skip_count} to skip"
            )
            result.items_skipped = plan.skip_count
            result.duration = time.time() - start_time
            return result

        total_items = len(plan.items)
        total_bytes = plan.total_bytes
        dest_root = Path(plan.dest_path)

        for i, item in enumerate(self.execution_order(plan)):
            if self.is_cancelled:
                logging.info(f"FolderSync - Sync cancelled after {i} of {total_items} items")
                result.cancelled = True
                break

            # Report progress
            if progress_callback:
                progress_callback(SyncProgress(
                    current_item=item.relative_path,
                    items_completed=i,
                    total_items=total_items,
                    bytes_copied=result.bytes_copied,
                    total_bytes=total_bytes,
                    current_action=item.action.name,
                ))

            try:
                if item.action == SyncAction.COPY:
                    if item.is_symlink:
                        self._copy_symlink(item.source_path, item.dest_path)
                    else:
                        result.bytes_copied += self._copy_file(item.source_path, item.dest_path)
                    result.items_copied += 1
                    result.applied.append(item)

                elif item.action == SyncAction.DELETE:
                    self._delete_path(item.dest_path)
                    self._remove_empty_parents(item.dest_path, dest_root)
                    result.items_deleted += 1
                    result.applied.append(item)

                else:
                    result.items_skipped += 1

            except SyncActionError as e:
                result.items_failed += 1
                result.errors.append(EntryError("destination", item.relative_path, e.message))
                logging.warning(f"FolderSync - {item.action.name} failed for {item.relative_path}: {e.message}")

        result.duration = time.time() - start_time
        logging.info(
            f"FolderSync - Copied {result.items_copied}, deleted {result.items_deleted}, "
            f"skipped {result.items_skipped}, failed {result.items_failed} "
            f"in {result.duration:.2f}s"
        )
        return result

    def sync(
        self,
        source_path: Path | str,
        dest_path: Path | str,
        progress_callback: Optional[Callable[[SyncProgress], None]] = None,
        dry_run: Optional[bool] = None
    ) -> SyncResult:
        """
        Perform full sync: compare and execute.

        Convenience method combining a batch compare, plan and execute.
        """
        engine_config = dataclasses.replace(self.config, mode=RunMode.BATCH)
        engine = CompareEngine(engine_config, self.hashing, self._stop_event)

        report = engine.compare(source_path, dest_path)
        plan = self.create_plan(report)

        if report.summary.cancelled:
            return SyncResult(plan=plan, dry_run=True, cancelled=True)

        return self.execute(
            plan,
            dry_run=dry_run,
            progress_callback=progress_callback,
            compare_errors=report.summary.error_count + report.summary.errored,
        )

    def cancel(self) -> None:
        """Cancel ongoing synchronization."""
        self._stop_event.set()

    @staticmethod
    def execution_order(plan: SyncPlan) -> list[SyncItem]:
        """
        Order in which plan items are applied.

        Deletions run first, deepest path first, so a file copied over a
        path that is a directory in the destination (or the reverse) finds
        the way clear. Other items keep plan order.
        """
        deletes = sorted(
            plan.iter_by_action(SyncAction.DELETE),
            key=lambda item: (-item.relative_path.count("/"), item.relative_path),
        )
        others = [item for item in plan.items if item.action != SyncAction.DELETE]
        return deletes + others

    def _create_sync_item(
        self,
        outcome: ComparisonOutcome,
        source_root: Path,
        dest_root: Path
    ) -> SyncItem:
        """Create a sync item from a comparison outcome."""
        rel_path = outcome.relative_path
        source_path = source_root.joinpath(*rel_path.split("/"))
        dest_path = dest_root.joinpath(*rel_path.split("/"))

        if outcome.outcome in (Outcome.DIFFER, Outcome.MISSING_IN_RIGHT):
            is_symlink = self.config.symlinks == SymlinkMode.COMPARE and source_path.is_symlink()
            return SyncItem(
                relative_path=rel_path,
                action=SyncAction.COPY,
                source_path=source_path,
                dest_path=dest_path,
                size=outcome.left_size or 0,
                is_symlink=is_symlink,
                reason="Missing in destination" if outcome.outcome == Outcome.MISSING_IN_RIGHT
                else f"Differs ({outcome.reason})",
            )

        if outcome.outcome == Outcome.EXTRA_IN_RIGHT:
            if self.config.sync_delete_extraneous:
                return SyncItem(
                    relative_path=rel_path,
                    action=SyncAction.DELETE,
                    dest_path=dest_path,
                    size=outcome.right_size or 0,
                    reason="Does not exist in source",
                )
            return SyncItem(
                relative_path=rel_path,
                action=SyncAction.SKIP,
                dest_path=dest_path,
                reason="Extra in destination (deletion disabled)",
            )

        if outcome.outcome == Outcome.ERRORED:
            return SyncItem(
                relative_path=rel_path,
                action=SyncAction.SKIP,
                source_path=source_path,
                dest_path=dest_path,
                reason=f"Comparison error: {outcome.reason}",
            )

        return SyncItem(
            relative_path=rel_path,
            action=SyncAction.SKIP,
            source_path=source_path,
            dest_path=dest_path,
            reason="Identical",
        )

    def _copy_file(self, source: Path, dest: Path) -> int:
        """
        Copy a file from source to destination.

        Returns bytes copied.
        """
        bytes_copied = 0

        try:
            # Ensure parent directory exists
            dest.parent.mkdir(parents=True, exist_ok=True)

            # Never write through a link at the destination
            if dest.is_symlink():
                dest.unlink()

            with open(source, 'rb') as src:
                with open(dest, 'wb') as dst:
                    while chunk := src.read(BUFFER_SIZE):
                        dst.write(chunk)
                        bytes_copied += len(chunk)

            # Preserve metadata
            stat = source.stat()
            os.utime(dest, ns=(stat.st_atime_ns, stat.st_mtime_ns))
            shutil.copymode(source, dest)
        except OSError as e:
            raise SyncActionError(str(dest), e.strerror or str(e)) from e

        return bytes_copied

    def _copy_symlink(self, source: Path, dest: Path) -> None:
        """Re-create a symbolic link with the source's target."""
        try:
            target = os.readlink(source)
            dest.parent.mkdir(parents=True, exist_ok=True)
            if dest.is_symlink() or dest.exists():
                dest.unlink()
            os.symlink(target, dest)
        except OSError as e:
            raise SyncActionError(str(dest), e.strerror or str(e)) from e

    def _delete_path(self, path: Path) -> None:
        """Delete a file or link from the destination."""
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise SyncActionError(str(path), e.strerror or str(e)) from e

    def _remove_empty_parents(self, path: Path, dest_root: Path) -> None:
        """Remove directories left empty by a deletion, up to the destination root."""
        parent = path.parent
        while parent != dest_root and dest_root in parent.parents:
            try:
                parent.rmdir()
            except OSError:
                # Not empty, or not ours to remove
                return
            parent = parent.parent
