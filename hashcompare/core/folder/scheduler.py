"""
Execution scheduling for folder comparison.

Fingerprint plus classify runs through a single function, ``run_pairs``,
parameterized by an executor:
- Batch: a bounded thread pool; results are merged by relative path
- Realtime: one pair at a time in pairing order, each outcome emitted
  immediately

Shared mutable state is limited to the result merge in the calling
thread, the lock-protected progress counter and the output sink.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, TypeVar

from hashcompare.core.folder.comparer import IdentitySource, classify_pair
from hashcompare.core.folder.fingerprint import Fingerprinter, select_fingerprinter
from hashcompare.core.folder.scanner import FolderScanner, ScanProgress, ScanResult
from hashcompare.core.models import (
    CompareProgress,
    CompareReport,
    ComparisonOutcome,
    EntryError,
    ErrorIdentity,
    FileEntry,
    Outcome,
    RunMode,
    RunSummary,
    path_sort_key,
)
from hashcompare.services.hashing import HashingService
from hashcompare.services.settings import RunConfig


T = TypeVar('T')
R = TypeVar('R')

Pair = tuple[Optional[FileEntry], Optional[FileEntry]]

# Progress sampling rate (10 Hz)
PROGRESS_INTERVAL = 0.1


# =============================================================================
# Executors
# =============================================================================

class SequentialExecutor:
    """Runs tasks one at a time, in input order."""

    max_workers = 1

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> Iterator[R]:
        for item in items:
            yield fn(item)


class ParallelExecutor:
    """Runs tasks on a bounded thread pool; results arrive in completion order."""

    def __init__(self, max_workers: int):
        self.max_workers = max(1, max_workers)

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> Iterator[R]:
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(fn, item) for item in items]
            for future in as_completed(futures):
                yield future.result()


def create_executor(mode: RunMode, thread_count: int):
    """Executor for a run mode."""
    if mode == RunMode.REALTIME:
        return SequentialExecutor()
    return ParallelExecutor(thread_count)


# =============================================================================
# Progress and Output
# =============================================================================

class ProgressCounter:
    """Completed/total counter shared between workers and the sampler."""

    def __init__(self, total: int = 0, phase: str = "comparing"):
        self._lock = threading.Lock()
        self._completed = 0
        self._total = total
        self.phase = phase

    def increment(self, amount: int = 1) -> None:
        with self._lock:
            self._completed += amount

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def snapshot(self) -> CompareProgress:
        with self._lock:
            return CompareProgress(phase=self.phase, completed=self._completed, total=self._total)


class ProgressSampler(threading.Thread):
    """Samples a ProgressCounter at a fixed rate and reports it."""

    def __init__(
        self,
        counter: ProgressCounter,
        callback: Callable[[CompareProgress], None],
        interval: float = PROGRESS_INTERVAL
    ):
        super().__init__(name="progress-sampler", daemon=True)
        self.counter = counter
        self.callback = callback
        self.interval = interval
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            self._report()

    def stop(self) -> None:
        """Stop sampling and report the final state once."""
        self._stopped.set()
        if self.is_alive():
            self.join()
        self._report()

    def _report(self) -> None:
        try:
            self.callback(self.counter.snapshot())
        except Exception:
            logging.exception("ProgressSampler - Progress callback failed")


class OutputSink:
    """
    Serializes emissions to the reporting layer.

    Outcomes and per-entry errors travel on separate channels.
    """

    def __init__(
        self,
        on_outcome: Optional[Callable[[ComparisonOutcome], None]] = None,
        on_error: Optional[Callable[[EntryError], None]] = None
    ):
        self._lock = threading.Lock()
        self.on_outcome = on_outcome
        self.on_error = on_error

    def emit_outcome(self, outcome: ComparisonOutcome) -> None:
        with self._lock:
            if self.on_outcome:
                self.on_outcome(outcome)

    def emit_error(self, error: EntryError) -> None:
        with self._lock:
            if self.on_error:
                self.on_error(error)


# =============================================================================
# Pair Execution
# =============================================================================

def pair_entries(
    left_entries: dict[str, FileEntry],
    right_entries: dict[str, FileEntry],
    sort: bool = True
) -> list[Pair]:
    """
    Build the pair plan: left entries first, then right-only entries.

    Both parts are ordered by path segments when ``sort`` is set,
    otherwise they keep traversal order.
    """
    left_paths = list(left_entries)
    right_only = [p for p in right_entries if p not in left_entries]
    if sort:
        left_paths.sort(key=path_sort_key)
        right_only.sort(key=path_sort_key)

    pairs: list[Pair] = [(left_entries[p], right_entries.get(p)) for p in left_paths]
    pairs.extend((None, right_entries[p]) for p in right_only)
    return pairs


def _pair_path(pair: Pair) -> str:
    left, right = pair
    return (left or right).relative_path


def outcome_error(outcome: ComparisonOutcome) -> EntryError:
    """Per-entry error carried by an Errored outcome."""
    side = "left" if isinstance(outcome.left_identity, ErrorIdentity) else "right"
    if outcome.left_identity is None and outcome.right_identity is None:
        side = "both"
    return EntryError(side, outcome.relative_path, outcome.reason)


def run_pairs(
    pairs: Iterable[Pair],
    strategy: Fingerprinter,
    executor,
    sink: Optional[OutputSink] = None,
    counter: Optional[ProgressCounter] = None,
    stop_event: Optional[threading.Event] = None,
    left_source: Optional[IdentitySource] = None,
    right_source: Optional[IdentitySource] = None
) -> list[ComparisonOutcome]:
    """
    Fingerprint and classify every pair through an executor.

    Pairs are skipped once ``stop_event`` is set; a pair already being
    hashed finishes. Unexpected exceptions become Errored outcomes.

    Returns:
        Outcomes in the order the executor produced them
    """
    def task(pair: Pair) -> Optional[ComparisonOutcome]:
        if stop_event is not None and stop_event.is_set():
            return None

        try:
            outcome = classify_pair(pair[0], pair[1], strategy, left_source, right_source)
        except Exception as e:
            rel_path = _pair_path(pair)
            logging.exception(f"run_pairs - Error comparing {rel_path}")
            outcome = ComparisonOutcome(
                relative_path=rel_path,
                outcome=Outcome.ERRORED,
                reason=str(e),
            )

        if counter is not None:
            counter.increment()
        if sink is not None:
            sink.emit_outcome(outcome)
            if outcome.is_error:
                sink.emit_error(outcome_error(outcome))
        return outcome

    return [outcome for outcome in executor.map(task, pairs) if outcome is not None]


# =============================================================================
# Compare Engine
# =============================================================================

class CompareEngine:
    """
    Compares two folder trees.

    Batch mode scans both trees concurrently and fingerprints pairs on a
    thread pool. Realtime mode fingerprints and reports one pair at a time.
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
    def stop_event(self) -> threading.Event:
        return self._stop_event

    @property
    def is_cancelled(self) -> bool:
        return self._stop_event.is_set()

    @property
    def thread_count(self) -> int:
        if self.config.mode == RunMode.REALTIME:
            return 1
        return self.config.effective_threads

    def cancel(self) -> None:
        """Cancel the ongoing or next run at the next file boundary. Cancellation is sticky."""
        self._stop_event.set()

    def compare(
        self,
        left_path: Path | str,
        right_path: Path | str,
        progress_callback: Optional[Callable[[CompareProgress], None]] = None,
        sink: Optional[OutputSink] = None
    ) -> CompareReport:
        """
        Compare two directories.

        Args:
            left_path: Left/source directory
            right_path: Right/target directory
            progress_callback: Called with sampled progress
            sink: Receives outcomes and per-entry errors. In realtime mode
                each outcome is emitted as soon as it is classified; in
                batch mode after the merge.

        Returns:
            CompareReport with outcomes, errors and summary

        Raises:
            PathError: If either root is missing or not a directory
        """
        start_time = time.time()
        config = self.config

        left_root = FolderScanner.validate_root(left_path)
        right_root = FolderScanner.validate_root(right_path)
        strategy = select_fingerprinter(config.algorithm, config.symlinks, self.hashing)

        logging.info(
            f"CompareEngine - Comparing {left_root} with {right_root} "
            f"(mode={config.mode.value}, algorithm={config.algorithm.value}, threads={self.thread_count})"
        )

        left_scan, right_scan = self._scan_both(
            left_root, right_root, config.mode == RunMode.REALTIME, progress_callback
        )

        return self.execute(
            left_root,
            right_root,
            left_scan.entries,
            right_scan.entries,
            strategy,
            errors=left_scan.errors + right_scan.errors,
            progress_callback=progress_callback,
            sink=sink,
            start_time=start_time,
        )

    def execute(
        self,
        left_root: Path,
        right_root: Path,
        left_entries: dict[str, FileEntry],
        right_entries: dict[str, FileEntry],
        strategy: Fingerprinter,
        errors: Optional[list[EntryError]] = None,
        progress_callback: Optional[Callable[[CompareProgress], None]] = None,
        sink: Optional[OutputSink] = None,
        left_source: Optional[IdentitySource] = None,
        start_time: Optional[float] = None
    ) -> CompareReport:
        """
        Fingerprint and classify two entry sets that have already been walked.

        ``left_source`` replaces the strategy for the left side, e.g. with
        identities recorded in a snapshot.
        """
        if start_time is None:
            start_time = time.time()
        config = self.config
        errors = list(errors or [])
        realtime = config.mode == RunMode.REALTIME

        if realtime and sink is not None:
            for error in errors:
                sink.emit_error(error)

        pairs = pair_entries(left_entries, right_entries, config.sort_output)
        counter = ProgressCounter(total=len(pairs))
        sampler = ProgressSampler(counter, progress_callback) if progress_callback else None

        if sampler:
            sampler.start()
        try:
            outcomes = run_pairs(
                pairs,
                strategy,
                create_executor(config.mode, self.thread_count),
                sink=sink if realtime else None,
                counter=counter,
                stop_event=self._stop_event,
                left_source=left_source,
            )
        finally:
            if sampler:
                sampler.stop()

        # Merge by relative path, never by completion order
        by_path = {outcome.relative_path: outcome for outcome in outcomes}
        if config.sort_output:
            ordered = sorted(by_path.values(), key=lambda o: o.sort_key)
        else:
            ordered = [by_path[path] for path in map(_pair_path, pairs) if path in by_path]

        if not realtime and sink is not None:
            for error in errors:
                sink.emit_error(error)
            for outcome in ordered:
                sink.emit_outcome(outcome)
                if outcome.is_error:
                    sink.emit_error(outcome_error(outcome))

        summary = RunSummary(
            mode=config.mode,
            algorithm=strategy.algorithm,
            thread_count=self.thread_count,
            error_count=len(errors),
            cancelled=self.is_cancelled,
        )
        for outcome in ordered:
            summary.record(outcome)
            if config.verbose:
                logging.debug(f"CompareEngine - {outcome} {outcome.reason}".rstrip())
        summary.elapsed = time.time() - start_time

        if summary.cancelled:
            logging.info(f"CompareEngine - Comparison cancelled after {summary.total} of {len(pairs)} paths")
        else:
            logging.info(f"CompareEngine - Comparison finished: {summary.text}")

        return CompareReport(
            left_root=left_root,
            right_root=right_root,
            outcomes=ordered,
            errors=errors,
            summary=summary,
        )

    def _scan_both(
        self,
        left_root: Path,
        right_root: Path,
        sequential: bool,
        progress_callback: Optional[Callable[[CompareProgress], None]]
    ) -> tuple[ScanResult, ScanResult]:
        options = self.config.scan_options()
        left_scanner = FolderScanner(options, "left", self._stop_event)
        right_scanner = FolderScanner(options, "right", self._stop_event)

        # Files found on both sides; the total stays unknown while walking
        counter = ProgressCounter(phase="scanning")
        sampler = ProgressSampler(counter, progress_callback) if progress_callback else None

        def reporter() -> Callable[[ScanProgress], None]:
            seen = 0

            def report(progress: ScanProgress) -> None:
                nonlocal seen
                counter.increment(progress.files_found - seen)
                seen = progress.files_found

            return report

        if sampler:
            sampler.start()
        try:
            if not sequential:
                with ThreadPoolExecutor(max_workers=2) as executor:
                    left_future = executor.submit(left_scanner.scan, left_root, reporter())
                    right_future = executor.submit(right_scanner.scan, right_root, reporter())
                    return left_future.result(), right_future.result()

            return left_scanner.scan(left_root, reporter()), right_scanner.scan(right_root, reporter())
        finally:
            if sampler:
                sampler.stop()
