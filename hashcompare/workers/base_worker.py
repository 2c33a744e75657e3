"""
Base worker for running an engine operation off the UI thread.

Cancellation sets the worker's stop event, which is handed to the engine
so the run stops at the next file boundary.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Any, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from hashcompare.core.errors import CancelledError


class WorkerState(Enum):
    PENDING = auto()
    RUNNING = auto()
    CANCELLED = auto()
    COMPLETED = auto()
    FAILED = auto()


class WorkerSignals(QObject):
    """Signals shared by every worker."""
    # CompareProgress while comparing or hashing, SyncProgress while syncing
    progress = pyqtSignal(object)

    status = pyqtSignal(str)
    started = pyqtSignal()

    # Result of do_work
    finished = pyqtSignal(object)

    # (exception class name, message)
    error = pyqtSignal(str, str)

    cancelled = pyqtSignal()


class WorkerMeta(type(QObject), type(ABC)):
    pass


class BaseWorker(QObject, ABC, metaclass=WorkerMeta):
    """
    Runs ``do_work`` once and reports the outcome through ``signals``.

    A run that returns after the stop event was set, or raises
    CancelledError, ends CANCELLED; any other exception ends FAILED with
    the error signal.
    """

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.signals = WorkerSignals()
        self.stop_event = threading.Event()
        self.state = WorkerState.PENDING
        self.result: Any = None
        self.error: Optional[tuple[str, str]] = None

    @property
    def is_cancelled(self) -> bool:
        return self.stop_event.is_set()

    def cancel(self) -> None:
        """Ask the running (or not yet started) operation to stop."""
        self.stop_event.set()

    @pyqtSlot()
    def run(self) -> None:
        self.state = WorkerState.RUNNING
        self.signals.started.emit()

        try:
            self.result = self.do_work()
        except CancelledError:
            self.state = WorkerState.CANCELLED
            self.signals.cancelled.emit()
            return
        except Exception as e:
            logging.error(f"{type(self).__name__} - Worker failed: {e}")
            self.error = (type(e).__name__, str(e))
            self.state = WorkerState.FAILED
            self.signals.error.emit(*self.error)
            return

        if self.is_cancelled:
            self.state = WorkerState.CANCELLED
            self.signals.cancelled.emit()
        else:
            self.state = WorkerState.COMPLETED
            self.signals.finished.emit(self.result)

    @abstractmethod
    def do_work(self) -> Any:
        """Run the operation, passing ``stop_event`` to the engine."""
        pass

    def report_progress(self, progress: Any) -> None:
        self.signals.progress.emit(progress)

    def report_status(self, message: str) -> None:
        self.signals.status.emit(message)


class WorkerThread(QThread):
    """QThread that runs one worker and quits when it ends."""

    def __init__(self, worker: BaseWorker, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.worker = worker
        self.worker.moveToThread(self)

        self.started.connect(self.worker.run)
        self.worker.signals.finished.connect(self.quit)
        self.worker.signals.error.connect(self.quit)
        self.worker.signals.cancelled.connect(self.quit)

    def cancel(self) -> None:
        self.worker.cancel()
