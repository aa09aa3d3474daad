"""Message and progress reporting shared by suppliers, consumers and the linker.

Events are fire-and-forget: listeners return nothing, and a listener that
raises is logged and skipped so reporting can never interrupt a transfer.
"""
from __future__ import annotations

import logging
import queue
from typing import TYPE_CHECKING, List, Protocol, Tuple

if TYPE_CHECKING:  # pragma: no cover - typing only
    from climalink.data import TabulatedDataset

logger = logging.getLogger(__name__)

MESSAGE = "message"
PROGRESS = "progress"


class ReportingListener(Protocol):
    """Receives user-facing messages and progress fractions."""

    def on_message(self, message: str) -> None:
        """Handle a user-facing *message*."""

    def on_progress(self, done: float, total: float) -> None:
        """Handle progress; a *total* of 1 signals a reset."""


def should_report(progress: int, total: int) -> bool:
    """Return ``True`` when *progress* lands on a whole percent of *total*."""

    if total <= 0:
        return False
    step = max(1, total // 100)
    return progress % step == 0


class Reporter:
    """Mixin holding reporting listeners and broadcasting to them."""

    def __init__(self) -> None:
        self._reporting_listeners: List[ReportingListener] = []

    def add_reporting_listener(self, listener: ReportingListener) -> None:
        """Register *listener* for messages and progress."""

        if listener not in self._reporting_listeners:
            self._reporting_listeners.append(listener)

    def report_message(self, message: str) -> None:
        for listener in list(self._reporting_listeners):
            try:
                listener.on_message(message)
            except Exception:  # pragma: no cover - listener faults are not ours
                logger.warning("Reporting listener %r failed on message", listener, exc_info=True)

    def report_progress(self, done: float, total: float) -> None:
        for listener in list(self._reporting_listeners):
            try:
                listener.on_progress(done, total)
            except Exception:  # pragma: no cover - listener faults are not ours
                logger.warning("Reporting listener %r failed on progress", listener, exc_info=True)

    def report_record_progress(self, progress: int, dataset: "TabulatedDataset") -> None:
        """Report record-level *progress* against the dataset estimate, throttled."""

        if progress <= 0:
            self.report_progress(0, 1)
            return
        total = dataset.estimated_record_count
        if should_report(progress, total):
            self.report_progress(progress, total)


class LoggingReportingListener:
    """Write reporting events to a logger."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def on_message(self, message: str) -> None:
        for line in message.splitlines() or [""]:
            self._logger.info("%s", line)

    def on_progress(self, done: float, total: float) -> None:
        if total <= 1:
            self._logger.debug("Progress reset")
            return
        self._logger.info("Progress %.0f%% (%d of %d)", 100.0 * done / total, done, total)


class QueueReportingListener:
    """Hand reporting events to another thread through a :class:`queue.Queue`.

    Each event is a ``(kind, payload)`` tuple where *kind* is ``"message"`` or
    ``"progress"``. The embedding thread drains the queue on its own schedule.
    """

    def __init__(self, events: "queue.Queue[Tuple[str, object]] | None" = None) -> None:
        self.events: "queue.Queue[Tuple[str, object]]" = events if events is not None else queue.Queue()

    def on_message(self, message: str) -> None:
        self.events.put_nowait((MESSAGE, message))

    def on_progress(self, done: float, total: float) -> None:
        self.events.put_nowait((PROGRESS, (done, total)))

    def drain(self) -> List[Tuple[str, object]]:
        """Return every queued event without blocking."""

        drained: List[Tuple[str, object]] = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained


__all__ = [
    "LoggingReportingListener",
    "QueueReportingListener",
    "Reporter",
    "ReportingListener",
    "should_report",
]
