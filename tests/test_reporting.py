from __future__ import annotations

import logging

from climalink.core.reporting import (
    MESSAGE,
    PROGRESS,
    LoggingReportingListener,
    QueueReportingListener,
    Reporter,
    should_report,
)
from climalink.data import TabulatedDataset


class _BrokenListener:
    def on_message(self, message: str) -> None:
        raise RuntimeError("broken")

    def on_progress(self, done: float, total: float) -> None:
        raise RuntimeError("broken")


def test_should_report_on_whole_percentages() -> None:
    assert should_report(50, 120)
    assert should_report(100, 10_000)
    assert not should_report(150, 10_000)
    assert not should_report(5, 0)


def test_reporter_broadcasts_to_every_listener() -> None:
    reporter = Reporter()
    first, second = QueueReportingListener(), QueueReportingListener()
    reporter.add_reporting_listener(first)
    reporter.add_reporting_listener(second)
    reporter.add_reporting_listener(first)

    reporter.report_message("hello")
    reporter.report_progress(3, 10)

    expected = [(MESSAGE, "hello"), (PROGRESS, (3, 10))]
    assert first.drain() == expected
    assert second.drain() == expected
    assert first.drain() == []


def test_failing_listener_does_not_interrupt(caplog) -> None:
    reporter = Reporter()
    events = QueueReportingListener()
    reporter.add_reporting_listener(_BrokenListener())
    reporter.add_reporting_listener(events)

    with caplog.at_level(logging.WARNING, logger="climalink.core.reporting"):
        reporter.report_message("still delivered")
        reporter.report_progress(1, 2)

    assert events.drain() == [(MESSAGE, "still delivered"), (PROGRESS, (1, 2))]
    assert "failed on message" in caplog.text


def test_record_progress_is_throttled_and_resets() -> None:
    dataset = TabulatedDataset()
    dataset.estimated_record_count = 1000
    reporter = Reporter()
    events = QueueReportingListener()
    reporter.add_reporting_listener(events)

    for progress in range(1, 31):
        reporter.report_record_progress(progress, dataset)
    reporter.report_record_progress(0, dataset)

    assert events.drain() == [
        (PROGRESS, (10, 1000)),
        (PROGRESS, (20, 1000)),
        (PROGRESS, (30, 1000)),
        (PROGRESS, (0, 1)),
    ]


def test_logging_listener_writes_each_line(caplog) -> None:
    listener = LoggingReportingListener(logging.getLogger("climalink.test"))
    with caplog.at_level(logging.DEBUG, logger="climalink.test"):
        listener.on_message("first\nsecond")
        listener.on_progress(25, 100)
        listener.on_progress(0, 1)

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["first", "second", "Progress 25% (25 of 100)", "Progress reset"]
