from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from climalink.consumers import FlatFileConsumer, SQLiteConsumer
from climalink.core.errors import DataError, DataQualityError, StoreCreationError
from climalink.core.reporting import MESSAGE, PROGRESS, QueueReportingListener
from climalink import linker as linker_module
from climalink.linker import MSG_FINISHED, MSG_LARGE, DataLinker, LinkerState, memory_in_use
from climalink.settings import TransferMode
from climalink.suppliers import CruTs2pt1Supplier


def _linker(settings, grid_dir: Path, names, store: Path | None = None, mode=None, consumer=None) -> DataLinker:
    supplier = CruTs2pt1Supplier()
    supplier.set_source(grid_dir)
    supplier.set_record_holder_names(list(names))
    consumer = consumer or SQLiteConsumer(settings)
    if store is not None:
        consumer.set_store(store)
    return DataLinker(supplier, consumer, settings=settings, mode=mode)


def test_push_and_pull_store_the_same_rows(settings, grid_dir, write_grid, tmp_path) -> None:
    write_grid("valid.pre", blocks=2)
    push = _linker(settings, grid_dir, ["valid.pre"], store=tmp_path / "push", mode="push")
    pull = _linker(settings, grid_dir, ["valid.pre"], store=tmp_path / "pull", mode="pull")

    push.process()
    pull.process()

    assert push.transfer_mode is TransferMode.PUSH
    assert pull.transfer_mode is TransferMode.PULL
    pushed = push.consumer.first_and_last("PRE199120001")
    pulled = pull.consumer.first_and_last("PRE199120001")
    assert pushed == pulled
    assert pushed[0] == (1, 148, "1991-01-01", 0)
    assert pushed[1][:3] == (2, 147, "2000-12-01")


def test_process_reports_and_completes(settings, grid_dir, write_grid) -> None:
    write_grid("valid.pre")
    linker = _linker(settings, grid_dir, ["valid.pre"])
    events = QueueReportingListener()
    linker.add_reporting_listener(events)
    assert linker.state is LinkerState.UNCONFIGURED

    linker.process()

    assert linker.state is LinkerState.COMPLETED
    drained = events.drain()
    assert drained[-2:] == [(PROGRESS, (0, 1)), (MESSAGE, MSG_FINISHED)]
    assert (MESSAGE, "Creating database and tables.") in drained
    assert (MESSAGE, "Reading in file.") in drained

    with pytest.raises(RuntimeError, match="already run"):
        linker.process()


def test_pull_clears_rows_after_loading(settings, grid_dir, write_grid) -> None:
    write_grid("valid.pre")
    linker = _linker(settings, grid_dir, ["valid.pre"], mode=TransferMode.PULL)
    linker.process()

    dataset = linker.supplier.get_dataset()
    assert dataset.record_count == 0
    assert dataset.estimated_record_count == 120


def test_push_announces_large_dataset(settings, grid_dir, write_grid) -> None:
    write_grid("valid.pre")
    linker = _linker(settings, grid_dir, ["valid.pre"])
    linker.set_mode("push")
    events = QueueReportingListener()
    linker.add_reporting_listener(events)
    linker.process()

    assert (MESSAGE, MSG_LARGE) in events.drain()
    first, last = linker.consumer.first_and_last("PRE199120001")
    assert first is not None and last is not None


def test_auto_mode_pushes_when_memory_is_short(settings, grid_dir, write_grid) -> None:
    write_grid("valid.pre")
    settings.memory_limit = 0
    linker = _linker(settings, grid_dir, ["valid.pre"])
    assert linker.mode is TransferMode.AUTO
    linker.process()
    assert linker.transfer_mode is TransferMode.PUSH


def test_auto_mode_pulls_when_memory_is_plentiful(settings, grid_dir, write_grid, monkeypatch) -> None:
    write_grid("valid.pre")
    monkeypatch.setattr("climalink.linker.memory_in_use", lambda: 0)
    linker = _linker(settings, grid_dir, ["valid.pre"])
    assert linker.choose_mode() is TransferMode.PULL

    monkeypatch.setattr("climalink.linker.memory_in_use", lambda: settings.memory_limit)
    assert linker.choose_mode() is TransferMode.PUSH


def test_projected_memory_uses_backend_multiplier(settings, grid_dir, write_grid) -> None:
    path = write_grid("valid.pre")
    size = path.stat().st_size

    sqlite = _linker(settings, grid_dir, ["valid.pre"])
    assert sqlite.projected_memory() == size * 105

    flat = _linker(settings, grid_dir, ["valid.pre"], consumer=FlatFileConsumer(settings))
    assert flat.projected_memory() == size * 20


def test_projected_memory_needs_readable_files(settings, grid_dir) -> None:
    linker = _linker(settings, grid_dir, ["missing.pre"])
    with pytest.raises(DataError, match="problem determining the size of a file"):
        linker.projected_memory()


def test_failure_marks_linker_failed(settings, grid_dir, malformed) -> None:
    malformed("missingnumber")
    linker = _linker(settings, grid_dir, ["missingnumber.pre"], mode="push")
    events = QueueReportingListener()
    linker.add_reporting_listener(events)

    with pytest.raises(DataQualityError):
        linker.process()

    assert linker.state is LinkerState.FAILED
    assert events.drain()[-1] == (PROGRESS, (0, 1))
    assert linker.consumer._connection is None


def test_consumer_errors_pass_through_push(settings, grid_dir, write_grid, monkeypatch) -> None:
    write_grid("valid.pre")
    linker = _linker(settings, grid_dir, ["valid.pre"], mode="push")
    failure = StoreCreationError("disk full")

    def refuse(records):
        raise failure

    monkeypatch.setattr(linker.consumer, "load", refuse)
    with pytest.raises(StoreCreationError) as excinfo:
        linker.process()
    assert excinfo.value is failure
    assert linker.state is LinkerState.FAILED


def test_submit_runs_on_worker_thread(settings, grid_dir, write_grid) -> None:
    write_grid("valid.pre")
    linker = _linker(settings, grid_dir, ["valid.pre"])
    events = QueueReportingListener()
    linker.add_reporting_listener(events)

    future = linker.submit()
    assert future.result(timeout=30) is None
    assert linker.state is LinkerState.COMPLETED
    assert (MESSAGE, MSG_FINISHED) in events.drain()


def test_submit_surfaces_failures(settings, grid_dir) -> None:
    linker = _linker(settings, grid_dir, ["missing.pre"])
    future = linker.submit()
    with pytest.raises(DataError):
        future.result(timeout=30)
    assert linker.state is LinkerState.FAILED


@pytest.mark.skipif(not hasattr(os, "sysconf"), reason="needs os.sysconf")
def test_memory_in_use_reads_current_resident_pages(tmp_path, monkeypatch) -> None:
    statm = tmp_path / "statm"
    statm.write_text("1000 25 10 1 0 50 0\n", encoding="ascii")
    monkeypatch.setattr(linker_module, "STATM_PATH", statm)

    assert memory_in_use() == 25 * os.sysconf("SC_PAGE_SIZE")


def test_memory_in_use_without_procfs_or_resource(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(linker_module, "STATM_PATH", tmp_path / "absent")
    monkeypatch.setitem(sys.modules, "resource", None)

    assert linker_module._resource_module() is None
    assert memory_in_use() == 0


def test_memory_in_use_falls_back_to_peak_usage(tmp_path, monkeypatch) -> None:
    class FakeUsage:
        ru_maxrss = 4

    class FakeResource:
        RUSAGE_SELF = 0

        @staticmethod
        def getrusage(who):
            return FakeUsage()

    monkeypatch.setattr(linker_module, "STATM_PATH", tmp_path / "absent")
    monkeypatch.setattr(linker_module, "_resource_module", lambda: FakeResource)
    monkeypatch.setattr(linker_module.sys, "platform", "linux")

    assert memory_in_use() == 4 * 1024
