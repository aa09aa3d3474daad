from __future__ import annotations

import uuid

import fsspec
import pytest

from climalink.consumers import FsspecConsumer
from climalink.core.errors import StoreCreationError
from climalink.core.reporting import MESSAGE, QueueReportingListener


@pytest.fixture
def memory_store():
    root = f"memory://climalink-{uuid.uuid4().hex}"
    yield root
    fs = fsspec.filesystem("memory")
    path = root[len("memory://"):]
    if fs.exists(path):
        fs.rm(path, recursive=True)


def _read(path: str) -> str:
    with fsspec.open(path, "r", encoding="utf-8") as handle:
        return handle.read()


def test_local_store_layout(settings, station_dataset) -> None:
    consumer = FsspecConsumer(settings)
    consumer.initialise(station_dataset)
    consumer.bulk_load(station_dataset)

    store = settings.store_root / "climalink-databases" / "Test Data"
    assert (store / "Stations" / "_HEADER").read_text(encoding="utf-8") == "Name,Count,Day,Reading\n"
    part = (store / "Stations" / "part-00000.csv").read_text(encoding="utf-8")
    assert part.splitlines() == [
        "O Brien,3,1991-01-01,12.5",
        "Lake; North,4,1991-02-01,7",
        "Ridge,5,1991-03-01,-3.25",
    ]
    metadata = (store / "StationsMETA").read_text(encoding="utf-8").splitlines()
    assert metadata == sorted(metadata)
    assert "notes\tfirst line | second line" in metadata
    assert "creator\tMISSINGFROMDATASET" in metadata
    assert (store / "Test DataMETA").exists()


def test_memory_store_writes_one_part_per_batch(settings, station_dataset, memory_store) -> None:
    consumer = FsspecConsumer(settings)
    consumer.set_store(memory_store)
    consumer.initialise(station_dataset)
    assert consumer.get_store() == f"{memory_store}/climalink-databases/Test Data/"

    records = station_dataset.get_record_holder(0).records
    consumer.load(records[:2])
    consumer.load(records[2:])

    assert consumer.has_record_store("Stations")
    parts = consumer.record_files("Stations")
    assert [path.rsplit("/", 1)[-1] for path in parts] == ["part-00000.csv", "part-00001.csv"]
    base = f"{memory_store}/climalink-databases/Test Data/Stations"
    assert _read(f"{base}/part-00001.csv") == "Ridge,5,1991-03-01,-3.25\n"
    consumer.disconnect_store()


def test_reinitialise_replaces_record_store(settings, station_dataset, memory_store) -> None:
    first = FsspecConsumer(settings)
    first.set_store(memory_store)
    first.initialise(station_dataset)
    first.bulk_load(station_dataset)

    second = FsspecConsumer(settings)
    events = QueueReportingListener()
    second.add_reporting_listener(events)
    second.set_store(memory_store)
    second.initialise(station_dataset)

    assert (MESSAGE, "Deleted and rebuilt record store Stations") in events.drain()
    assert second.record_files("Stations") == []


def test_unknown_protocol_is_a_creation_error(settings, station_dataset) -> None:
    consumer = FsspecConsumer(settings)
    consumer.set_store("no-such-protocol-xyz://bucket")
    with pytest.raises(StoreCreationError, match="filesystem store"):
        consumer.initialise(station_dataset)
    assert not consumer.has_record_store("Stations")


def test_metadata_values_are_weak_sanitised(settings, station_dataset, memory_store) -> None:
    station_dataset.get_record_holder(0).metadata.creator = "x'); DROP=1"
    consumer = FsspecConsumer(settings)
    consumer.set_store(memory_store)
    consumer.initialise(station_dataset)

    metadata = _read(f"{memory_store}/climalink-databases/Test Data/StationsMETA").splitlines()
    assert "creator\tx    DROP 1" in metadata
    consumer.disconnect_store()
