"""Base contract for data suppliers."""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from climalink.core.reporting import Reporter
from climalink.data import FieldType, Row, TabulatedDataset


class DataListener(Protocol):
    """Anything that can receive pushed blocks of rows, normally a consumer."""

    def load(self, records: List[Row]) -> None:
        """Store one batch of rows, all from the same record holder."""


class DataSupplier(Reporter, ABC):
    """Reads a source into a :class:`TabulatedDataset`.

    A supplier is configured with a source directory and an ordered list of
    file names, one record holder per file. After :meth:`initialise` the
    dataset structure is known and rows can either be materialised with
    :meth:`read_data` or streamed to data listeners with :meth:`push_data`.
    Instances are single use.
    """

    registry_key: str = ""
    field_names: Sequence[str] = ()
    field_types: Sequence[FieldType] = ()

    def __init__(self) -> None:
        super().__init__()
        self._source: Optional[Path] = None
        self._record_holder_names: Optional[List[str]] = None
        self._dataset: Optional[TabulatedDataset] = None
        self._data_listeners: List[DataListener] = []

    @abstractmethod
    def initialise(self) -> None:
        """Build the empty dataset and estimate its record count."""

    @abstractmethod
    def read_data(self) -> None:
        """Load every row of every record holder into memory."""

    @abstractmethod
    def push_data(self) -> None:
        """Stream rows block by block to every registered data listener."""

    @abstractmethod
    def connect_source(self, index: int) -> None:
        """Open the source backing record holder *index*."""

    @abstractmethod
    def disconnect_source(self) -> None:
        """Close whatever source is open; safe to call when nothing is."""

    def set_source(self, source: str | Path | None) -> None:
        self._source = Path(source) if source is not None else None

    def get_source(self) -> Optional[Path]:
        return self._source

    def set_record_holder_names(self, names: Optional[Sequence[str]]) -> None:
        self._record_holder_names = list(names) if names is not None else None

    def get_record_holder_names(self) -> Optional[List[str]]:
        return self._record_holder_names

    def get_field_names(self) -> List[str]:
        return list(self.field_names)

    def get_field_types(self) -> List[FieldType]:
        return list(self.field_types)

    def get_dataset(self) -> Optional[TabulatedDataset]:
        """Return the dataset built by :meth:`initialise`."""

        return self._dataset

    def add_data_listener(self, listener: DataListener) -> None:
        if listener not in self._data_listeners:
            self._data_listeners.append(listener)
