"""Base contract for data consumers (storage sinks)."""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from datetime import date
from typing import Iterator, List, Optional, Sequence, Tuple

from climalink.core.errors import ConversionError, StoreConfigError, StoreCreationError, StoreError
from climalink.core.reporting import Reporter
from climalink.data import FieldType, Metadata, Row, Table, TabulatedDataset
from climalink.settings import Settings

from . import sanitise

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "DEFAULT"
MISSING_METADATA = "MISSINGFROMDATASET"
META_SUFFIX = "META"

MSG_LOADING = "Loading data."
MSG_NAMES_MISMATCH = (
    "Number of record store names and number of record holders to store do not match."
)
MSG_FIELD_NAMES = "Number of fieldnames does not match number of fieldtypes in: "
MSG_CONVERSION = "Issue converting a value, please check the following: "
MSG_UNKNOWN_TABLE = "Issue finding table information for table: UNKNOWN"


def _meta_name(name: str) -> str:
    return name[: sanitise.MAX_NAME_BYTES - len(META_SUFFIX)] + META_SUFFIX


class DataConsumer(Reporter, ABC):
    """Turns a dataset description into storage objects and persists rows.

    :meth:`initialise` derives the store location and record store names and
    creates one object per record holder plus metadata objects. Rows then
    arrive either all at once through :meth:`bulk_load` or in batches through
    :meth:`load`; the caller ends a streamed transfer with
    :meth:`disconnect_store`.
    """

    registry_key: str = ""
    backend_directory: str = ""
    path_separator: str = os.sep
    msg_creating = "Creating store."
    msg_generated = "Generated record store: "
    msg_location = "...in store: "

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__()
        self.settings = settings or Settings.load()
        self._store: Optional[str] = None
        self._record_store_names: Optional[List[str]] = None
        self._progress = 0

    # ------------------------------------------------------------------ backend hooks
    @abstractmethod
    def sanitise_name(self, name: str) -> str:
        """Turn an external title into a legal record store name."""

    @abstractmethod
    def sanitise_store(self, store: str) -> str:
        """Turn a store location into a legal one."""

    @abstractmethod
    def connect_store(self) -> None:
        """Open or create the store at :meth:`get_store`."""

    @abstractmethod
    def disconnect_store(self) -> None:
        """Release store resources; safe to call repeatedly."""

    @abstractmethod
    def bulk_load(self, dataset: TabulatedDataset) -> None:
        """Write every row of every record holder in one operation."""

    @abstractmethod
    def has_record_store(self, name: str) -> bool:
        """Return ``True`` when a record store called *name* exists."""

    @abstractmethod
    def _create_record_store(self, table: Table, name: str) -> None:
        """Create (or rebuild) the object holding rows of *table*."""

    @abstractmethod
    def _create_metadata_store(self, metadata: Metadata, name: str) -> None:
        """Create the key-value object describing *metadata*."""

    @abstractmethod
    def _store_records(self, name: str, table: Table, records: Sequence[Row]) -> None:
        """Append *records* to record store *name*."""

    def _finish_stream(self, dataset: TabulatedDataset) -> None:
        """Called once a streamed transfer has delivered the estimated rows."""

    # ------------------------------------------------------------------ lifecycle
    def initialise(self, dataset: TabulatedDataset) -> None:
        self.report_message(self.msg_creating)
        title = self.sanitise_name(self.find_title(dataset.metadata))
        self.set_store(self._store_location(title))

        holders = dataset.record_holders
        if self._record_store_names is None:
            names = []
            for index, holder in enumerate(holders):
                name = self.find_title(holder.metadata)
                if name == DEFAULT_TITLE:
                    name = f"{name}{index}"
                names.append(name)
            self.set_record_store_names(names)
        elif len(self._record_store_names) != len(holders):
            raise StoreConfigError(MSG_NAMES_MISMATCH)

        self.connect_store()
        self._create_metadata_store(dataset.metadata, _meta_name(title))
        for holder, name in zip(holders, self.get_record_store_names() or ()):
            self._create_record_store(holder, name)
            self._create_metadata_store(holder.metadata, _meta_name(name))
            self.report_message(self.msg_generated + name)
        self.report_message(self.msg_location + str(self._store))
        logger.info("Initialised %s store at %s", self.registry_key or type(self).__name__, self._store)

    def load(self, records: Sequence[Row]) -> None:
        """Append one batch of rows, all belonging to the same record holder."""

        if not records:
            return
        table, dataset, name = self._resolve(records[0])
        self._store_records(name, table, records)
        if self._progress >= dataset.estimated_record_count:
            self.report_progress(0, 1)
            self._finish_stream(dataset)

    # ------------------------------------------------------------------ accessors
    def set_store(self, store: str | os.PathLike[str] | None) -> None:
        if store is None or str(store).strip() == "":
            self._store = None
            return
        text = sanitise.with_trailing_separator(str(store), self.path_separator)
        self._store = self.sanitise_store(text)

    def get_store(self) -> Optional[str]:
        return self._store

    def set_record_store_names(self, names: Optional[Sequence[str]]) -> None:
        if names is None:
            self._record_store_names = None
            return
        self._record_store_names = [self.sanitise_name(name) for name in names]

    def get_record_store_names(self) -> Optional[List[str]]:
        return self._record_store_names

    @staticmethod
    def find_title(metadata: Metadata | None) -> str:
        """Return the metadata title, or ``DEFAULT`` when there is none."""

        if metadata is None:
            return DEFAULT_TITLE
        for name, _, value in metadata.get_all():
            if name == "title":
                return value or DEFAULT_TITLE
        return DEFAULT_TITLE

    # ------------------------------------------------------------------ helpers
    def _store_location(self, title: str) -> str:
        base = self._store if self._store is not None else str(self.settings.store_root)
        base = sanitise.with_trailing_separator(base, self.path_separator)
        return f"{base}{self.backend_directory}{self.path_separator}{title}{self.path_separator}"

    def _resolve(self, record: Row) -> Tuple[Table, TabulatedDataset, str]:
        table = record.parent
        dataset = table.parent if table is not None else None
        index = dataset.index_of(table) if dataset is not None and table is not None else -1
        names = self._record_store_names or []
        if table is None or dataset is None or not 0 <= index < len(names):
            raise StoreError(MSG_UNKNOWN_TABLE)
        return table, dataset, names[index]

    def _count_record(self, dataset: TabulatedDataset | None) -> None:
        self._progress += 1
        if dataset is not None:
            self.report_record_progress(self._progress, dataset)

    @staticmethod
    def _check_fields(table: Table, name: str) -> None:
        if len(table.field_names) != len(table.field_types):
            raise StoreCreationError(MSG_FIELD_NAMES + name)

    @staticmethod
    def _check_value(value: object, field_type: FieldType, name: str) -> None:
        if not field_type.accepts(value):
            raise ConversionError(f"{MSG_CONVERSION}{name} -> {value}")

    @staticmethod
    def _metadata_entries(
        metadata: Metadata, missing: str = MISSING_METADATA
    ) -> Iterator[Tuple[str, str]]:
        """Yield ``(name, text)`` for every metadata field that has a value.

        Text is weak-sanitised for every backend.
        """

        for name, _, value in metadata.get_all():
            if value is None:
                continue
            if isinstance(value, date):
                text = value.isoformat()
            else:
                text = sanitise.weak(str(value))
            yield name, text if text != "" else missing

    def _text_row(self, record: Row, field_types: Sequence[FieldType], name: str) -> List[str]:
        """Render *record* for delimited text files."""

        values: List[str] = []
        for value, field_type in zip(record.values, field_types):
            self._check_value(value, field_type, name)
            if field_type is FieldType.TEXT:
                values.append(sanitise.csv_value(sanitise.weak(value)))
            elif field_type is FieldType.DATE:
                values.append(value.isoformat())
            else:
                values.append(str(value))
        return values
