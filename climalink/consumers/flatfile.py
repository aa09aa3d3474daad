"""Flat CSV file storage for datasets."""
from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from typing import Sequence

from climalink.core.errors import StoreCreationError
from climalink.core.registry import register_consumer
from climalink.data import Metadata, Row, Table, TabulatedDataset

from . import sanitise
from .base import MSG_LOADING, DataConsumer

logger = logging.getLogger(__name__)

DATA_EXTENSION = ".csv"
METADATA_EXTENSION = ".properties"
_LINE_BREAKS = re.compile(r"\r\n|\r|\n")

MSG_FILE_WRITE = "Cannot write to file. Please check you have permission to write the file: "
MSG_RECORD_WRITE = "Issue writing records to a file; please check you have permission to write to: "
MSG_DIR_WRITE = "Issue writing to a directory; please check you have permission to write to: "


@register_consumer("flatfile", description="CSV data files with .properties metadata")
class FlatFileConsumer(DataConsumer):
    """Write each record holder to ``<NAME>.csv`` in a per-dataset directory."""

    backend_directory = "climalink-flatfiles"
    msg_creating = "Creating directories and files."
    msg_generated = "Generated file: "
    msg_location = "...in directory: "

    def sanitise_name(self, name: str) -> str:
        return sanitise.file_name(name)

    def sanitise_store(self, store: str) -> str:
        return sanitise.path_safe(store)

    def _path(self, file_name: str) -> Path:
        return Path(self._store or "") / file_name

    def connect_store(self) -> None:
        try:
            Path(self._store or "").mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreCreationError(MSG_DIR_WRITE + str(self._store)) from exc

    def disconnect_store(self) -> None:
        """Nothing is held open between writes."""

    def has_record_store(self, name: str) -> bool:
        if self._store is None:
            return False
        return self._path(self.sanitise_name(name) + DATA_EXTENSION).exists()

    def _create_record_store(self, table: Table, name: str) -> None:
        self._check_fields(table, name)
        path = self._path(name + DATA_EXTENSION)
        try:
            with path.open("w", newline="", encoding="utf-8") as handle:
                csv.writer(handle, lineterminator="\n").writerow(table.field_names)
        except OSError as exc:
            raise StoreCreationError(MSG_FILE_WRITE + str(path)) from exc

    def _create_metadata_store(self, metadata: Metadata, name: str) -> None:
        file_name = name + METADATA_EXTENSION
        path = self._path(file_name)
        try:
            with path.open("w", encoding="utf-8") as handle:
                for category, text in self._metadata_entries(metadata, missing=""):
                    handle.write(_LINE_BREAKS.sub(" | ", f"{category}={text}") + "\n")
        except OSError as exc:
            raise StoreCreationError(MSG_FILE_WRITE + str(path)) from exc
        self.report_message("Generated metadata file: " + file_name)

    def _store_records(self, name: str, table: Table, records: Sequence[Row]) -> None:
        field_types = table.field_types
        dataset = table.parent
        path = self._path(name + DATA_EXTENSION)
        try:
            with path.open("a", newline="", encoding="utf-8") as handle:
                writer = csv.writer(handle, lineterminator="\n")
                for record in records:
                    writer.writerow(self._text_row(record, field_types, name))
                    self._count_record(dataset)
        except OSError as exc:
            raise StoreCreationError(MSG_RECORD_WRITE + str(path)) from exc

    def bulk_load(self, dataset: TabulatedDataset) -> None:
        self.report_message(MSG_LOADING)
        self.connect_store()
        for table, name in zip(dataset.record_holders, self.get_record_store_names() or []):
            self._store_records(name, table, table.records)
        self.report_progress(0, 1)


__all__ = ["FlatFileConsumer"]
