"""Storage on any fsspec filesystem (local, memory, HDFS, object stores).

Each record store is a directory holding a ``_HEADER`` file with the field
names and one ``part-NNNNN.csv`` file per write, the layout distributed
filesystems expect since they do not append in place. Metadata objects are
sorted ``key<TAB>value`` text files next to the record store directories.
"""
from __future__ import annotations

import csv
import logging
import re
from typing import Dict, List, Optional, Sequence

import fsspec
from fsspec.core import url_to_fs

from climalink.core.errors import StoreCreationError
from climalink.core.registry import register_consumer
from climalink.data import Metadata, Row, Table, TabulatedDataset
from climalink.settings import Settings

from . import sanitise
from .base import MSG_LOADING, DataConsumer

logger = logging.getLogger(__name__)

HEADER_FILE = "_HEADER"
PART_TEMPLATE = "part-{:05d}.csv"
_LINE_BREAKS = re.compile(r"\r\n|\r|\n")

MSG_CONNECT = (
    "There is an issue connecting to or creating a filesystem store. "
    "Please make sure you have access permission to: "
)
MSG_WRITE = "Issue writing to the filesystem; please check you have permission to write to: "
MSG_REBUILT = "Deleted and rebuilt record store "


@register_consumer("fsspec", description="Part files on any fsspec filesystem URL")
class FsspecConsumer(DataConsumer):
    """Write datasets as directories of CSV part files through fsspec."""

    backend_directory = "climalink-databases"
    path_separator = "/"
    msg_creating = "Creating filesystem store."
    msg_generated = "Generated record store: "
    msg_location = "...in filesystem: "

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__(settings)
        self._fs: Optional[fsspec.AbstractFileSystem] = None
        self._root = ""
        self._parts: Dict[str, int] = {}

    def sanitise_name(self, name: str) -> str:
        return sanitise.file_name(name)

    def sanitise_store(self, store: str) -> str:
        return sanitise.path_safe(store)

    def _join(self, *parts: str) -> str:
        return "/".join([self._root.rstrip("/"), *parts])

    # ------------------------------------------------------------------ connection
    def connect_store(self) -> None:
        if self._fs is not None:
            return
        if self._store is None:
            raise StoreCreationError(MSG_CONNECT + "None")
        try:
            fs, root = url_to_fs(self._store)
            fs.makedirs(root, exist_ok=True)
        except (OSError, ValueError, ImportError) as exc:
            raise StoreCreationError(MSG_CONNECT + self._store) from exc
        self._fs, self._root = fs, root
        logger.debug("Connected to %s using %s", self._store, type(fs).__name__)

    def disconnect_store(self) -> None:
        self._fs = None

    def _filesystem(self) -> fsspec.AbstractFileSystem:
        self.connect_store()
        assert self._fs is not None
        return self._fs

    def has_record_store(self, name: str) -> bool:
        if self._store is None:
            return False
        try:
            fs, root = url_to_fs(self._store)
        except (ValueError, ImportError):
            return False
        return fs.exists("/".join([root.rstrip("/"), self.sanitise_name(name), HEADER_FILE]))

    def record_files(self, name: str) -> List[str]:
        """Return the part files of record store *name* in write order."""

        fs = self._filesystem()
        directory = self._join(self.sanitise_name(name))
        paths = fs.ls(directory, detail=False)
        return sorted(path for path in paths if path.rsplit("/", 1)[-1].startswith("part-"))

    # ------------------------------------------------------------------ creation
    def _write_text(self, path: str, text: str) -> None:
        fs = self._filesystem()
        try:
            with fs.open(path, "w", encoding="utf-8") as handle:
                handle.write(text)
        except OSError as exc:
            raise StoreCreationError(MSG_WRITE + path) from exc

    def _create_record_store(self, table: Table, name: str) -> None:
        self._check_fields(table, name)
        fs = self._filesystem()
        directory = self._join(name)
        try:
            if fs.exists(directory):
                fs.rm(directory, recursive=True)
                self.report_message(MSG_REBUILT + name)
            fs.makedirs(directory, exist_ok=True)
        except OSError as exc:
            raise StoreCreationError(MSG_WRITE + directory) from exc
        self._write_text(self._join(name, HEADER_FILE), ",".join(table.field_names) + "\n")
        self._parts[name] = 0

    def _create_metadata_store(self, metadata: Metadata, name: str) -> None:
        lines = sorted(
            f"{category}\t{_LINE_BREAKS.sub(' | ', text)}"
            for category, text in self._metadata_entries(metadata)
        )
        self._write_text(self._join(name), "\n".join(lines) + "\n")
        self.report_message("Generated metadata file: " + name)

    # ------------------------------------------------------------------ writing
    def _next_part(self, name: str) -> str:
        index = self._parts.get(name, 0)
        self._parts[name] = index + 1
        return self._join(name, PART_TEMPLATE.format(index))

    def _store_records(self, name: str, table: Table, records: Sequence[Row]) -> None:
        field_types = table.field_types
        dataset = table.parent
        path = self._next_part(name)
        fs = self._filesystem()
        try:
            with fs.open(path, "w", encoding="utf-8", newline="") as handle:
                writer = csv.writer(handle, lineterminator="\n")
                for record in records:
                    writer.writerow(self._text_row(record, field_types, name))
                    self._count_record(dataset)
        except OSError as exc:
            raise StoreCreationError(MSG_WRITE + path) from exc

    def bulk_load(self, dataset: TabulatedDataset) -> None:
        self.report_message(MSG_LOADING)
        holders = dataset.record_holders
        for index, (table, name) in enumerate(zip(holders, self.get_record_store_names() or [])):
            self._store_records(name, table, table.records)
            self.report_progress(100 * (index + 1) // len(holders), 100)
        self.report_progress(0, 1)
        self.disconnect_store()


__all__ = ["FsspecConsumer"]
