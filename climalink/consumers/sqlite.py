"""SQLite storage for datasets."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from climalink.core.errors import StoreCreationError
from climalink.core.registry import register_consumer
from climalink.data import FieldType, Metadata, Row, Table, TabulatedDataset
from climalink.settings import Settings

from . import sanitise
from .base import MSG_LOADING, DataConsumer

logger = logging.getLogger(__name__)

DATABASE_FILE = "climalink.sqlite"

SQL_TYPES = {
    FieldType.TEXT: "VARCHAR(255)",
    FieldType.INTEGER: "INTEGER",
    FieldType.DATE: "DATE",
    FieldType.DECIMAL: "DECIMAL",
}

MSG_CONNECT = (
    "There is an issue connecting to or creating a database. "
    "Please make sure you have access permission to: "
)
MSG_TABLE_WRITE = "Issue writing a table; please check file associated with: "
MSG_REBUILT = "Deleted and rebuilt table "
MSG_PROOF = "Here's the first and last entries from table: "
MSG_PROOF_ISSUE = (
    "There's an issue proving your table exists; please check there are files "
    "in the created database directory: "
)


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


@register_consumer("sqlite", description="Relational store in a local SQLite database file")
class SQLiteConsumer(DataConsumer):
    """Write datasets into one SQLite database per dataset."""

    backend_directory = "climalink-databases"
    msg_creating = "Creating database and tables."
    msg_generated = "Generated table: "
    msg_location = "...in database: "

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__(settings)
        self._connection: Optional[sqlite3.Connection] = None

    def sanitise_name(self, name: str) -> str:
        return sanitise.object_name(name)

    def sanitise_store(self, store: str) -> str:
        return sanitise.path_safe(sanitise.weak(store))

    @property
    def database_path(self) -> Optional[Path]:
        if self._store is None:
            return None
        return Path(self._store) / DATABASE_FILE

    # ------------------------------------------------------------------ connection
    def connect_store(self) -> None:
        if self._connection is not None:
            return
        path = self.database_path
        if path is None:
            raise StoreCreationError(MSG_CONNECT + "None")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(path)
        except (OSError, sqlite3.Error) as exc:
            raise StoreCreationError(MSG_CONNECT + str(self._store)) from exc
        logger.debug("Connected to %s", path)

    def disconnect_store(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.close()
        except sqlite3.Error:
            logger.debug("Ignoring failure while closing %s", self.database_path, exc_info=True)

    def has_record_store(self, name: str) -> bool:
        path = self.database_path
        if path is None or not path.exists():
            return False
        with closing(sqlite3.connect(path)) as connection:
            found = connection.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
                (sanitise.object_name(name),),
            ).fetchone()
        return found is not None

    def _require_connection(self) -> sqlite3.Connection:
        self.connect_store()
        assert self._connection is not None
        return self._connection

    # ------------------------------------------------------------------ creation
    def _create(self, sql: str, name: str) -> None:
        connection = self._require_connection()
        try:
            with connection:
                connection.execute(sql)
            return
        except sqlite3.OperationalError:
            logger.debug("Create failed for %s, rebuilding", name, exc_info=True)
        try:
            with connection:
                connection.execute(f"DROP TABLE {_quote(name)}")
                connection.execute(sql)
        except sqlite3.Error as exc:
            raise StoreCreationError(MSG_TABLE_WRITE + name) from exc
        self.report_message(MSG_REBUILT + name)

    def _create_record_store(self, table: Table, name: str) -> None:
        self._check_fields(table, name)
        columns = ", ".join(
            f"{_quote(sanitise.object_name(field))} {SQL_TYPES[field_type]}"
            for field, field_type in zip(table.field_names, table.field_types)
        )
        self._create(f"CREATE TABLE {_quote(name)} ({columns})", name)

    def _create_metadata_store(self, metadata: Metadata, name: str) -> None:
        self._create(f"CREATE TABLE {_quote(name)} (CATEGORY VARCHAR(255), VALUE TEXT)", name)
        entries = [
            (sanitise.object_name(category), text)
            for category, text in self._metadata_entries(metadata)
        ]
        connection = self._require_connection()
        try:
            with connection:
                connection.executemany(
                    f"INSERT INTO {_quote(name)} (CATEGORY, VALUE) VALUES (?, ?)", entries
                )
        except sqlite3.Error as exc:
            raise StoreCreationError(MSG_TABLE_WRITE + name) from exc
        self.report_message("Generated metadata table: " + name)
        self.prove_loaded(name, metadata_table=True)

    # ------------------------------------------------------------------ writing
    def _insert_sql(self, table: Table, name: str) -> str:
        columns = ", ".join(_quote(sanitise.object_name(field)) for field in table.field_names)
        placeholders = ", ".join("?" for _ in table.field_names)
        return f"INSERT INTO {_quote(name)} ({columns}) VALUES ({placeholders})"

    def _parameters(self, record: Row, field_types: Sequence[FieldType], name: str) -> Tuple[Any, ...]:
        parameters: List[Any] = []
        for value, field_type in zip(record.values, field_types):
            self._check_value(value, field_type, name)
            if field_type is FieldType.TEXT:
                parameters.append(sanitise.weak(value))
            elif field_type is FieldType.DATE:
                parameters.append(value.isoformat())
            elif field_type is FieldType.DECIMAL:
                parameters.append(str(value))
            else:
                parameters.append(int(value))
        return tuple(parameters)

    def _execute_many(self, sql: str, rows: List[Tuple[Any, ...]], name: str) -> None:
        connection = self._require_connection()
        try:
            with connection:
                connection.executemany(sql, rows)
        except sqlite3.Error as exc:
            raise StoreCreationError(MSG_TABLE_WRITE + name) from exc

    def _store_records(self, name: str, table: Table, records: Sequence[Row]) -> None:
        field_types = table.field_types
        dataset = table.parent
        rows = []
        for record in records:
            rows.append(self._parameters(record, field_types, name))
            self._count_record(dataset)
        self._execute_many(self._insert_sql(table, name), rows, name)

    def bulk_load(self, dataset: TabulatedDataset) -> None:
        self.report_message(MSG_LOADING)
        self.report_progress(20, 100)
        names = self.get_record_store_names() or []
        holders = dataset.record_holders
        for index, (table, name) in enumerate(zip(holders, names)):
            field_types = table.field_types
            rows = [self._parameters(record, field_types, name) for record in table.records]
            self._execute_many(self._insert_sql(table, name), rows, name)
            del rows
            self.report_progress(20 + 80 * (index + 1) // len(holders), 100)
            self.prove_loaded(name)
        self.report_progress(0, 1)
        self.disconnect_store()

    def _finish_stream(self, dataset: TabulatedDataset) -> None:
        for name in self.get_record_store_names() or []:
            self.prove_loaded(name)
        self.disconnect_store()

    # ------------------------------------------------------------------ proof
    def prove_loaded(self, name: str, metadata_table: bool = False) -> None:
        """Reconnect and report the first and last rows stored in *name*."""

        self.disconnect_store()
        connection = self._require_connection()
        columns = "CATEGORY, VALUE" if metadata_table else "*"
        try:
            first = connection.execute(
                f"SELECT {columns} FROM {_quote(name)} ORDER BY rowid LIMIT 1"
            ).fetchone()
            last = connection.execute(
                f"SELECT {columns} FROM {_quote(name)} ORDER BY rowid DESC LIMIT 1"
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreCreationError(MSG_PROOF_ISSUE + name) from exc
        lines = [self._render_row(row, metadata_table) for row in (first, last)]
        self.report_message(f"{MSG_PROOF}{name}\n{lines[0]}\n{lines[1]}")

    @staticmethod
    def _render_row(row: Optional[Sequence[Any]], metadata_table: bool) -> str:
        if row is None:
            return "(no rows)"
        values = ["" if value is None else str(value) for value in row]
        if metadata_table:
            return " | ".join(values)
        return "".join(f" | {value}" for value in values)

    def first_and_last(self, name: str) -> Tuple[Optional[tuple], Optional[tuple]]:
        """Return the first and last stored rows of record store *name*."""

        path = self.database_path
        if path is None or not path.exists():
            return None, None
        table = _quote(sanitise.object_name(name))
        with closing(sqlite3.connect(path)) as connection:
            first = connection.execute(f"SELECT * FROM {table} ORDER BY rowid LIMIT 1").fetchone()
            last = connection.execute(f"SELECT * FROM {table} ORDER BY rowid DESC LIMIT 1").fetchone()
        return first, last


__all__ = ["SQLiteConsumer", "DATABASE_FILE", "SQL_TYPES"]
