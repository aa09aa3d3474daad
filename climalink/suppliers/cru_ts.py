"""Supplier for CRU TS 2.1 gridded climate files.

A file starts with five header lines::

    Tyndall Centre grid-files created on 22.01.2004 at 17:57 by Dr. Tim Mitchell
    .pre = precipitation (mm)
    CRU TS 2.1
    [Long=-180.00, 180.00] [Lati= -90.00,  90.00] [Grid X,Y= 720, 360]
    [Boxes=   67420] [Years=1991-2000] [Multi=    0.1000] [Missing=-999]

followed by blocks, each a ``Grid-ref= x, y`` line and one line per year
holding twelve monthly values in fixed-width five character slots.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from itertools import islice
from typing import IO, Dict, List, Optional, Tuple

from climalink.core.errors import DataQualityError, FormatError, ParseError, SourceConfigError
from climalink.core.registry import register_supplier
from climalink.data import FieldType, Metadata, Row, Table, TabulatedDataset

from .base import DataSupplier

logger = logging.getLogger(__name__)

HEADER_LINES = 5
VALUES_PER_YEAR = 12
TOKEN_WIDTH = 5
LINE_WIDTH = VALUES_PER_YEAR * TOKEN_WIDTH
HEADER_DATE_FORMAT = "%d.%m.%Y"
REFERENCE_NOTE = (
    "Information on this data can be found at:\n"
    "https://crudata.uea.ac.uk/~timm/grid/CRU_TS_2_1.html\n"
)

MSG_READ = "Reading in file."
MSG_PUSH = "Pushing data file piecemeal."
MSG_NO_FILES = "No file/s chosen to read."
MSG_NO_DATA = "At least one of the files does not appear to contain data."
MSG_CONNECTION = "Cannot connect to file. Please check you have permission to read the file/s."
MSG_FILE_FORMAT = "Having difficulty reading a file. Are you sure all your files are CRU TS 2.x format?"
MSG_HEADER_DATE = "There is a problem with a date in a file header: "
MSG_HEADER_FORMAT = "There has been a problem reading a file header."
MSG_GRID_REF = "There is a problem reading a grid reference in a file."
MSG_LINE_FORMAT = "Ill-formatted line, extra, or missing data within: "
MSG_MISSING_VALUE = "Missing data without missing data flag within: "
MSG_FILE_READING = "There is a problem reading the file: "


def _between(text: str, start: str, end: str, offset: int = 0) -> tuple[str, int]:
    """Return the text between *start* and the next *end*, and the end position.

    Raises :class:`ValueError` when either delimiter is missing.
    """

    begin = text.index(start, offset) + len(start)
    finish = text.index(end, begin)
    return text[begin:finish], finish


def _pair(text: str) -> tuple[Decimal, Decimal]:
    first, _, second = text.partition(",")
    return Decimal(first.strip()), Decimal(second.strip())


@register_supplier("cru-ts-2.1", description="CRU TS 2.1 gridded climate text files")
class CruTs2pt1Supplier(DataSupplier):
    """Parse CRU TS 2.x grid files, one record holder per file."""

    field_names = ("Xref", "Yref", "Date", "Value")
    field_types = (FieldType.DECIMAL, FieldType.DECIMAL, FieldType.DATE, FieldType.DECIMAL)

    def __init__(self) -> None:
        super().__init__()
        self._handle: Optional[IO[str]] = None
        self._start_year = -1
        self._end_year = -1
        self._years = -1
        # Year range of every file, by record holder index.
        self._year_ranges: Dict[int, Tuple[int, int]] = {}
        self._progress = 0

    # ------------------------------------------------------------------ lifecycle
    def initialise(self) -> None:
        if self._source is None or not self._record_holder_names:
            raise SourceConfigError(MSG_NO_FILES)
        self._dataset = self._build_dataset()
        self._year_ranges = {}
        try:
            for index in range(len(self._record_holder_names)):
                self.connect_source(index)
                self._parse_header(index)
                estimate = self._estimate_record_count()
                if estimate == 0:
                    raise DataQualityError(MSG_NO_DATA)
                self._dataset.estimated_record_count += estimate
        finally:
            self.disconnect_source()
        logger.debug(
            "Initialised %d file(s) from %s with an estimated %d records",
            len(self._record_holder_names),
            self._source,
            self._dataset.estimated_record_count,
        )

    def read_data(self) -> None:
        dataset = self._require_dataset()
        self.report_message(MSG_READ)
        self._progress = 0
        try:
            for index, table in enumerate(dataset.record_holders):
                self._rewind(index)
                while (rows := self._next_block(table)) is not None:
                    table.add_records(rows)
        finally:
            self.disconnect_source()
        self.report_progress(0, 1)

    def push_data(self) -> None:
        dataset = self._require_dataset()
        self.report_message(MSG_PUSH)
        self._progress = 0
        self.report_progress(2, 100)
        try:
            for index, table in enumerate(dataset.record_holders):
                self._rewind(index)
                while (rows := self._next_block(table)) is not None:
                    for listener in list(self._data_listeners):
                        listener.load(rows)
        finally:
            self.disconnect_source()
        self.report_progress(0, 1)

    def connect_source(self, index: int) -> None:
        if self._source is None or not self._record_holder_names:
            raise SourceConfigError(MSG_NO_FILES)
        self.disconnect_source()
        name = self._record_holder_names[index]
        path = self._source / name
        try:
            self._handle = path.open("r", encoding="utf-8", newline=None)
        except OSError as exc:
            raise ParseError(MSG_FILE_READING + name) from exc

    def disconnect_source(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.close()
        except OSError:
            logger.debug("Ignoring failure while closing source", exc_info=True)

    # ------------------------------------------------------------------ helpers
    def _build_dataset(self) -> TabulatedDataset:
        dataset = TabulatedDataset()
        for _ in self._record_holder_names or ():
            table = dataset.new_record_holder()
            table.set_fields(self.field_names, self.field_types)
        return dataset

    def _require_dataset(self) -> TabulatedDataset:
        if self._dataset is None:
            raise SourceConfigError(MSG_NO_FILES)
        return self._dataset

    def _read_lines(self, count: int) -> Optional[List[str]]:
        if self._handle is None:
            raise ParseError(MSG_CONNECTION)
        try:
            lines = [line.rstrip("\r\n") for line in islice(self._handle, count)]
        except (OSError, UnicodeDecodeError) as exc:
            raise ParseError(MSG_CONNECTION) from exc
        return lines or None

    def _rewind(self, index: int) -> None:
        """Reopen file *index* positioned at the start of its data blocks."""

        self.connect_source(index)
        self._read_lines(HEADER_LINES)
        self._use_year_range(*self._year_ranges[index])

    def _use_year_range(self, start: int, end: int) -> None:
        self._start_year = start
        self._end_year = end
        self._years = end - start + 1

    def _estimate_record_count(self) -> int:
        """Count the blocks left in the open file; consumes the file."""

        blocks = 0
        while self._read_lines(self._years + 1) is not None:
            blocks += 1
        return blocks * self._years * VALUES_PER_YEAR

    def _parse_header(self, index: int) -> None:
        dataset = self._require_dataset()
        header = self._read_lines(HEADER_LINES)
        if header is None or len(header) < HEADER_LINES:
            raise FormatError(MSG_HEADER_FORMAT)
        table = dataset.get_record_holder(index)

        first = header[0]
        created = first.find(" created")
        if created < 0:
            raise FormatError(MSG_FILE_FORMAT)
        try:
            source = first[:created]
            date_text, at = _between(first, "on ", " at", created)
            submitted = self._parse_header_date(date_text)
            creator = first[first.index("by ", at) + 3:]

            bounds = header[3]
            long_text, end = _between(bounds, "[Long=", "]")
            lati_text, end = _between(bounds, "[Lati=", "]", end)
            grid_text, end = _between(bounds, "[Grid X,Y=", "]", end)
            long_min, long_max = _pair(long_text)
            lati_min, lati_max = _pair(lati_text)
            boxes_x, boxes_y = _pair(grid_text)

            series = header[4]
            boxes_text, _ = _between(series, "[Boxes=", "]")
            valid_boxes = str(int(boxes_text.strip()))
            start_text, end = _between(series, "[Years=", "-")
            end_text, end = _between(series, "-", "]", end)
            start_text, end_text = start_text.strip(), end_text.strip()
            self._use_year_range(int(start_text), int(end_text))
            multiplier_text, _ = _between(series, "[Multi=", "]")
            multiplier = Decimal(multiplier_text.strip())
            missing_text, _ = _between(series, "[Missing=", "]")
            missing_flag = missing_text.strip()

            observation, _ = _between(header[1], ".", "=")
        except (ValueError, IndexError, InvalidOperation) as exc:
            raise FormatError(MSG_HEADER_FORMAT) from exc
        if self._years <= 0:
            raise FormatError(MSG_HEADER_FORMAT)
        self._year_ranges[index] = (self._start_year, self._end_year)

        notes = (
            "Bounding box details: \n"
            f"longMin = {long_min}\n"
            f"longMax = {long_max}\n"
            f"latiMin = {lati_min}\n"
            f"latiMax = {lati_max}\n"
            f"numberXgridboxes = {boxes_x}\n"
            f"numberYgridboxes = {boxes_y}\n"
            f"Number of potential boxes = {boxes_x * boxes_y}\n"
            f"Number of valid boxes = {valid_boxes}\n"
            "Time series details:\n"
            f"Starting year = {start_text}\n"
            f"Ending year = {end_text}\n"
            "Data details:\n"
            f"Multipiler = {multiplier}\n"
            f"Missing Data Flag = {missing_flag}\n"
            " ---------\n"
            "NB: The data should be multiplied by the multiplier to gain true values\n"
            f"{REFERENCE_NOTE}"
        )

        dataset.metadata.source = source
        dataset.metadata.title = header[2]
        metadata: Metadata = table.metadata
        metadata.source = source
        metadata.date_submitted = submitted
        metadata.creator = creator
        metadata.notes = notes
        metadata.title = f"{observation.strip()} {start_text} {end_text} {index + 1}"

        self.report_message(
            f"Dataset read in: {dataset.metadata.title}\n"
            "Details from file: \n"
            " ---------\n"
            f"Title: {metadata.title}\n"
            f"Notes: \n{metadata.notes} ---------\n"
        )

    @staticmethod
    def _parse_header_date(text: str) -> date:
        try:
            return datetime.strptime(text.strip(), HEADER_DATE_FORMAT).date()
        except ValueError as exc:
            raise FormatError(MSG_HEADER_DATE + text) from exc

    def _next_block(self, table: Table) -> Optional[List[Row]]:
        """Parse the next grid box of the open file, or return ``None`` at its end."""

        lines = self._read_lines(self._years + 1)
        if lines is None:
            return None
        dataset = self._require_dataset()

        grid_ref = lines[0]
        position = grid_ref.find("Grid-ref=")
        if position < 0:
            raise FormatError(MSG_GRID_REF)
        x_text, separator, y_text = grid_ref[position + 9:].partition(",")
        try:
            if not separator:
                raise InvalidOperation(grid_ref)
            x_ref = Decimal(x_text.strip())
            y_ref = Decimal(y_text.strip())
        except InvalidOperation as exc:
            raise FormatError(MSG_GRID_REF) from exc

        if len(lines) < self._years + 1:
            raise DataQualityError(MSG_LINE_FORMAT + lines[-1])

        rows: List[Row] = []
        year = self._start_year
        for line in lines[1:]:
            if len(line) != LINE_WIDTH:
                raise DataQualityError(MSG_LINE_FORMAT + line)
            for month in range(VALUES_PER_YEAR):
                offset = month * TOKEN_WIDTH
                token = line[offset:offset + TOKEN_WIDTH].strip()
                if not token:
                    raise DataQualityError(MSG_MISSING_VALUE + line)
                try:
                    value = Decimal(token)
                except InvalidOperation as exc:
                    raise DataQualityError(MSG_LINE_FORMAT + line) from exc
                rows.append(table.new_row((x_ref, y_ref, date(year, month + 1, 1), value)))
                self._progress += 1
                self.report_record_progress(self._progress, dataset)
            year += 1
        return rows


__all__ = ["CruTs2pt1Supplier"]
