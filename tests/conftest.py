from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Sequence

import pytest

from climalink.data import FieldType, TabulatedDataset
from climalink.settings import MIB, Settings, TransferMode

HEADER = [
    "Tyndall Centre grid-files created on 22.01.2004 at 17:57 by Dr. Tim Mitchell",
    ".pre = precipitation (mm)",
    "CRU TS 2.1",
    "[Long=-180.00, 180.00] [Lati= -90.00,  90.00] [Grid X,Y= 720, 360]",
    "[Boxes=   67420] [Years=1991-2000] [Multi=    0.1000] [Missing=-999]",
]
START_YEAR = 1991
YEARS = 10


def data_line(values: Sequence[object]) -> str:
    """Render twelve values in five character slots."""

    return "".join(f"{value:>5}" for value in values)


def block_lines(x: int, y: int, years: int = YEARS, seed: int = 0) -> List[str]:
    lines = [f"Grid-ref= {x:>3}, {y:>3}"]
    for year in range(years):
        lines.append(data_line([(seed * 1000 + year * 12 + month) % 9999 for month in range(12)]))
    return lines


def header_for(start: int = START_YEAR, end: int = START_YEAR + YEARS - 1) -> List[str]:
    lines = list(HEADER)
    lines[4] = lines[4].replace("1991-2000", f"{start}-{end}")
    return lines


def grid_text(blocks: int = 1, start: int = START_YEAR, end: int = START_YEAR + YEARS - 1) -> List[str]:
    lines = header_for(start, end)
    for index in range(blocks):
        lines.extend(block_lines(index + 1, 148 - index, years=end - start + 1, seed=index))
    return lines


def _write(directory: Path, name: str, lines: Sequence[str]) -> Path:
    path = directory / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory with plenty of memory."""

    settings = Settings(
        store_root=tmp_path / "stores",
        mode=TransferMode.AUTO,
        memory_limit=64 * 1024 * MIB,
        safety_margin=200 * MIB,
        log_level="DEBUG",
    )
    settings.ensure_directories()
    return settings


@pytest.fixture
def grid_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "grids"
    directory.mkdir()
    return directory


@pytest.fixture
def write_grid(grid_dir: Path) -> Callable[..., Path]:
    """Write a well-formed grid file with *blocks* grid boxes."""

    def writer(
        name: str = "valid.pre",
        blocks: int = 1,
        start: int = START_YEAR,
        end: int = START_YEAR + YEARS - 1,
    ) -> Path:
        return _write(grid_dir, name, grid_text(blocks, start, end))

    return writer


@pytest.fixture
def write_lines(grid_dir: Path) -> Callable[[str, Sequence[str]], Path]:
    """Write arbitrary lines, for malformed files."""

    def writer(name: str, lines: Sequence[str]) -> Path:
        return _write(grid_dir, name, lines)

    return writer


@pytest.fixture
def malformed(write_lines) -> Callable[[str], Path]:
    """Write one of the known malformed grid files by name."""

    def writer(kind: str) -> Path:
        lines = grid_text(blocks=2)
        first_data = len(HEADER) + 1
        if kind == "noheader":
            lines = lines[len(HEADER):]
        elif kind == "nodata":
            lines = list(HEADER)
        elif kind == "missingnumber":
            lines[first_data + 3] = "     " + lines[first_data + 3][5:]
        elif kind == "largenumberwrong":
            lines[first_data + 3] = "123456" + lines[first_data + 3][5:]
        elif kind == "invaliddate":
            lines[0] = lines[0].replace("22.01.2004", "32.13.2004")
        elif kind == "largenumberright":
            lines[first_data + 3] = data_line([12345] * 12)
        elif kind == "truncated":
            lines = lines[:-3]
        elif kind == "badgridref":
            lines[len(HEADER)] = "Grid-ref=   x, 148"
        else:  # pragma: no cover - guard against typos in tests
            raise ValueError(kind)
        return write_lines(f"{kind}.pre", lines)

    return writer


@pytest.fixture
def station_dataset() -> TabulatedDataset:
    """A small dataset exercising every field type."""

    dataset = TabulatedDataset()
    dataset.metadata.title = "Test Data"
    table = dataset.new_record_holder()
    table.metadata.title = "Stations"
    table.metadata.notes = "first line\nsecond line"
    table.metadata.date_submitted = date(2004, 1, 22)
    table.set_fields(
        ["Name", "Count", "Day", "Reading"],
        [FieldType.TEXT, FieldType.INTEGER, FieldType.DATE, FieldType.DECIMAL],
    )
    table.add_records(
        [
            table.new_row(["O'Brien", 3, date(1991, 1, 1), Decimal("12.5")]),
            table.new_row(["Lake, North", 4, date(1991, 2, 1), Decimal("7")]),
            table.new_row(["Ridge", 5, date(1991, 3, 1), Decimal("-3.25")]),
        ]
    )
    dataset.estimated_record_count = 3
    return dataset
