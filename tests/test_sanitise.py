from __future__ import annotations

import pytest

from climalink.consumers import sanitise


def test_vigorous_keeps_letters_digits_commas_and_whitespace() -> None:
    assert sanitise.vigorous("A,B C$|/") == "A,B C   "
    assert sanitise.vigorous("tab\there 42") == "tab\there 42"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Test Data", "TESTDATA"),
        ("pre 1991 2000 1", "PRE199120001"),
        ("iiStations", "AIISTATIONS"),
        ("Robert');DROP TABLE students;--", "ROBERTDROPTABLESTUDENTS"),
        ("23Name", "A3NAME"),
        (" Name", "ANAME"),
        ("1st table", "ASTTABLE"),
        ("_hidden", "AHIDDEN"),
        ("cost$@#", "COST$@#"),
        ("con", "DATACON"),
        ("LPT1", "DATALPT1"),
        ("", "A"),
        ("%%%", "A"),
    ],
)
def test_object_name(raw: str, expected: str) -> None:
    assert sanitise.object_name(raw) == expected


@pytest.mark.parametrize("raw", ["Test Data", "iiStations", "1st table", "com3", "é-accent", ""])
def test_object_name_is_idempotent(raw: str) -> None:
    once = sanitise.object_name(raw)
    assert sanitise.object_name(once) == once


def test_object_name_is_truncated() -> None:
    name = sanitise.object_name("a" * 400)
    assert len(name.encode("utf-8")) == 256
    assert set(name) == {"A"}


def test_weak_blanks_sql_metacharacters() -> None:
    raw = "c:\\Robert');DROP TABLE students;--tmp"
    assert sanitise.weak(raw) == "c:\\Robert   DROP TABLE students --tmp"


def test_path_safe_keeps_separators() -> None:
    assert sanitise.path_safe("/data/out<1>|x?*") == "/data/out-1--x--"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Stations", "Stations"),
        ("a/b\\c:d", "a-b-c-d"),
        ('what?"*', "what---"),
        ("trailing. ", "trailing."),
        ("trailing .", "trailing"),
        ("nul", "Data-nul"),
        ("COM1", "Data-COM1"),
    ],
)
def test_file_name(raw: str, expected: str) -> None:
    assert sanitise.file_name(raw) == expected


def test_csv_value() -> None:
    assert sanitise.csv_value("Lake, North") == "Lake; North"


def test_with_trailing_separator() -> None:
    assert sanitise.with_trailing_separator("root", "/") == "root/"
    assert sanitise.with_trailing_separator("root/", "/") == "root/"
