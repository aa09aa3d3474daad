"""Sanitisation of identifiers and values written to storage backends.

Every consumer derives object and file names from external data, so the
same rules apply everywhere:

* :func:`object_name` for SQL identifiers,
* :func:`file_name` and :func:`path_safe` for filesystem names,
* :func:`weak` for string values written to any store,
* :func:`csv_value` for string values in delimited text.
"""
from __future__ import annotations

import os
import re

MAX_NAME_BYTES = 256

RESERVED_DEVICE_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{number}" for number in range(1, 10)]
    + [f"LPT{number}" for number in range(1, 10)]
)

_VIGOROUS = re.compile(r"[^a-zA-Z,\s\d\t]", re.ASCII)
_LEADING_II = re.compile(r"^ii")
_LEADING_NON_LETTER = re.compile(r"^[^A-Z]")
_NAME_FORBIDDEN = re.compile(r"[^A-Z0-9#@$]")
_WEAK = re.compile(r"[\"';()=]")
_PATH_FORBIDDEN = re.compile(r"[<>\"|?*]")
_FILE_FORBIDDEN = re.compile(r"[<>:\"/\\|?*]")


def vigorous(text: str) -> str:
    """Replace everything but letters, digits, commas and whitespace with spaces."""

    return _VIGOROUS.sub(" ", text)


def object_name(text: str) -> str:
    """Return an upper-case identifier usable as a SQL table or column name.

    The result starts with a letter, only contains ``A-Z 0-9 # @ $``, is at
    most 256 bytes and never collides with a reserved device name. Applying
    it twice gives the same result as applying it once.
    """

    name = _LEADING_II.sub("Aii", text)
    name = name.upper()
    name = _LEADING_NON_LETTER.sub("A", name)
    name = _NAME_FORBIDDEN.sub("", name)
    if name in RESERVED_DEVICE_NAMES:
        name = "DATA" + name
    if not name:
        name = "A"
    return name[:MAX_NAME_BYTES]


def weak(text: str) -> str:
    """Blank out quotes, semicolons, brackets and equals signs."""

    return _WEAK.sub(" ", text)


def path_safe(text: str) -> str:
    """Replace characters illegal in paths; directory separators are kept."""

    return _PATH_FORBIDDEN.sub("-", text)


def file_name(text: str) -> str:
    """Return *text* usable as a single file or directory name."""

    name = _FILE_FORBIDDEN.sub("-", text)
    if name.endswith("."):
        name = name[:-1]
    if name.endswith(" "):
        name = name[:-1]
    if name.upper() in RESERVED_DEVICE_NAMES:
        name = "Data-" + name
    return name


def csv_value(text: str) -> str:
    """Swap commas for semicolons so a value cannot split a CSV column."""

    return text.replace(",", ";")


def with_trailing_separator(path: str, separator: str = os.sep) -> str:
    if path.endswith(separator):
        return path
    return path + separator


__all__ = [
    "RESERVED_DEVICE_NAMES",
    "csv_value",
    "file_name",
    "object_name",
    "path_safe",
    "vigorous",
    "weak",
    "with_trailing_separator",
]
