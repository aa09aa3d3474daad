"""Metadata attached to datasets, record holders and rows."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, NamedTuple, Optional

DEFAULT_STANDARD = "Dublin Core subset with additions"
DEFAULT_DATE_FORMAT = "ISO 8601 (YYYY-MM-DD)"


class MetadataField(NamedTuple):
    """One ``(name, type, value)`` entry from :meth:`Metadata.get_all`."""

    name: str
    type: type
    value: object


@dataclass(slots=True)
class Metadata:
    """A closed set of descriptive fields.

    :meth:`get_all` is how consumers discover the fields generically; its
    names and order are part of the storage format and must stay stable.
    """

    standard: str = DEFAULT_STANDARD
    title: Optional[str] = ""
    creator: str = ""
    source: str = ""
    notes: str = ""
    date_submitted: Optional[date] = None
    date_last_edited: Optional[date] = None
    date_format: str = DEFAULT_DATE_FORMAT
    version: str = ""

    def get_all(self) -> List[MetadataField]:
        """Return every field as a ``(name, type, value)`` triple in fixed order."""

        return [
            MetadataField("standard", str, self.standard),
            MetadataField("title", str, self.title),
            MetadataField("creator", str, self.creator),
            MetadataField("source", str, self.source),
            MetadataField("notes", str, self.notes),
            MetadataField("dateSubmitted", date, self.date_submitted),
            MetadataField("dateLastEdited", date, self.date_last_edited),
            MetadataField("dateFormat", str, self.date_format),
            MetadataField("version", str, self.version),
        ]
