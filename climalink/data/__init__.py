"""Record model: rows, tables, datasets and their metadata."""
from __future__ import annotations

from .metadata import Metadata, MetadataField
from .records import FieldType, Row, Table, TabulatedDataset

__all__ = ["FieldType", "Metadata", "MetadataField", "Row", "Table", "TabulatedDataset"]
