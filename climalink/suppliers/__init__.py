"""Data suppliers turning external sources into datasets."""
from __future__ import annotations

from .base import DataListener, DataSupplier
from .cru_ts import CruTs2pt1Supplier

__all__ = ["CruTs2pt1Supplier", "DataListener", "DataSupplier"]
