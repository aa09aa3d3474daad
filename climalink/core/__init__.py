"""Core contracts shared across the climalink runtime."""
from __future__ import annotations

from .errors import (
    ConfigurationError,
    ConversionError,
    DataError,
    DataQualityError,
    FormatError,
    ParseError,
    SourceConfigError,
    StoreConfigError,
    StoreCreationError,
    StoreError,
)
from .registry import ComponentRegistry, consumers, register_consumer, register_supplier, suppliers
from .reporting import LoggingReportingListener, QueueReportingListener, Reporter, ReportingListener

__all__ = [
    "ComponentRegistry",
    "ConfigurationError",
    "ConversionError",
    "DataError",
    "DataQualityError",
    "FormatError",
    "LoggingReportingListener",
    "ParseError",
    "QueueReportingListener",
    "Reporter",
    "ReportingListener",
    "SourceConfigError",
    "StoreConfigError",
    "StoreCreationError",
    "StoreError",
    "consumers",
    "register_consumer",
    "register_supplier",
    "suppliers",
]
