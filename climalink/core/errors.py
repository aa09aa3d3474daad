"""Exception hierarchy shared by suppliers, consumers and the linker."""
from __future__ import annotations


class DataError(RuntimeError):
    """Base failure carrying a short, user-facing message."""

    default_message = "There has been a data issue."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(DataError):
    """Raised when settings or a job catalog cannot be used."""


class ParseError(DataError):
    """Raised by data suppliers when a source cannot be parsed."""


class SourceConfigError(ParseError):
    """Raised when a supplier is initialised without a source or file list."""


class FormatError(ParseError):
    """Raised when a file is not in the expected format."""


class DataQualityError(ParseError):
    """Raised when a data line is missing values or carries extra data."""


class StoreError(DataError):
    """Raised by data consumers when a store cannot be built or written."""


class StoreConfigError(StoreError):
    """Raised when the consumer configuration does not match the dataset."""


class StoreCreationError(StoreError):
    """Raised when a store or one of its objects cannot be created or written."""


class ConversionError(StoreError):
    """Raised when a value does not match the declared field type."""


__all__ = [
    "DataError",
    "ConfigurationError",
    "ParseError",
    "SourceConfigError",
    "FormatError",
    "DataQualityError",
    "StoreError",
    "StoreConfigError",
    "StoreCreationError",
    "ConversionError",
]
