"""Data consumers persisting datasets into storage backends."""
from __future__ import annotations

from .base import DataConsumer
from .flatfile import FlatFileConsumer
from .fsspec_store import FsspecConsumer
from .sqlite import SQLiteConsumer

__all__ = ["DataConsumer", "FlatFileConsumer", "FsspecConsumer", "SQLiteConsumer"]
