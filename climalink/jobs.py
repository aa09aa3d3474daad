"""Job catalog: YAML files describing one or more transfers."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

import yaml

from climalink.core.errors import ConfigurationError
from climalink.core.registry import consumers, suppliers
from climalink.linker import DataLinker
from climalink.settings import Settings, TransferMode

DEFAULT_SUPPLIER = "cru-ts-2.1"
DEFAULT_CONSUMER = "sqlite"


@dataclass(slots=True)
class JobDefinition:
    """One transfer from a set of source files into a store."""

    name: str
    source: Path
    files: Sequence[str]
    supplier: str = DEFAULT_SUPPLIER
    consumer: str = DEFAULT_CONSUMER
    store: str | None = None
    names: Sequence[str] | None = None
    mode: TransferMode | None = None

    def build(self, settings: Settings) -> DataLinker:
        """Create the supplier, consumer and linker for this job."""

        if self.supplier not in suppliers:
            raise KeyError(f"Supplier '{self.supplier}' is not registered")
        if self.consumer not in consumers:
            raise KeyError(f"Consumer '{self.consumer}' is not registered")
        supplier = suppliers.create(self.supplier)
        supplier.set_source(self.source)
        supplier.set_record_holder_names(list(self.files))
        consumer = consumers.create(self.consumer, settings)
        consumer.set_store(self.store)
        consumer.set_record_store_names(list(self.names) if self.names is not None else None)
        return DataLinker(supplier, consumer, settings=settings, mode=self.mode)


def _string_list(entry: Mapping[str, object], key: str) -> List[str] | None:
    raw = entry.get(key)
    if raw is None:
        return None
    if isinstance(raw, str) or not isinstance(raw, Iterable):
        raise ConfigurationError(f"'{key}' must be a list")
    return [str(item) for item in raw]


def _validate(entry: object, base_dir: Path, position: int) -> JobDefinition:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Job {position} must be a mapping")
    missing = {"source", "files"} - set(entry)
    if missing:
        raise ConfigurationError(f"Missing required keys {sorted(missing)} for job {position}")
    files = _string_list(entry, "files")
    if not files:
        raise ConfigurationError(f"Job {position} does not list any files")
    source = Path(str(entry["source"])).expanduser()
    if not source.is_absolute():
        source = base_dir / source
    mode_raw: Optional[object] = entry.get("mode")
    return JobDefinition(
        name=str(entry.get("name") or f"job-{position}"),
        source=source,
        files=tuple(files),
        supplier=str(entry.get("supplier") or DEFAULT_SUPPLIER),
        consumer=str(entry.get("consumer") or DEFAULT_CONSUMER),
        store=str(entry["store"]) if entry.get("store") else None,
        names=_string_list(entry, "names"),
        mode=TransferMode.parse(mode_raw) if mode_raw is not None else None,
    )


def load_jobs(path: Path) -> List[JobDefinition]:
    """Load the YAML job catalog at *path*.

    Relative ``source`` directories are resolved against the catalog's own
    directory.
    """

    if not path.exists():
        raise ConfigurationError(f"Job catalog not found at {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse job catalog: {exc}") from exc
    entries = payload.get("jobs") if isinstance(payload, Mapping) else None
    if not entries:
        raise ConfigurationError("Job catalog does not define any jobs under 'jobs'")
    base_dir = path.parent
    return [_validate(entry, base_dir, position) for position, entry in enumerate(entries, start=1)]


__all__ = ["JobDefinition", "load_jobs"]
