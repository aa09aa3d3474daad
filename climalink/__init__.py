"""climalink - move gridded climate files into databases and filesystems."""
from __future__ import annotations

from importlib import metadata

from climalink.linker import DataLinker, LinkerState
from climalink.settings import Settings, TransferMode

__all__ = [
    "__version__",
    "DataLinker",
    "LinkerState",
    "Settings",
    "TransferMode",
    "bootstrap",
]


def __getattr__(name: str):  # pragma: no cover - passthrough to package metadata
    if name == "__version__":
        try:
            return metadata.version("climalink")
        except metadata.PackageNotFoundError:
            return "0.0.0"
    raise AttributeError(name)


def bootstrap() -> None:
    """Import supplier and consumer modules to ensure registration has occurred."""

    from climalink import consumers, suppliers  # noqa: F401
