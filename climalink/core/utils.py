"""Miscellaneous helpers for the climalink runtime."""
from __future__ import annotations

from importlib import metadata

__all__ = ["package_version"]


def package_version() -> str:
    """Return the installed climalink package version or a sensible default."""

    try:
        return metadata.version("climalink")
    except metadata.PackageNotFoundError:  # pragma: no cover - fallback path
        return "0.0.0"
