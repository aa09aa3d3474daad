"""Environment-driven configuration for climalink."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Dict, Mapping

from climalink.core.errors import ConfigurationError

MIB = 1024 * 1024
DEFAULT_SAFETY_MARGIN = 200 * MIB
DEFAULT_MEMORY_LIMIT = 2048 * MIB
MULTIPLIER_PREFIX = "CLIMALINK_MULTIPLIER_"

# Bytes of working memory per byte of source file. Parsing inflates text into
# row objects (~14x); the relational backend adds its own overhead on bulk
# inserts, the file backends very little.
DEFAULT_MULTIPLIERS: Dict[str, int] = {
    "sqlite": 105,
    "fsspec": 20,
    "flatfile": 20,
}
FALLBACK_MULTIPLIER = 105


class TransferMode(IntEnum):
    """How the linker moves data from supplier to consumer."""

    PUSH = 0
    PULL = 1
    AUTO = 2

    @classmethod
    def parse(cls, raw: str | int | "TransferMode") -> "TransferMode":
        """Return the mode named by *raw* (a name or the integer code)."""

        if isinstance(raw, TransferMode):
            return raw
        text = str(raw).strip().lower()
        if text.isdigit():
            try:
                return cls(int(text))
            except ValueError as exc:
                raise ConfigurationError(f"Unknown transfer mode '{raw}'") from exc
        try:
            return cls[text.upper()]
        except KeyError as exc:
            raise ConfigurationError(
                f"Unknown transfer mode '{raw}'; expected push, pull or auto"
            ) from exc


def _physical_memory() -> int | None:
    try:
        return os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):  # pragma: no cover - platform specific
        return None


def _parse_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {name} value: expected integer, got '{raw}'") from exc
    if value < 0:
        raise ConfigurationError(f"Invalid {name} value: must not be negative, got {value}")
    return value


def _parse_bool(raw: str | None) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _multipliers(environ: Mapping[str, str]) -> Dict[str, int]:
    multipliers = dict(DEFAULT_MULTIPLIERS)
    for key, value in environ.items():
        if key.startswith(MULTIPLIER_PREFIX):
            backend = key[len(MULTIPLIER_PREFIX):].lower()
            multipliers[backend] = _parse_int(key, value)
    return multipliers


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    store_root: Path
    mode: TransferMode = TransferMode.AUTO
    debug: bool = False
    memory_limit: int = DEFAULT_MEMORY_LIMIT
    safety_margin: int = DEFAULT_SAFETY_MARGIN
    multipliers: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_MULTIPLIERS))
    log_level: str = "INFO"

    @classmethod
    def load(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Load settings from environment variables with sensible defaults."""

        env = os.environ if environ is None else environ
        store_root = Path(env.get("CLIMALINK_STORE_ROOT") or Path.home()).expanduser()
        mode = TransferMode.parse(env.get("CLIMALINK_MODE", "auto"))
        debug = _parse_bool(env.get("CLIMALINK_DEBUG"))
        raw_limit = env.get("CLIMALINK_MEMORY_LIMIT")
        if raw_limit:
            memory_limit = _parse_int("CLIMALINK_MEMORY_LIMIT", raw_limit)
        else:
            memory_limit = _physical_memory() or DEFAULT_MEMORY_LIMIT
        safety_margin = _parse_int(
            "CLIMALINK_SAFETY_MARGIN", env.get("CLIMALINK_SAFETY_MARGIN", str(DEFAULT_SAFETY_MARGIN))
        )
        log_level = env.get("LOG_LEVEL", "DEBUG" if debug else "INFO")
        return cls(
            store_root=store_root,
            mode=mode,
            debug=debug,
            memory_limit=memory_limit,
            safety_margin=safety_margin,
            multipliers=_multipliers(env),
            log_level=log_level,
        )

    def multiplier_for(self, backend: str | None) -> int:
        """Return the memory multiplier calibrated for *backend*."""

        if backend is None:
            return FALLBACK_MULTIPLIER
        return self.multipliers.get(backend, FALLBACK_MULTIPLIER)

    def ensure_directories(self) -> None:
        """Create the store root if it does not exist yet."""

        if not self.store_root.exists():
            self.store_root.mkdir(parents=True, exist_ok=True)
