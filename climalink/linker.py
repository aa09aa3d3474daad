"""Pairs one data supplier with one data consumer and drives the transfer."""
from __future__ import annotations

import importlib
import importlib.util
import logging
import os
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Optional

from climalink.consumers.base import DataConsumer
from climalink.core.errors import DataError
from climalink.core.reporting import Reporter
from climalink.settings import Settings, TransferMode
from climalink.suppliers.base import DataSupplier

logger = logging.getLogger(__name__)

MSG_FINISHED = "Finished processing."
MSG_SIZE = (
    "There is a problem determining the size of a file. "
    "Please check you have access permission."
)
MSG_LARGE = "Large dataset: this may take a while."
STATM_PATH = Path("/proc/self/statm")


class LinkerState(Enum):
    UNCONFIGURED = "unconfigured"
    INITIALISED = "initialised"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    FAILED = "failed"


def _resource_module():
    if importlib.util.find_spec("resource") is None:
        return None
    return importlib.import_module("resource")


def memory_in_use() -> int:
    """Return the resident memory of this process in bytes, or 0 when unknown.

    Current usage is read from procfs. Without it only the peak reported by
    ``getrusage`` is available, which overstates usage after a large transfer.
    """

    try:
        resident_pages = int(STATM_PATH.read_text(encoding="ascii").split()[1])
        return resident_pages * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError, AttributeError):
        logger.debug("No procfs memory figures at %s", STATM_PATH)
    resource = _resource_module()
    if resource is None:
        return 0
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS bytes.
    return usage if sys.platform == "darwin" else usage * 1024


class DataLinker(Reporter):
    """Run one transfer from *supplier* to *consumer*.

    The linker initialises both sides, estimates how much memory reading the
    whole dataset would take and then either pulls everything into memory and
    bulk loads it, or has the supplier push it block by block. It listens to
    both sides' reporting and republishes those events to its own listeners.
    A linker runs once; create a new one for every transfer.
    """

    def __init__(
        self,
        supplier: DataSupplier,
        consumer: DataConsumer,
        settings: Settings | None = None,
        mode: TransferMode | str | int | None = None,
    ) -> None:
        super().__init__()
        self.supplier = supplier
        self.consumer = consumer
        self.settings = settings or consumer.settings
        self._mode = self.settings.mode if mode is None else TransferMode.parse(mode)
        self._transfer_mode: Optional[TransferMode] = None
        self.state = LinkerState.UNCONFIGURED

    # ------------------------------------------------------------------ reporting listener
    def on_message(self, message: str) -> None:
        self.report_message(message)

    def on_progress(self, done: float, total: float) -> None:
        self.report_progress(done, total)

    # ------------------------------------------------------------------ configuration
    @property
    def mode(self) -> TransferMode:
        return self._mode

    def set_mode(self, mode: TransferMode | str | int) -> None:
        self._mode = TransferMode.parse(mode)

    @property
    def transfer_mode(self) -> Optional[TransferMode]:
        """The strategy actually used, known once the transfer has started."""

        return self._transfer_mode

    # ------------------------------------------------------------------ memory estimate
    def available_memory(self) -> int:
        return self.settings.memory_limit - self.settings.safety_margin - memory_in_use()

    def projected_memory(self) -> int:
        """Estimate the bytes needed to hold every source file in memory."""

        source = self.supplier.get_source()
        names = self.supplier.get_record_holder_names() or []
        total = 0
        for name in names:
            try:
                total += (source / name).stat().st_size
            except (OSError, TypeError) as exc:
                raise DataError(MSG_SIZE) from exc
        return total * self.settings.multiplier_for(self.consumer.registry_key or None)

    def choose_mode(self) -> TransferMode:
        projected = self.projected_memory()
        available = self.available_memory()
        if self._mode is TransferMode.PUSH:
            chosen = TransferMode.PUSH
        elif self._mode is TransferMode.PULL:
            chosen = TransferMode.PULL
        else:
            chosen = TransferMode.PUSH if projected > available else TransferMode.PULL
        logger.info(
            "Using %s transfer (requested %s, projected %d bytes, available %d bytes)",
            chosen.name.lower(),
            self._mode.name.lower(),
            projected,
            available,
        )
        return chosen

    # ------------------------------------------------------------------ running
    def process(self) -> None:
        """Run the transfer on the calling thread."""

        if self.state is not LinkerState.UNCONFIGURED:
            raise RuntimeError(f"DataLinker has already run (state {self.state.value})")
        self.supplier.add_reporting_listener(self)
        self.consumer.add_reporting_listener(self)
        try:
            self.supplier.initialise()
            self.consumer.initialise(self.supplier.get_dataset())
            self.state = LinkerState.INITIALISED
            self._transfer_mode = self.choose_mode()
            self.state = LinkerState.TRANSFERRING
            if self._transfer_mode is TransferMode.PUSH:
                self.push_data_as_read()
            else:
                self.pull_data_as_one()
        except Exception:
            self.state = LinkerState.FAILED
            self.supplier.disconnect_source()
            self.consumer.disconnect_store()
            self.report_progress(0, 1)
            logger.debug("Transfer failed", exc_info=True)
            raise
        self.state = LinkerState.COMPLETED
        self.report_progress(0, 1)
        self.report_message(MSG_FINISHED)

    def submit(self) -> "Future[None]":
        """Run :meth:`process` on a dedicated worker thread."""

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="climalink-linker")
        try:
            return executor.submit(self.process)
        finally:
            executor.shutdown(wait=False)

    def push_data_as_read(self) -> None:
        self.report_message(MSG_LARGE)
        self.supplier.add_data_listener(self.consumer)
        self.supplier.push_data()
        self.consumer.disconnect_store()

    def pull_data_as_one(self) -> None:
        self.supplier.read_data()
        dataset = self.supplier.get_dataset()
        self.consumer.bulk_load(dataset)
        dataset.clear_records()


__all__ = ["DataLinker", "LinkerState", "memory_in_use"]
