"""Memory usage collector."""

from __future__ import annotations

import psutil

from ..config import ConfigSource
from ..errors import NotSupportedError, SysmonIOError
from ..snapshot import SnapshotBuilder
from .base import BaseModule


class RamModule(BaseModule):
    """Reports physical memory usage.

    Total memory is read once at creation and assumed stable afterwards.
    "Free" means memory available to new allocations when the platform
    reports it, otherwise strictly unused memory.
    """

    name = "ram"

    def __init__(self, total_bytes: int) -> None:
        super().__init__()
        self._total_bytes = total_bytes
        self._used_bytes = 0
        self._free_bytes = 0
        self._used_percent = 0.0

    @classmethod
    def create(cls, config: ConfigSource, section: str) -> RamModule:
        try:
            total = int(psutil.virtual_memory().total)
        except (OSError, psutil.Error, AttributeError) as exc:
            raise NotSupportedError(f"failed to read total memory: {exc}") from exc
        return cls(total_bytes=total)

    def _refresh(self, now_ms: int) -> None:
        try:
            mem = psutil.virtual_memory()
        except (OSError, psutil.Error) as exc:
            raise SysmonIOError(f"failed to read memory usage: {exc}") from exc

        free = int(getattr(mem, "available", 0) or getattr(mem, "free", 0))
        if free > self._total_bytes:
            free = 0
        self._free_bytes = free
        self._used_bytes = self._total_bytes - free
        if self._total_bytes > 0:
            self._used_percent = self._used_bytes * 100.0 / self._total_bytes
        else:
            self._used_percent = 0.0

    def _emit(self, builder: SnapshotBuilder) -> None:
        builder.add_uint64("ram.total_bytes", "B", self._total_bytes)
        builder.add_uint64("ram.used_bytes", "B", self._used_bytes)
        builder.add_uint64("ram.free_bytes", "B", self._free_bytes)
        if self._total_bytes > 0:
            builder.add_double("ram.used_percent", "%", self._used_percent)
