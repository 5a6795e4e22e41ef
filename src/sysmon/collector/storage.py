"""Filesystem usage collector."""

from __future__ import annotations

import psutil

from ..config import ConfigSource
from ..errors import NotSupportedError, SysmonIOError
from ..snapshot import SnapshotBuilder
from .base import BaseModule

DEFAULT_PATH = "/"


def read_storage_stats(path: str) -> tuple[int, int, int]:
    """Return ``(total, free, available)`` bytes for the filesystem at *path*.

    *free* counts every unused block, *available* only those usable by an
    unprivileged process.
    """
    try:
        usage = psutil.disk_usage(path)
    except (OSError, psutil.Error) as exc:
        raise SysmonIOError(f"disk_usage({path}) failed: {exc}") from exc
    total = int(usage.total)
    free = max(0, total - int(usage.used))
    return total, free, int(usage.free)


class StorageModule(BaseModule):
    """Reports capacity and usage of one filesystem.

    Used bytes are ``total - free``, not ``total - available``, so reserved
    blocks count as unused.
    """

    name = "storage"

    def __init__(self, path: str = DEFAULT_PATH) -> None:
        super().__init__()
        self._path = path
        self._total_bytes = 0
        self._free_bytes = 0
        self._available_bytes = 0
        self._used_bytes = 0
        self._used_percent = 0.0

    @classmethod
    def create(cls, config: ConfigSource, section: str) -> StorageModule:
        path = (config.get(section, "path") or "").strip() or DEFAULT_PATH
        try:
            read_storage_stats(path)
        except SysmonIOError as exc:
            raise NotSupportedError(str(exc)) from exc
        return cls(path)

    @property
    def path(self) -> str:
        return self._path

    def _refresh(self, now_ms: int) -> None:
        total, free, available = read_storage_stats(self._path)
        self._total_bytes = total
        self._free_bytes = free
        self._available_bytes = available
        self._used_bytes = total - free if total >= free else 0
        self._used_percent = self._used_bytes * 100.0 / total if total > 0 else 0.0

    def _emit(self, builder: SnapshotBuilder) -> None:
        builder.add_string("storage.path", None, self._path)
        builder.add_uint64("storage.total_bytes", "B", self._total_bytes)
        builder.add_uint64("storage.used_bytes", "B", self._used_bytes)
        builder.add_uint64("storage.free_bytes", "B", self._free_bytes)
        builder.add_uint64("storage.available_bytes", "B", self._available_bytes)
        builder.add_double("storage.used_percent", "%", self._used_percent)
