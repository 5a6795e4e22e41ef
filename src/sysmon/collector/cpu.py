"""CPU usage collector."""

from __future__ import annotations

import logging

import psutil

from ..config import ConfigSource
from ..errors import NotSupportedError, SysmonIOError
from ..snapshot import SnapshotBuilder
from .base import BaseModule

logger = logging.getLogger(__name__)

# guest time is already accounted for in user/nice on Linux
_EXCLUDED_FIELDS = frozenset({"guest", "guest_nice"})
_IDLE_FIELDS = ("idle", "iowait")


def read_cpu_ticks() -> tuple[float, float]:
    """Return cumulative ``(total, idle)`` CPU time across all cores."""
    try:
        times = psutil.cpu_times()
    except (OSError, psutil.Error) as exc:
        raise SysmonIOError(f"failed to read cpu times: {exc}") from exc
    fields = times._asdict()
    idle = sum(float(fields.get(name, 0.0)) for name in _IDLE_FIELDS)
    total = sum(float(v) for k, v in fields.items() if k not in _EXCLUDED_FIELDS)
    return total, idle


class CpuModule(BaseModule):
    """Reports overall CPU usage from successive busy/idle time samples.

    The first refresh only seeds the previous sample, so usage reads 0 until
    the second refresh. Deltas that cannot be trusted (a counter reset, idle
    growing faster than total) keep the last valid percentage.
    """

    name = "cpu"

    def __init__(self, core_count: int | None = None) -> None:
        super().__init__()
        self._core_count = core_count if core_count and core_count > 0 else None
        self._last_total: float | None = None
        self._last_idle: float | None = None
        self._usage_percent = 0.0

    @classmethod
    def create(cls, config: ConfigSource, section: str) -> CpuModule:
        try:
            read_cpu_ticks()
        except SysmonIOError as exc:
            raise NotSupportedError(str(exc)) from exc
        try:
            core_count = psutil.cpu_count(logical=True)
        except (OSError, psutil.Error):
            logger.debug("Could not determine core count", exc_info=True)
            core_count = None
        return cls(core_count=core_count)

    def _refresh(self, now_ms: int) -> None:
        total, idle = read_cpu_ticks()
        if self._last_total is not None and self._last_idle is not None:
            total_delta = total - self._last_total
            idle_delta = idle - self._last_idle
            if total_delta > 0 and 0 <= idle_delta <= total_delta:
                busy = (total_delta - idle_delta) * 100.0 / total_delta
                self._usage_percent = min(100.0, max(0.0, busy))
            else:
                logger.debug(
                    "Ignoring cpu sample (total_delta=%s, idle_delta=%s)", total_delta, idle_delta
                )
        self._last_total = total
        self._last_idle = idle

    def _emit(self, builder: SnapshotBuilder) -> None:
        builder.add_double("cpu.usage_percent", "%", self._usage_percent)
        if self._core_count is not None:
            builder.add_uint64("cpu.core_count", None, self._core_count)
