"""Network throughput collector."""

from __future__ import annotations

import logging
from typing import Any

import psutil

from ..config import ConfigSource
from ..errors import NotSupportedError, SysmonIOError
from ..snapshot import SnapshotBuilder
from .base import BaseModule

logger = logging.getLogger(__name__)

_LOOPBACK_NAMES = frozenset({"lo", "lo0"})


def _read_counters() -> dict[str, Any]:
    try:
        return psutil.net_io_counters(pernic=True)
    except (OSError, psutil.Error) as exc:
        raise SysmonIOError(f"failed to read network counters: {exc}") from exc


def _loopback_interfaces() -> set[str]:
    """Return interface names flagged as loopback by the OS."""
    try:
        stats = psutil.net_if_stats()
    except (OSError, psutil.Error):
        logger.debug("net_if_stats unavailable", exc_info=True)
        return set(_LOOPBACK_NAMES)
    found = set(_LOOPBACK_NAMES)
    for name, st in stats.items():
        flags = getattr(st, "flags", "") or ""
        if "loopback" in flags.split(","):
            found.add(name)
    return found


def resolve_interface(requested: str | None, include_loopback: bool) -> str:
    """Pick the interface to monitor.

    A requested name must exist. Otherwise the first interface in
    enumeration order is used, skipping loopback unless *include_loopback*.
    """
    counters = _read_counters()
    if requested:
        if requested not in counters:
            raise NotSupportedError(f"requested interface not found: {requested}")
        return requested
    loopback = set() if include_loopback else _loopback_interfaces()
    for name in counters:
        if name not in loopback:
            return name
    raise NotSupportedError("no interface found")


class NetworkModule(BaseModule):
    """Reports byte counters and throughput for a single interface.

    Rates are computed from the byte delta over the elapsed engine time
    between two refreshes. A counter that goes backwards (interface reset,
    wrap) counts as no traffic.
    """

    name = "network"

    def __init__(self, interface: str) -> None:
        super().__init__()
        self._interface = interface
        self._rx_bytes = 0
        self._tx_bytes = 0
        self._rx_rate = 0.0
        self._tx_rate = 0.0
        self._last_ts_ms: int | None = None

    @classmethod
    def create(cls, config: ConfigSource, section: str) -> NetworkModule:
        include_loopback = config.get_bool(section, "include_loopback", False)
        requested = (config.get(section, "interface") or "").strip() or None
        try:
            interface = resolve_interface(requested, include_loopback)
        except SysmonIOError as exc:
            raise NotSupportedError(str(exc)) from exc
        logger.info("Network module monitoring interface %s", interface)
        return cls(interface)

    @property
    def interface(self) -> str:
        return self._interface

    def _refresh(self, now_ms: int) -> None:
        nio = _read_counters().get(self._interface)
        if nio is None:
            raise SysmonIOError(f"interface {self._interface} not found")
        rx = int(nio.bytes_recv)
        tx = int(nio.bytes_sent)

        if self._last_ts_ms is not None and now_ms > self._last_ts_ms:
            seconds = (now_ms - self._last_ts_ms) / 1000.0
            rx_delta = rx - self._rx_bytes if rx >= self._rx_bytes else 0
            tx_delta = tx - self._tx_bytes if tx >= self._tx_bytes else 0
            self._rx_rate = rx_delta / seconds
            self._tx_rate = tx_delta / seconds
        else:
            self._rx_rate = 0.0
            self._tx_rate = 0.0

        self._rx_bytes = rx
        self._tx_bytes = tx
        self._last_ts_ms = now_ms

    def _emit(self, builder: SnapshotBuilder) -> None:
        builder.add_string("network.interface", None, self._interface)
        builder.add_uint64("network.rx_bytes", "B", self._rx_bytes)
        builder.add_uint64("network.tx_bytes", "B", self._tx_bytes)
        builder.add_double("network.rx_bytes_per_sec", "B/s", self._rx_rate)
        builder.add_double("network.tx_bytes_per_sec", "B/s", self._tx_rate)
