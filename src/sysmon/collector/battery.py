"""Battery collector."""

from __future__ import annotations

from typing import Any

import psutil

from ..config import ConfigSource
from ..errors import NotSupportedError, SysmonIOError
from ..snapshot import SnapshotBuilder
from .base import BaseModule

STATUS_UNKNOWN = "unknown"


def battery_status(percent: float, power_plugged: bool | None) -> str:
    """Describe the charge state the way power-supply drivers report it."""
    if power_plugged is None:
        return STATUS_UNKNOWN
    if not power_plugged:
        return "Discharging"
    return "Full" if percent >= 100.0 else "Charging"


def _read_battery() -> Any:
    sensors_battery = getattr(psutil, "sensors_battery", None)
    if sensors_battery is None:
        return None
    return sensors_battery()


class BatteryModule(BaseModule):
    """Reports battery charge, charging flag and a status string."""

    name = "battery"

    def __init__(self) -> None:
        super().__init__()
        self._percent = 0.0
        self._is_charging = 0
        self._status = STATUS_UNKNOWN

    @classmethod
    def create(cls, config: ConfigSource, section: str) -> BatteryModule:
        try:
            battery = _read_battery()
        except (OSError, psutil.Error) as exc:
            raise NotSupportedError(f"failed to query power sources: {exc}") from exc
        if battery is None:
            raise NotSupportedError("no battery found")
        return cls()

    def _refresh(self, now_ms: int) -> None:
        try:
            battery = _read_battery()
        except (OSError, psutil.Error) as exc:
            raise SysmonIOError(f"failed to read battery: {exc}") from exc
        if battery is None:
            raise SysmonIOError("battery info not found")

        percent = float(battery.percent)
        self._percent = min(100.0, max(0.0, percent))
        self._status = battery_status(self._percent, battery.power_plugged)
        self._is_charging = 1 if self._status == "Charging" else 0

    def _emit(self, builder: SnapshotBuilder) -> None:
        builder.add_double("battery.percent", "%", self._percent)
        builder.add_int64("battery.is_charging", None, self._is_charging)
        builder.add_string("battery.status", None, self._status)
