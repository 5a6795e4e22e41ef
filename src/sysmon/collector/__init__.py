"""Built-in metric collector modules."""

from __future__ import annotations

from .base import BaseModule
from .battery import BatteryModule
from .cpu import CpuModule
from .network import NetworkModule
from .ram import RamModule
from .storage import StorageModule


def builtin_modules() -> list[type[BaseModule]]:
    """Return the built-in module types in registration order."""
    return [CpuModule, RamModule, BatteryModule, NetworkModule, StorageModule]


__all__ = [
    "BaseModule",
    "BatteryModule",
    "CpuModule",
    "NetworkModule",
    "RamModule",
    "StorageModule",
    "builtin_modules",
]
