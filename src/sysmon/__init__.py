"""sysmon – poll host metrics through pluggable collector modules."""

from .config import ConfigSource, load_config
from .engine import MetricsEngine, ModuleStatus
from .errors import (
    ErrorKind,
    InternalError,
    InvalidArgumentError,
    NotSupportedError,
    OutOfMemoryError,
    ParseError,
    SysmonError,
    SysmonIOError,
)
from .snapshot import Metric, MetricType, Snapshot, SnapshotBuilder

__version__ = "0.1.0"

__all__ = [
    "ConfigSource",
    "ErrorKind",
    "InternalError",
    "InvalidArgumentError",
    "Metric",
    "MetricType",
    "MetricsEngine",
    "ModuleStatus",
    "NotSupportedError",
    "OutOfMemoryError",
    "ParseError",
    "Snapshot",
    "SnapshotBuilder",
    "SysmonError",
    "SysmonIOError",
    "load_config",
    "__version__",
]
