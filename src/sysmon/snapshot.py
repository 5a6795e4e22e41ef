"""Typed metric records and the snapshots that hold them."""

from __future__ import annotations

import enum
import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Union, overload

from .errors import InvalidArgumentError

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1

MetricValue = Union[float, int, str]


class MetricType(str, enum.Enum):
    """Type tag carried by every metric."""

    DOUBLE = "double"
    INT64 = "int64"
    UINT64 = "uint64"
    STRING = "string"


@dataclass(frozen=True)
class Metric:
    """A single named, typed value produced by one poll round."""

    name: str
    unit: str | None
    type: MetricType
    value: MetricValue

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "unit": self.unit,
            "type": self.type.value,
            "value": self.value,
        }


class Snapshot(Sequence[Metric]):
    """Immutable, ordered result of one poll round.

    Metrics keep the order in which collectors emitted them. Names are
    expected to be unique but this is not enforced; :meth:`find` returns the
    first exact match.
    """

    __slots__ = ("_metrics",)

    def __init__(self, metrics: Sequence[Metric] = ()) -> None:
        self._metrics: tuple[Metric, ...] = tuple(metrics)

    @overload
    def __getitem__(self, index: int) -> Metric: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[Metric]: ...

    def __getitem__(self, index: int | slice) -> Metric | Sequence[Metric]:
        return self._metrics[index]

    def __len__(self) -> int:
        return len(self._metrics)

    def __iter__(self) -> Iterator[Metric]:
        return iter(self._metrics)

    def __repr__(self) -> str:
        return f"Snapshot({len(self._metrics)} metrics)"

    def find(self, name: str) -> Metric | None:
        """Return the first metric named exactly *name*, or ``None``."""
        for metric in self._metrics:
            if metric.name == name:
                return metric
        return None

    def names(self) -> list[str]:
        return [m.name for m in self._metrics]

    def to_dict(self) -> dict[str, MetricValue]:
        """Map metric names to values, preserving emission order."""
        out: dict[str, MetricValue] = {}
        for metric in self._metrics:
            out.setdefault(metric.name, metric.value)
        return out


class SnapshotBuilder:
    """Append-only accumulator that produces a :class:`Snapshot`.

    Each poll round gets a fresh builder. Collectors append metrics through
    the typed ``add_*`` methods; :meth:`finalize` hands the records to a new
    snapshot and leaves the builder empty.
    """

    def __init__(self) -> None:
        self._metrics: list[Metric] = []

    def __len__(self) -> int:
        return len(self._metrics)

    def _append(self, name: str, unit: str | None, mtype: MetricType, value: MetricValue) -> None:
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError("metric name must be a non-empty string")
        if unit is not None and not isinstance(unit, str):
            raise InvalidArgumentError(f"unit for {name} must be a string or None")
        self._metrics.append(Metric(name=name, unit=unit, type=mtype, value=value))

    def add_double(self, name: str, unit: str | None, value: float) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidArgumentError(f"{name}: expected a float, got {type(value).__name__}")
        value = float(value)
        if math.isnan(value):
            raise InvalidArgumentError(f"{name}: value is NaN")
        self._append(name, unit, MetricType.DOUBLE, value)

    def add_int64(self, name: str, unit: str | None, value: int) -> None:
        if isinstance(value, bool):
            value = int(value)
        if not isinstance(value, int):
            raise InvalidArgumentError(f"{name}: expected an int, got {type(value).__name__}")
        if not INT64_MIN <= value <= INT64_MAX:
            raise InvalidArgumentError(f"{name}: {value} does not fit in int64")
        self._append(name, unit, MetricType.INT64, value)

    def add_uint64(self, name: str, unit: str | None, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgumentError(f"{name}: expected an int, got {type(value).__name__}")
        if not 0 <= value <= UINT64_MAX:
            raise InvalidArgumentError(f"{name}: {value} does not fit in uint64")
        self._append(name, unit, MetricType.UINT64, value)

    def add_string(self, name: str, unit: str | None, value: str) -> None:
        if not isinstance(value, str):
            raise InvalidArgumentError(f"{name}: expected a str, got {type(value).__name__}")
        self._append(name, unit, MetricType.STRING, value)

    def truncate(self, length: int) -> None:
        """Drop every metric appended after the first *length* records."""
        if length < 0 or length > len(self._metrics):
            raise InvalidArgumentError(f"cannot truncate builder of {len(self._metrics)} to {length}")
        del self._metrics[length:]

    def clear(self) -> None:
        self._metrics.clear()

    def finalize(self) -> Snapshot:
        """Move the accumulated metrics into a new snapshot.

        The builder is empty afterwards, so a second call returns an empty
        snapshot.
        """
        metrics, self._metrics = self._metrics, []
        return Snapshot(metrics)
