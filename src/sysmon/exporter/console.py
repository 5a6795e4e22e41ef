"""Console exporters – render snapshots as text or JSON lines on a stream."""

from __future__ import annotations

import abc
import json
import logging
import sys
from typing import TextIO

from ..snapshot import Metric, MetricType, Snapshot
from .base import BaseExporter

logger = logging.getLogger(__name__)


def format_value(metric: Metric) -> str:
    if metric.type is MetricType.DOUBLE:
        return f"{metric.value:.2f}"
    return str(metric.value)


def format_human(snapshot: Snapshot) -> str:
    """Render a snapshot as ``name=value<unit>`` pairs separated by two spaces."""
    return "  ".join(f"{m.name}={format_value(m)}{m.unit or ''}" for m in snapshot)


def format_json(snapshot: Snapshot) -> str:
    """Render a snapshot as a single JSON object mapping names to values.

    Uses :meth:`Snapshot.to_dict`, so a repeated name keeps its first value.
    """
    record = {
        name: round(value, 6) if isinstance(value, float) else value
        for name, value in snapshot.to_dict().items()
    }
    return json.dumps(record, ensure_ascii=False)


class _StreamExporter(BaseExporter):
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    @abc.abstractmethod
    def _render(self, snapshot: Snapshot) -> str:
        """Return the line for one snapshot, without the newline."""

    def export(self, snapshot: Snapshot) -> None:
        self._stream.write(self._render(snapshot) + "\n")
        self._stream.flush()

    def shutdown(self) -> None:
        self._stream.flush()
        logger.debug("%s shut down", type(self).__name__)


class HumanExporter(_StreamExporter):
    """Writes one human-readable line per snapshot."""

    def _render(self, snapshot: Snapshot) -> str:
        return format_human(snapshot)


class JsonLinesExporter(_StreamExporter):
    """Writes one JSON object per snapshot (JSON Lines)."""

    def _render(self, snapshot: Snapshot) -> str:
        return format_json(snapshot)
