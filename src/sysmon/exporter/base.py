"""Base interface for snapshot exporters."""

from __future__ import annotations

import abc

from ..snapshot import Snapshot


class BaseExporter(abc.ABC):
    """Abstract base for exporters that receive one snapshot per poll round."""

    @abc.abstractmethod
    def export(self, snapshot: Snapshot) -> None:
        """Export a single snapshot."""

    @abc.abstractmethod
    def shutdown(self) -> None:
        """Flush and release resources."""
