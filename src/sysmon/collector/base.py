"""Base interface for metric collector modules."""

from __future__ import annotations

import abc
from typing import ClassVar

from ..config import ConfigSource
from ..snapshot import SnapshotBuilder


class BaseModule(abc.ABC):
    """Abstract base class for metric collector modules.

    A module owns the private state needed to turn raw OS counters into
    values (previous samples, resolved device names, cached results). The
    engine only ever talks to it through :meth:`create`, :meth:`poll` and
    :meth:`shutdown`.

    Subclasses implement :meth:`_refresh`, which re-queries the source and
    raises on failure before touching any state, and :meth:`_emit`, which
    appends the full metric set from the cached values.
    """

    #: Module name; used for the ``module.<name>`` config section and as
    #: the metric namespace.
    name: ClassVar[str] = ""

    def __init__(self) -> None:
        self._has_data = False

    @classmethod
    @abc.abstractmethod
    def create(cls, config: ConfigSource, section: str) -> BaseModule:
        """Probe the metric source and return a ready module.

        Raises :class:`~sysmon.errors.NotSupportedError` when the source is
        unavailable on this host. Any other exception is a hard failure.
        """

    def poll(self, now_ms: int, refresh_due: bool, builder: SnapshotBuilder) -> None:
        """Emit this module's metrics, re-reading the source when due."""
        if refresh_due or not self._has_data:
            self._refresh(now_ms)
            self._has_data = True
        self._emit(builder)

    @abc.abstractmethod
    def _refresh(self, now_ms: int) -> None:
        """Re-read the source and recompute derived values."""

    @abc.abstractmethod
    def _emit(self, builder: SnapshotBuilder) -> None:
        """Append the cached metric set to *builder*."""

    def shutdown(self) -> None:
        """Release resources held by the module."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
