"""Metrics engine that owns the collector modules and runs poll rounds."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .clock import now_ms
from .collector import BaseModule, builtin_modules
from .config import (
    ConfigSource,
    ModuleSettings,
    load_config,
    load_engine_settings,
    load_module_settings,
)
from .errors import (
    InternalError,
    InvalidArgumentError,
    NotSupportedError,
    OutOfMemoryError,
    SysmonError,
)
from .snapshot import Snapshot, SnapshotBuilder

logger = logging.getLogger(__name__)


@dataclass
class ModuleInstance:
    """Engine-side bookkeeping for one module."""

    settings: ModuleSettings
    module: BaseModule | None = None
    enabled: bool = False
    last_refresh_ms: int | None = None

    @property
    def name(self) -> str:
        return self.settings.name

    def is_refresh_due(self, now: int) -> bool:
        refresh_ms = self.settings.refresh_ms
        if refresh_ms == 0 or self.last_refresh_ms is None:
            return True
        return now - self.last_refresh_ms >= refresh_ms


@dataclass(frozen=True)
class ModuleStatus:
    """Public view of a module's configuration and state."""

    name: str
    enabled: bool
    refresh_ms: int


class MetricsEngine:
    """Creates collector modules from configuration and polls them.

    Each call to :meth:`poll` runs one synchronous round over every enabled
    module and returns a new :class:`Snapshot`. The engine never sleeps;
    callers pace rounds using :attr:`interval_ms`.

    Modules whose source is missing on this host are disabled at
    construction. Read failures during a round become a
    ``module.<name>.error`` metric and never disable the module.
    """

    def __init__(
        self,
        config: ConfigSource | None = None,
        modules: Sequence[type[BaseModule]] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        source = config if config is not None else ConfigSource()
        self._clock = clock or now_ms
        self._last_error: str | None = None
        self._instances: list[ModuleInstance] = []
        self._closed = False

        module_types = list(modules) if modules is not None else builtin_modules()
        if not module_types:
            raise InternalError("no collector modules registered")

        self._settings = load_engine_settings(source)
        # parse every section before creating anything
        resolved = [(cls, load_module_settings(source, cls.name)) for cls in module_types]

        try:
            for module_cls, settings in resolved:
                self._instances.append(self._create_instance(module_cls, settings, source))
        except MemoryError as exc:
            self._release_modules()
            raise OutOfMemoryError("out of memory while creating modules") from exc
        except BaseException:
            self._release_modules()
            raise

        enabled = [inst.name for inst in self._instances if inst.enabled]
        logger.info(
            "MetricsEngine created (interval=%dms, modules=%s)",
            self._settings.interval_ms,
            ", ".join(enabled) or "none",
        )

    @classmethod
    def from_file(cls, path: str | Path | None = None, **kwargs) -> MetricsEngine:
        """Build an engine from a configuration file (see :func:`load_config`)."""
        return cls(load_config(path), **kwargs)

    @staticmethod
    def _create_instance(
        module_cls: type[BaseModule], settings: ModuleSettings, source: ConfigSource
    ) -> ModuleInstance:
        if not settings.enabled:
            logger.info("Module %s disabled by configuration", settings.name)
            return ModuleInstance(settings=settings)
        try:
            module = module_cls.create(source, settings.section)
        except NotSupportedError as exc:
            logger.info("Module %s not supported on this host: %s", settings.name, exc)
            return ModuleInstance(settings=settings)
        logger.debug("Module %s created (refresh=%dms)", settings.name, settings.refresh_ms)
        return ModuleInstance(settings=settings, module=module, enabled=True)

    def _release_modules(self) -> None:
        for inst in self._instances:
            if inst.module is None:
                continue
            try:
                inst.module.shutdown()
            except Exception:
                logger.exception("Module %s failed to shut down", inst.name)
            inst.module = None

    @property
    def interval_ms(self) -> int:
        """Configured delay between poll rounds, for the caller to honour."""
        return self._settings.interval_ms

    @property
    def last_error(self) -> str | None:
        """Most recent error message recorded by this engine."""
        return self._last_error

    def module_status(self) -> list[ModuleStatus]:
        return [
            ModuleStatus(name=inst.name, enabled=inst.enabled, refresh_ms=inst.settings.refresh_ms)
            for inst in self._instances
        ]

    def poll(self) -> Snapshot:
        """Run one poll round over every enabled module.

        Raises :class:`OutOfMemoryError` if any module runs out of memory;
        the partially built snapshot is discarded in that case.
        """
        if self._closed:
            raise InvalidArgumentError("engine has been shut down")

        builder = SnapshotBuilder()
        now = self._clock()
        for inst in self._instances:
            module = inst.module
            if not inst.enabled or module is None:
                continue
            refresh_due = inst.is_refresh_due(now)
            mark = len(builder)
            try:
                module.poll(now, refresh_due, builder)
            except (MemoryError, OutOfMemoryError) as exc:
                builder.clear()
                message = f"{inst.name}: {str(exc) or 'out of memory'}"
                self._last_error = message
                logger.error("Poll round aborted: %s", message)
                if isinstance(exc, OutOfMemoryError):
                    raise
                raise OutOfMemoryError(message) from exc
            except SysmonError as exc:
                logger.warning("Module %s poll failed: %s", inst.name, exc)
                self._record_module_error(builder, mark, inst.name, str(exc) or "module error")
                continue
            except Exception as exc:
                logger.exception("Unexpected error polling module %s", inst.name)
                message = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
                self._record_module_error(builder, mark, inst.name, message)
                continue
            if refresh_due:
                inst.last_refresh_ms = now
        return builder.finalize()

    def _record_module_error(
        self, builder: SnapshotBuilder, mark: int, name: str, message: str
    ) -> None:
        # drop whatever the module emitted before failing
        builder.truncate(mark)
        builder.add_string(f"module.{name}.error", None, message)
        self._last_error = f"{name}: {message}"

    def shutdown(self) -> None:
        """Release every module. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._release_modules()
        logger.info("MetricsEngine shut down")

    def __enter__(self) -> MetricsEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
