"""Configuration loading and validation for sysmon."""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ParseError, SysmonIOError

GLOBAL_SECTION = "sysmon"
UINT32_MAX = 0xFFFFFFFF
DEFAULT_INTERVAL_MS = 1000

DEFAULT_CONFIG_FILES = ("sysmon.yaml", "sysmon.yml", "sysmon.ini")
INI_SUFFIXES = (".ini", ".conf", ".cfg")

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})


def module_section(name: str) -> str:
    """Return the configuration section that holds settings for module *name*."""
    return f"module.{name}"


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ConfigSource:
    """Read-only ``section -> key -> string`` store.

    Values are kept as raw strings and typed on access, the same way the
    INI loader sees them, so YAML and INI files behave identically.
    """

    def __init__(self, sections: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._sections: dict[str, dict[str, str]] = {}
        for section, entries in (sections or {}).items():
            self._sections[str(section)] = {str(k): _to_text(v) for k, v in entries.items()}

    def set(self, section: str, key: str, value: Any) -> None:
        self._sections.setdefault(section, {})[key] = _to_text(value)

    def get(self, section: str, key: str) -> str | None:
        return self._sections.get(section, {}).get(key)

    def get_bool(self, section: str, key: str, default: bool) -> bool:
        """Return a boolean setting; unrecognized words fall back to *default*."""
        raw = self.get(section, key)
        if raw is None:
            return default
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        return default

    def get_uint32(self, section: str, key: str, default: int) -> tuple[int, bool]:
        """Return ``(value, ok)`` for an unsigned 32-bit setting.

        A missing or empty value yields ``(default, True)``. Anything that is
        not a base-10 integer in ``[0, 2**32 - 1]`` yields ``(default, False)``.
        """
        raw = self.get(section, key)
        if raw is None or not raw.strip():
            return default, True
        text = raw.strip()
        if not text.isdigit() or not text.isascii():
            return default, False
        value = int(text)
        if value > UINT32_MAX:
            return default, False
        return value, True


@dataclass(frozen=True)
class EngineSettings:
    """Global engine settings from the ``[sysmon]`` section."""

    interval_ms: int = DEFAULT_INTERVAL_MS


@dataclass(frozen=True)
class ModuleSettings:
    """Per-module settings common to every collector."""

    name: str
    enabled: bool = True
    refresh_ms: int = 0

    @property
    def section(self) -> str:
        return module_section(self.name)


def load_engine_settings(source: ConfigSource) -> EngineSettings:
    interval_ms, ok = source.get_uint32(GLOBAL_SECTION, "interval_ms", DEFAULT_INTERVAL_MS)
    if not ok or interval_ms == 0:
        raise ParseError(f"invalid {GLOBAL_SECTION}.interval_ms (must be an integer > 0)")
    return EngineSettings(interval_ms=interval_ms)


def load_module_settings(source: ConfigSource, name: str) -> ModuleSettings:
    section = module_section(name)
    enabled = source.get_bool(section, "enabled", True)
    refresh_ms, ok = source.get_uint32(section, "refresh_ms", 0)
    if not ok:
        raise ParseError(f"invalid {section}.refresh_ms (must be uint32)")
    return ModuleSettings(name=name, enabled=enabled, refresh_ms=refresh_ms)


def _flatten_sections(data: Mapping[str, Any], prefix: str = "") -> dict[str, dict[str, Any]]:
    """Turn nested YAML mappings into dotted section names.

    ``{"module": {"cpu": {"enabled": False}}}`` becomes
    ``{"module.cpu": {"enabled": False}}``.
    """
    sections: dict[str, dict[str, Any]] = {}
    for key, value in data.items():
        if not isinstance(value, Mapping):
            continue
        name = f"{prefix}.{key}" if prefix else str(key)
        scalars = {k: v for k, v in value.items() if not isinstance(v, Mapping)}
        if scalars:
            sections.setdefault(name, {}).update(scalars)
        for child, entries in _flatten_sections(value, name).items():
            sections.setdefault(child, {}).update(entries)
    return sections


def _load_yaml(path: Path) -> ConfigSource:
    try:
        with open(path, encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ParseError(f"failed to parse {path}: {exc}") from exc
    if loaded is None:
        return ConfigSource()
    if not isinstance(loaded, Mapping):
        raise ParseError(f"{path}: top level must be a mapping of sections")
    return ConfigSource(_flatten_sections(loaded))


def _load_ini(path: Path) -> ConfigSource:
    parser = configparser.ConfigParser(interpolation=None, comment_prefixes=("#", ";"))
    parser.optionxform = str  # type: ignore[assignment]
    try:
        with open(path, encoding="utf-8") as fh:
            parser.read_file(fh)
    except configparser.Error as exc:
        raise ParseError(f"failed to parse {path}: {exc}") from exc
    return ConfigSource({section: dict(parser.items(section)) for section in parser.sections()})


def _apply_env_overrides(source: ConfigSource) -> ConfigSource:
    """Apply environment variable overrides using the SYSMON_ prefix."""
    env_map = {
        "SYSMON_INTERVAL_MS": (GLOBAL_SECTION, "interval_ms"),
        "SYSMON_NETWORK_INTERFACE": (module_section("network"), "interface"),
        "SYSMON_STORAGE_PATH": (module_section("storage"), "path"),
    }
    for env_key, (section, key) in env_map.items():
        value = os.environ.get(env_key)
        if value is not None:
            source.set(section, key, value)
    return source


def load_config(path: str | Path | None = None) -> ConfigSource:
    """Load configuration from a YAML or INI file with environment overrides.

    When *path* is None, ``sysmon.yaml``, ``sysmon.yml`` and ``sysmon.ini`` are
    tried in the current directory; if none exists every setting takes its
    default. An explicit *path* that does not exist is an error.
    """
    if path is None:
        candidates = [Path(name) for name in DEFAULT_CONFIG_FILES]
        found = next((p for p in candidates if p.is_file()), None)
        if found is None:
            return _apply_env_overrides(ConfigSource())
        path = found
    else:
        path = Path(path)
        if not path.is_file():
            raise SysmonIOError(f"failed to open config file: {path}")

    try:
        if path.suffix.lower() in INI_SUFFIXES:
            source = _load_ini(path)
        else:
            source = _load_yaml(path)
    except OSError as exc:
        raise SysmonIOError(f"failed to read config file {path}: {exc}") from exc
    return _apply_env_overrides(source)
