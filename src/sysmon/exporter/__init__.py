"""Snapshot exporters."""

from .base import BaseExporter
from .console import HumanExporter, JsonLinesExporter, format_human, format_json

__all__ = ["BaseExporter", "HumanExporter", "JsonLinesExporter", "format_human", "format_json"]
