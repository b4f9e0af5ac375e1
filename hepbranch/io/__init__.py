"""Record-file readers and writers, and the event-graph input format."""

from __future__ import annotations

from .registry import available_formats, detect_format, get_reader, get_writer, register

__all__ = ["available_formats", "detect_format", "get_reader", "get_writer", "register"]
