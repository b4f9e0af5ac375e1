"""Record-file format table.

Formats are registered by name with reader and writer factories and,
optionally, the file extensions that select them. Built-in formats are
registered by ``hepbranch.convert``; plugins add theirs through
``hepbranch.plugins``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .reader_base import Reader
from .writer_base import Writer


@dataclass(frozen=True)
class FormatHandlers:
    reader: Callable[[], Reader]
    writer: Callable[[], Writer]


_REGISTRY: dict[str, FormatHandlers] = {}
_EXTENSIONS: dict[str, str] = {}


def register(
    fmt: str,
    reader: Callable[[], Reader],
    writer: Callable[[], Writer],
    extensions: Iterable[str] = (),
) -> None:
    _REGISTRY[fmt] = FormatHandlers(reader=reader, writer=writer)
    for ext in extensions:
        ext = ext.lower()
        _EXTENSIONS[ext if ext.startswith(".") else f".{ext}"] = fmt


def available_formats() -> list[str]:
    return sorted(_REGISTRY)


def detect_format(filepath: str | Path) -> str:
    """Format name for a record file path; a trailing ``.gz`` is ignored."""
    suffixes = [s.lower() for s in Path(filepath).suffixes]
    if suffixes and suffixes[-1] == ".gz":
        suffixes.pop()
    if not suffixes:
        raise ValueError(f"Cannot detect format from filename: {filepath}")
    fmt = _EXTENSIONS.get(suffixes[-1])
    if fmt is None:
        raise ValueError(f"Unknown file extension '{suffixes[-1]}' in {filepath}")
    return fmt


def get_reader(fmt: str) -> Reader:
    try:
        handlers = _REGISTRY[fmt]
    except KeyError:
        raise ValueError(f"No reader registered for format: {fmt}") from None
    return handlers.reader()


def get_writer(fmt: str) -> Writer:
    try:
        handlers = _REGISTRY[fmt]
    except KeyError:
        raise ValueError(f"No writer registered for format: {fmt}") from None
    return handlers.writer()
