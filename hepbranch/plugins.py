from __future__ import annotations

from importlib import metadata

from .io.registry import register
from .logger import logger

PLUGIN_GROUP = "hepbranch.formats"

_LOADED = False


def load_plugins() -> None:
    """Load record-format plugins via Python entry points.

    Each entry point in the ``hepbranch.formats`` group is a callable
    returning ``(fmt, reader_factory, writer_factory)`` or
    ``(fmt, reader_factory, writer_factory, extensions)``.

    A plugin that fails to load is logged and skipped; built-in formats keep
    working.
    """

    global _LOADED
    if _LOADED:
        return
    _LOADED = True

    for ep in metadata.entry_points().select(group=PLUGIN_GROUP):
        try:
            fmt, reader_factory, writer_factory, *rest = ep.load()()
        except Exception as e:
            logger.warning(f"hepbranch: skipping format plugin '{ep.name}': {e}")
            continue
        register(fmt, reader_factory, writer_factory, extensions=rest[0] if rest else ())
