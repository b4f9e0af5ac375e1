"""Parquet record files.

Layout: one row per event. ``event_number`` plus one ``list<struct>``
column per branch, the struct type derived from the branch's record
dataclass. Branch classes and provenance live in the schema metadata.
"""

from __future__ import annotations

import dataclasses
import json
import typing
from typing import Iterable, Iterator, Mapping, Optional

from ..records import RECORD_TYPES, EventRecords, RecordFile
from .reader_base import Reader
from .writer_base import Writer


def _require_pyarrow():
    try:
        import pyarrow as pa  # type: ignore
        import pyarrow.parquet as pq  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ImportError("Parquet support requires 'pyarrow'. Install hepbranch[parquet].") from e
    return pa, pq


_META_PREFIX = "hepbranch."


def _md_get(md: dict[str, str], key: str, default=None):
    return md.get(f"{_META_PREFIX}{key}", md.get(key, default))


def _md_set(md: dict[str, str], key: str, value) -> None:
    md[f"{_META_PREFIX}{key}"] = str(value)


def _arrow_type(pa, tp):
    if tp is int:
        return pa.int64()
    if tp is float:
        return pa.float64()
    if tp is str:
        return pa.string()
    if tp is bool:
        return pa.bool_()
    if dataclasses.is_dataclass(tp):
        return record_struct(pa, tp)
    if typing.get_origin(tp) is list:
        (item,) = typing.get_args(tp)
        return pa.list_(_arrow_type(pa, item))
    raise TypeError(f"no Arrow type for {tp!r}")


def record_struct(pa, record_type):
    """Arrow struct type for a record dataclass."""
    hints = typing.get_type_hints(record_type)
    return pa.struct([
        pa.field(f.name, _arrow_type(pa, hints[f.name]))
        for f in dataclasses.fields(record_type)
    ])


def branch_schema(pa, classes: Mapping[str, str]):
    fields = [pa.field("event_number", pa.int64())]
    for name, class_name in classes.items():
        if class_name not in RECORD_TYPES:
            raise ValueError(f"Unknown record class '{class_name}' for branch '{name}'")
        fields.append(pa.field(name, pa.list_(record_struct(pa, RECORD_TYPES[class_name]))))
    return pa.schema(fields)


def _batched(events: Iterable[EventRecords], size: int) -> Iterator[list[dict]]:
    batch: list[dict] = []
    for ev in events:
        batch.append(ev.to_dict())
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


class ParquetWriter(Writer):
    def write(
        self,
        path: str,
        events: Iterable[EventRecords],
        classes: Mapping[str, str],
        metadata: Optional[Mapping[str, str]] = None,
        **kwargs,
    ) -> None:
        batch_size = int(kwargs.get("batch_size", 1000))
        compression = kwargs.get("compression", "snappy")
        pa, pq = _require_pyarrow()

        md: dict[str, str] = {}
        # branch order matters, so no key sorting here
        _md_set(md, "classes", json.dumps(dict(classes)))
        for k, v in (metadata or {}).items():
            _md_set(md, k, v)

        schema = branch_schema(pa, classes).with_metadata(md)
        with pq.ParquetWriter(path, schema, compression=compression) as writer:
            n = 0
            for rows in _batched(events, batch_size):
                writer.write_table(pa.Table.from_pylist(rows, schema=schema))
                n += len(rows)
            if n == 0:
                writer.write_table(schema.empty_table())


class ParquetReader(Reader):
    def read(self, path: str) -> RecordFile:
        pa, pq = _require_pyarrow()
        table = pq.read_table(path)
        md: dict[str, str] = {}
        if table.schema.metadata:
            for k, v in table.schema.metadata.items():
                md[k.decode("utf-8", "replace")] = v.decode("utf-8", "replace")

        classes = json.loads(_md_get(md, "classes", "{}") or "{}")
        metadata = {
            k[len(_META_PREFIX):]: v
            for k, v in md.items()
            if k.startswith(_META_PREFIX) and k != f"{_META_PREFIX}classes"
        }
        return RecordFile(
            events=table.to_pylist(),
            classes=classes,
            metadata=metadata,
            format_name="parquet",
        )

    def iter_events(self, path: str) -> Iterator[dict]:
        _, pq = _require_pyarrow()
        pf = pq.ParquetFile(path)
        for batch in pf.iter_batches():
            yield from batch.to_pylist()
