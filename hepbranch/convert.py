"""High-level write_tree/read/info/check API."""

from __future__ import annotations

import itertools
import sys
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from .io.graph_json import iter_graphs
from .io.registry import detect_format, get_reader, get_writer, register
from .models import EventGraph
from .projectors import ProjectionOptions
from .provenance import build_provenance, stable_json_dumps
from .records import EventRecords, RecordFile
from .registry import BranchRegistry, BranchSpec
from .validation import ValidationReport, check_references, validate_events
from .plugins import load_plugins

# Ensure default handlers are registered
from .io.jsonl import JSONLinesReader, JSONLinesWriter
from .io.parquet import ParquetReader, ParquetWriter

register("jsonl", JSONLinesReader, JSONLinesWriter, extensions=(".jsonl", ".ndjson"))
register("parquet", ParquetReader, ParquetWriter, extensions=(".parquet", ".pq"))

# Load third-party format plugins (entry points) after the built-ins.
load_plugins()


def project_events(
    graphs: Iterable[EventGraph],
    registry: BranchRegistry,
    *,
    max_workers: Optional[int] = None,
) -> Iterator[EventRecords]:
    """Stream events through a configured registry."""
    for graph in graphs:
        yield registry.process(graph, max_workers=max_workers)


def write_tree(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    branches: Iterable[Union[BranchSpec, tuple[str, str, str]]],
    *,
    output_format: Optional[str] = None,
    max_events: int = -1,
    max_workers: Optional[int] = None,
    options: Optional[ProjectionOptions] = None,
    check: bool = False,
    quiet: bool = False,
    provenance: bool = True,
    argv: Optional[list[str]] = None,
    **writer_kwargs,
) -> dict:
    """Project an event-graph file into a record file.

    Events are streamed; the graph of one event is released once its
    records are handed to the writer. Input arrays are resolved against the
    first event: branches whose array it lacks are logged and skipped.

    Returns:
        A summary dict with ``n_events``, ``n_records`` per branch,
        ``n_rejected`` branches and, when ``check`` is set, the validation
        report.
    """
    if output_format is None:
        output_format = detect_format(output_path)
    writer = get_writer(output_format)

    graphs: Iterator[EventGraph] = iter_graphs(str(input_path))
    if max_events >= 0:
        graphs = itertools.islice(graphs, max_events)
    first = next(graphs, None)
    available = first.array_names() if first is not None else None
    if first is not None:
        graphs = itertools.chain([first], graphs)

    registry = BranchRegistry(options=options)
    bound = registry.configure(branches, available_arrays=available)
    if not bound:
        raise ValueError("No usable branches configured")
    classes = {b.name: b.branch_class.value for b in bound}

    if not quiet:
        print(f"Reading event graphs: {input_path}", file=sys.stderr)
        print(f"  {len(bound)} branches configured, {len(registry.rejected)} rejected", file=sys.stderr)

    n_events = 0
    n_records = {name: 0 for name in classes}
    report = ValidationReport()

    def _counting(it: Iterable[EventRecords]) -> Iterator[EventRecords]:
        nonlocal n_events
        for ev in it:
            n_events += 1
            for name, count in ev.counts().items():
                n_records[name] += count
            if check:
                report.issues.extend(check_references(ev))
                report.n_events += 1
            yield ev

    metadata: dict[str, str] = {}
    if provenance:
        from . import __version__

        prov = build_provenance(
            tool_version=__version__,
            input_path=input_path,
            output_path=output_path,
            output_format=output_format,
            branches=[(b.input_array, b.name, b.branch_class.value) for b in bound],
            argv=argv,
        )
        metadata["provenance"] = stable_json_dumps(prov)

    if not quiet:
        print(f"Writing {output_format}: {output_path}", file=sys.stderr)

    writer.write(
        str(output_path),
        _counting(project_events(graphs, registry, max_workers=max_workers)),
        classes,
        metadata,
        **writer_kwargs,
    )

    if not quiet:
        print(f"  Wrote {n_events} events", file=sys.stderr)
        for name, count in n_records.items():
            print(f"    {name:>20s}: {count} records", file=sys.stderr)

    return {
        "n_events": n_events,
        "n_records": n_records,
        "n_rejected": len(registry.rejected),
        "classes": classes,
        "validation": report if check else None,
    }


def read(filepath: Union[str, Path], format: Optional[str] = None) -> RecordFile:
    if format is None:
        format = detect_format(filepath)
    reader = get_reader(format)
    rf = reader.read(str(filepath))
    rf.format_name = format
    return rf


def info(filepath: Union[str, Path], format: Optional[str] = None) -> dict:
    rf = read(filepath, format=format)

    n_records = {name: 0 for name in rf.classes}
    for ev in rf.events:
        for name in rf.classes:
            n_records[name] += len(ev.get(name) or [])

    n_events = len(rf.events)
    return {
        "format": rf.format_name,
        "n_events": n_events,
        "branches": [
            {
                "name": name,
                "class": class_name,
                "n_records": n_records[name],
                "avg_per_event": n_records[name] / max(1, n_events),
            }
            for name, class_name in rf.classes.items()
        ],
        "metadata_keys": sorted(rf.metadata),
    }


def check(filepath: Union[str, Path], format: Optional[str] = None, *, max_events: int = -1) -> ValidationReport:
    """Reference-integrity check of a record file."""
    rf = read(filepath, format=format)
    return validate_events(rf.events, classes=rf.classes, max_events=max_events)
