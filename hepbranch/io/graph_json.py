"""Event-graph JSON lines.

One event per line::

    {"event_number": 1,
     "candidates": [{"momentum": [px, py, pz, E], "position": [x, y, z, t],
                     "children": [2, 3], ...}, ...],
     "arrays": {"Delphes/allParticles": [1, 2, 3], ...}}

Candidate unique ids are implicit (position in ``candidates`` plus one); an
explicit ``unique_id`` must agree with that position. Keys match
``Candidate`` field names; four-vectors are ``[x, y, z, t]`` lists.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Iterable, Iterator

from ..errors import GraphShapeError
from ..kinematics import FourVector
from ..models import (
    Candidate,
    EventGraph,
    HighLevelTracking,
    SecondaryVertex,
    SecondaryVertexSummary,
    SecondaryVertexTrack,
    TruthVertex,
)
from ..provenance import stable_json_dumps
from ._open import open_text

_VECTOR_FIELDS = {"momentum", "position", "area"}
_VECTOR_TUPLE_FIELDS = {"trimmed_p4", "pruned_p4", "soft_dropped_p4"}
_ID_FIELDS = {"children", "subjets", "tracks"}
_TRACK_LIST_FIELDS = {"primary_vertex_tracks", "hl_secondary_vertex_tracks"}
_SUMMARY_FIELDS = {"hl_secondary_vertex", "ml_secondary_vertex"}
_CANDIDATE_FIELDS = {f.name for f in dataclasses.fields(Candidate)}


def _vector(value: Any) -> FourVector:
    if isinstance(value, dict):
        return FourVector(**{k: float(v) for k, v in value.items()})
    vals = [float(v) for v in value]
    if len(vals) != 4:
        raise ValueError(f"four-vector needs 4 components, got {len(vals)}")
    return FourVector(*vals)


def _vertex_track(d: dict) -> SecondaryVertexTrack:
    return SecondaryVertexTrack(**d)


def _secondary_vertex(d: dict) -> SecondaryVertex:
    d = dict(d)
    tracks = tuple(_vertex_track(t) for t in d.pop("tracks", []))
    position = _vector(d.pop("position", [0.0, 0.0, 0.0, 0.0]))
    return SecondaryVertex(position=position, tracks=tracks, **d)


def candidate_from_dict(d: dict) -> Candidate:
    unknown = set(d) - _CANDIDATE_FIELDS
    if unknown:
        raise ValueError(f"Unknown candidate fields: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    for key, value in d.items():
        if key in _VECTOR_FIELDS:
            kwargs[key] = _vector(value)
        elif key in _VECTOR_TUPLE_FIELDS:
            kwargs[key] = tuple(_vector(v) for v in value)
        elif key in _ID_FIELDS:
            kwargs[key] = tuple(int(v) for v in value)
        elif key in _TRACK_LIST_FIELDS:
            kwargs[key] = tuple(_vertex_track(v) for v in value)
        elif key == "secondary_vertices":
            kwargs[key] = tuple(_secondary_vertex(v) for v in value)
        elif key in _SUMMARY_FIELDS:
            kwargs[key] = SecondaryVertexSummary(**value)
        elif key == "hl_tracking":
            kwargs[key] = HighLevelTracking(**value)
        elif key == "truth_vertices":
            kwargs[key] = tuple(TruthVertex(**v) for v in value)
        elif isinstance(value, list):
            kwargs[key] = tuple(value)
        else:
            kwargs[key] = value
    return Candidate(**kwargs)


def event_from_dict(d: dict) -> EventGraph:
    graph = EventGraph(event_number=int(d.get("event_number", 0) or 0))
    for c in d.get("candidates", []):
        graph.add(candidate_from_dict(c))
    for candidate in graph:
        for uid in candidate.children + candidate.subjets + candidate.tracks:
            if uid not in graph:
                raise GraphShapeError(
                    f"event {graph.event_number}: candidate {candidate.unique_id} references unknown candidate {uid}"
                )
    for name, uids in (d.get("arrays") or {}).items():
        graph.set_array(name, uids)
    return graph


def _plain(value: Any) -> Any:
    if isinstance(value, FourVector):
        return list(value.as_tuple())
    if dataclasses.is_dataclass(value):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def candidate_to_dict(c: Candidate, *, skip_defaults: bool = True) -> dict:
    default = Candidate()
    out: dict[str, Any] = {}
    for f in dataclasses.fields(c):
        value = getattr(c, f.name)
        if skip_defaults and f.name != "unique_id" and value == getattr(default, f.name):
            continue
        out[f.name] = _plain(value)
    return out


def event_to_dict(graph: EventGraph) -> dict:
    return {
        "event_number": graph.event_number,
        "candidates": [candidate_to_dict(c) for c in graph],
        "arrays": {name: list(uids) for name, uids in graph.arrays.items()},
    }


def iter_graphs(path: str) -> Iterator[EventGraph]:
    """Stream event graphs from a JSON lines file (``.gz`` supported)."""
    with open_text(path) as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({e})") from e
            yield event_from_dict(obj)


def write_graphs(path: str, graphs: Iterable[EventGraph]) -> int:
    n = 0
    with open_text(path, "w") as f:
        for graph in graphs:
            f.write(stable_json_dumps(event_to_dict(graph)) + "\n")
            n += 1
    return n
