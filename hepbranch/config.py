"""Branch configuration.

A branch is configured by a triple ``(input array, branch name, class
name)``. Triples can come from Delphes-card ``add Branch`` lines, from
``input:name:class`` command-line arguments, from a flat list whose length
is a multiple of three, or from a JSON file.

Example card fragment::

    module TreeWriter TreeWriter {
      add Branch Delphes/allParticles Particle GenParticle
      add Branch TrackMerger/tracks Track Track
      add Branch UniqueObjectFinder/jets Jet Jet
    }
"""

from __future__ import annotations

import json
import shlex
from pathlib import Path
from typing import Any, Iterable, Sequence, Union

from .errors import BranchConfigError
from .registry import BranchSpec

DEFAULT_BRANCHES: list[BranchSpec] = [
    BranchSpec("Delphes/allParticles", "Particle", "GenParticle"),
    BranchSpec("TrackMerger/tracks", "Track", "Track"),
    BranchSpec("Calorimeter/towers", "Tower", "Tower"),
    BranchSpec("UniqueObjectFinder/jets", "Jet", "Jet"),
    BranchSpec("UniqueObjectFinder/electrons", "Electron", "Electron"),
    BranchSpec("UniqueObjectFinder/photons", "Photon", "Photon"),
    BranchSpec("UniqueObjectFinder/muons", "Muon", "Muon"),
    BranchSpec("MissingET/momentum", "MissingET", "MissingET"),
    BranchSpec("ScalarHT/energy", "ScalarHT", "ScalarHT"),
]


def parse_card(text: str) -> list[BranchSpec]:
    """Collect ``add Branch`` lines from Delphes-card text."""
    specs: list[BranchSpec] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        try:
            tokens = shlex.split(line)
        except ValueError as e:
            raise BranchConfigError(f"line {lineno}: {e}") from e
        if len(tokens) < 2 or tokens[0] != "add" or tokens[1] != "Branch":
            continue
        args = tokens[2:]
        if len(args) != 3:
            raise BranchConfigError(
                f"line {lineno}: 'add Branch' expects 3 arguments (input, name, class), got {len(args)}"
            )
        specs.append(BranchSpec(*args))
    return specs


def parse_branch_args(args: Iterable[str]) -> list[BranchSpec]:
    """Parse ``input:name:class`` strings.

    The input array may itself contain ``:``; the last two fields are the
    branch name and class.
    """
    specs: list[BranchSpec] = []
    for arg in args:
        parts = arg.rsplit(":", 2)
        if len(parts) != 3 or not all(parts):
            raise BranchConfigError(f"invalid branch '{arg}', expected input:name:class")
        specs.append(BranchSpec(*parts))
    return specs


def parse_branch_list(values: Sequence[Any]) -> list[BranchSpec]:
    """Parse a flat ``[input, name, class, input, name, class, ...]`` list."""
    if len(values) % 3 != 0:
        raise BranchConfigError(f"branch list length {len(values)} is not a multiple of 3")
    return [
        BranchSpec(str(values[i]), str(values[i + 1]), str(values[i + 2]))
        for i in range(0, len(values), 3)
    ]


def _from_json(obj: Any) -> list[BranchSpec]:
    if isinstance(obj, dict):
        obj = obj.get("branches", obj.get("Branch"))
    if not isinstance(obj, list):
        raise BranchConfigError("JSON branch configuration must be a list or have a 'branches' key")
    if all(isinstance(v, str) for v in obj):
        return parse_branch_list(obj)

    specs: list[BranchSpec] = []
    for item in obj:
        if isinstance(item, dict):
            try:
                specs.append(BranchSpec(str(item["input"]), str(item["name"]), str(item["class"])))
            except KeyError as e:
                raise BranchConfigError(f"branch entry {item!r} is missing {e}") from None
        elif isinstance(item, (list, tuple)) and len(item) == 3:
            specs.append(BranchSpec(*(str(v) for v in item)))
        else:
            raise BranchConfigError(f"invalid branch entry {item!r}")
    return specs


def load_branches(path: Union[str, Path]) -> list[BranchSpec]:
    """Load branches from a ``.json`` file or from Delphes-card text."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() == ".json":
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as e:
            raise BranchConfigError(f"{p}: {e}") from e
        return _from_json(obj)
    return parse_card(text)
