"""Constituent flattening.

Composite candidates never nest deeper than three levels:

    composite -> particle
    composite -> track -> particle
    composite -> tower -> track -> particle

``fill_particles`` walks exactly this shape; it is not a general recursive
flatten.
"""

from __future__ import annotations

from .errors import GraphShapeError
from .models import Candidate, EventGraph


def fill_particles(graph: EventGraph, candidate: Candidate) -> list[int]:
    """Unique ids of the leaf particles ``candidate`` was built from.

    Order follows the children (and, for towers, the grandchildren) in
    encounter order. Duplicates are kept.
    """
    particles: list[int] = []

    for child in graph.children_of(candidate):
        # particle
        if not child.children:
            particles.append(child.unique_id)
            continue

        # track
        track = graph.get(child.children[0])
        if not track.children:
            particles.append(track.unique_id)
            continue

        # tower
        for deposit in graph.children_of(child):
            if not deposit.children:
                raise GraphShapeError(
                    f"candidate {deposit.unique_id} under {child.unique_id} has no originating particle"
                )
            particles.append(graph.get(deposit.children[0]).unique_id)

    return particles
