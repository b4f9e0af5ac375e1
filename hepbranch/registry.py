"""
Branch registry.

Maps configured output branches to their projector and input array. The
registry is built once from the branch configuration and then passed to
the per-event processing loop:

    registry = BranchRegistry()
    registry.configure(parse_card(card_text))
    for graph in events:
        records = registry.process(graph)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Collection, Iterable, Optional

from .errors import RegistryStateError, UnknownBranchClassError
from .logger import logger
from .models import EventGraph
from .projectors import (
    DEFAULT_OPTIONS,
    BranchClass,
    ProjectionOptions,
    Projector,
    get_projector,
)
from .records import EventRecords, Record


@dataclass(frozen=True)
class BranchSpec:
    """One configured branch: (input array, branch name, output class name)."""

    input_array: str
    branch_name: str
    class_name: str

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.input_array, self.branch_name, self.class_name)


@dataclass(frozen=True)
class Branch:
    """A resolved branch binding."""

    name: str
    branch_class: BranchClass
    input_array: str
    projector: Projector


class BranchRegistry:
    """Dispatch table from output branches to projectors.

    Two states: unconfigured until ``configure`` has run, configured after.
    """

    def __init__(self, options: Optional[ProjectionOptions] = None):
        self.options = options or DEFAULT_OPTIONS
        self._branches: list[Branch] = []
        self._configured = False
        self.rejected: list[tuple[BranchSpec, str]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    @property
    def branches(self) -> list[Branch]:
        return list(self._branches)

    def __len__(self) -> int:
        return len(self._branches)

    def _reject(self, spec: BranchSpec, reason: str) -> None:
        logger.error(f"** ERROR: {reason}")
        self.rejected.append((spec, reason))

    def configure(
        self,
        specs: Iterable[BranchSpec | tuple[str, str, str]],
        available_arrays: Optional[Collection[str]] = None,
    ) -> list[Branch]:
        """Bind every resolvable branch.

        Branches with an unknown class, an input array not in
        ``available_arrays`` (when given) or an already used branch name are
        logged and skipped; the rest are bound in configuration order.
        """
        if self._configured:
            raise RegistryStateError("branch registry is already configured")

        names: set[str] = set()
        for spec in specs:
            if not isinstance(spec, BranchSpec):
                spec = BranchSpec(*spec)

            try:
                branch_class = BranchClass.from_name(spec.class_name)
            except UnknownBranchClassError as e:
                self._reject(spec, f"{e}; cannot create branch '{spec.branch_name}'")
                continue

            if available_arrays is not None and spec.input_array not in available_arrays:
                self._reject(spec, f"cannot find input array '{spec.input_array}' for branch '{spec.branch_name}'")
                continue

            if spec.branch_name in names:
                self._reject(spec, f"branch '{spec.branch_name}' is defined more than once")
                continue

            names.add(spec.branch_name)
            self._branches.append(Branch(
                name=spec.branch_name,
                branch_class=branch_class,
                input_array=spec.input_array,
                projector=get_projector(branch_class),
            ))

        self._configured = True
        return self.branches

    def _run(self, branch: Branch, graph: EventGraph) -> list[Record]:
        sink: list[Record] = []
        branch.projector(graph, graph.array(branch.input_array), sink, self.options)
        return sink

    def process(self, graph: EventGraph, max_workers: Optional[int] = None) -> EventRecords:
        """Project one event into a fresh record set.

        Branches are independent, so with ``max_workers > 1`` they run on a
        thread pool; the result keeps configuration order either way.
        """
        if not self._configured:
            raise RegistryStateError("branch registry is not configured")

        if max_workers is not None and max_workers > 1 and len(self._branches) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                futures = [pool.submit(self._run, b, graph) for b in self._branches]
                sinks = [f.result() for f in futures]
        else:
            sinks = [self._run(b, graph) for b in self._branches]

        return EventRecords(
            event_number=graph.event_number,
            branches={b.name: sink for b, sink in zip(self._branches, sinks)},
            classes={b.name: b.branch_class.value for b in self._branches},
        )


def build_registry(
    specs: Iterable[BranchSpec | tuple[str, str, str]],
    *,
    options: Optional[ProjectionOptions] = None,
    available_arrays: Optional[Collection[str]] = None,
) -> BranchRegistry:
    registry = BranchRegistry(options=options)
    registry.configure(specs, available_arrays=available_arrays)
    return registry
