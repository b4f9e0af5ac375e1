"""
Candidate graph data model for hepbranch.

Every physics object produced by the simulation chain (generated particle,
track, calorimeter tower, reconstructed lepton, jet, event summary) is a
``Candidate``. Candidates reference each other through integer unique ids
into the per-event ``EventGraph`` arena; a candidate may be a child of
several parents (a track belongs both to its particle lineage and to the
constituents of a jet), so the graph is a DAG rather than a tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping, Optional

from .errors import GraphShapeError, UnresolvedArrayError
from .kinematics import FourVector

N_TRACK_PARAMETERS = 5
N_TRACK_COVARIANCE = 15
N_SUBSTRUCTURE = 5


class TrackParam:
    """Indices into ``Candidate.track_parameters`` (perigee convention)."""

    D0 = 0
    Z0 = 1
    PHI = 2
    THETA = 3
    QOVERP = 4


@dataclass(frozen=True)
class SecondaryVertexTrack:
    """A track used by a vertex finder, expressed relative to the jet axis."""

    weight: float = 0.0
    d0: float = 0.0
    z0: float = 0.0
    d0err: float = 0.0
    z0err: float = 0.0
    momentum: float = 0.0
    dphi: float = 0.0
    deta: float = 0.0


@dataclass(frozen=True)
class SecondaryVertex:
    """A reconstructed secondary vertex inside a jet.

    Attributes:
        position: Vertex position (x, y, z; t unused).
        lxy: Transverse decay length.
        lsig: Decay length significance.
        decay_length_variance: Variance of the decay length.
        n_tracks: Number of tracks attached to the vertex.
        e_frac: Energy fraction carried by the vertex tracks.
        mass: Invariant mass of the vertex tracks.
        config: Vertex-finder configuration tag.
        tracks: Tracks along the jet axis attached to this vertex.
    """

    position: FourVector = field(default_factory=FourVector)
    lxy: float = 0.0
    lsig: float = 0.0
    decay_length_variance: float = 0.0
    n_tracks: int = 0
    e_frac: float = 0.0
    mass: float = 0.0
    config: int = 0
    tracks: tuple[SecondaryVertexTrack, ...] = ()


@dataclass(frozen=True)
class SecondaryVertexSummary:
    """Jet-level summary of the secondary-vertex finder output."""

    mass: float = 0.0
    energy_fraction: float = 0.0
    n_vertices: int = 0
    n_two_track_vertices: int = 0
    n_tracks: int = 0
    lxy: float = 0.0
    lsig: float = 0.0
    delta_r: float = 0.0


@dataclass(frozen=True)
class HighLevelTracking:
    """Impact-parameter based tagging inputs computed from jet tracks."""

    track2_d0_significance: float = 0.0
    track3_d0_significance: float = 0.0
    track2_z0_significance: float = 0.0
    track3_z0_significance: float = 0.0
    n_tracks_over_d0_threshold: int = 0
    jet_prob: float = 0.0
    jet_width_eta: float = 0.0
    jet_width_phi: float = 0.0


@dataclass(frozen=True)
class TruthVertex:
    """Generator-level decay vertex matched to a jet."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


def _zeros(n: int):
    return lambda: (0.0,) * n


@dataclass
class Candidate:
    """A node of the per-event provenance graph.

    Only the fields relevant to a candidate's class are meaningful; the rest
    keep their defaults.

    Attributes:
        unique_id: Handle assigned by ``EventGraph.add`` (0 = unassigned).
        momentum: Four-momentum (px, py, pz, E) in GeV.
        position: Four-position (x, y, z in mm, t in mm/c).
        children: Unique ids this candidate was built from.
        subjets: Unique ids of subjets (jets only).
        tracks: Unique ids of tagging tracks (jets only).
    """

    momentum: FourVector = field(default_factory=FourVector)
    position: FourVector = field(default_factory=FourVector)
    unique_id: int = 0

    children: tuple[int, ...] = ()
    subjets: tuple[int, ...] = ()
    tracks: tuple[int, ...] = ()

    # generated particle
    pid: int = 0
    status: int = 0
    is_pu: int = 0
    m1: int = -1
    m2: int = -1
    d1: int = -1
    d2: int = -1
    charge: int = 0
    mass: float = 0.0

    # track
    track_parameters: tuple[float, ...] = field(default_factory=_zeros(N_TRACK_PARAMETERS))
    track_covariance: tuple[float, ...] = field(default_factory=_zeros(N_TRACK_COVARIANCE))
    dxy: float = 0.0
    sdxy: float = 0.0
    xd: float = 0.0
    yd: float = 0.0
    zd: float = 0.0

    # calorimeter
    eem: float = 0.0
    ehad: float = 0.0
    edges: tuple[float, ...] = field(default_factory=_zeros(4))
    n_time_hits: int = 0

    # isolation
    isolation_var: float = 0.0
    isolation_var_rho_corr: float = 0.0
    sum_pt_charged: float = 0.0
    sum_pt_neutral: float = 0.0
    sum_pt_charged_pu: float = 0.0
    sum_pt: float = 0.0

    # jet
    area: FourVector = field(default_factory=FourVector)
    delta_eta: float = 0.0
    delta_phi: float = 0.0
    flavor: int = 0
    flavor_algo: int = 0
    flavor_phys: int = 0
    btag: int = 0
    btag_algo: int = 0
    btag_phys: int = 0
    tau_tag: int = 0

    n_charged: int = 0
    n_neutrals: int = 0
    beta: float = 0.0
    beta_star: float = 0.0
    mean_sq_delta_r: float = 0.0
    ptd: float = 0.0

    n_subjets_trimmed: int = 0
    n_subjets_pruned: int = 0
    n_subjets_soft_dropped: int = 0
    frac_pt: tuple[float, ...] = field(default_factory=_zeros(N_SUBSTRUCTURE))
    tau: tuple[float, ...] = field(default_factory=_zeros(N_SUBSTRUCTURE))
    trimmed_p4: tuple[FourVector, ...] = field(default_factory=lambda: (FourVector(),) * N_SUBSTRUCTURE)
    pruned_p4: tuple[FourVector, ...] = field(default_factory=lambda: (FourVector(),) * N_SUBSTRUCTURE)
    soft_dropped_p4: tuple[FourVector, ...] = field(default_factory=lambda: (FourVector(),) * N_SUBSTRUCTURE)

    # jet vertex finding
    primary_vertex_tracks: tuple[SecondaryVertexTrack, ...] = ()
    secondary_vertices: tuple[SecondaryVertex, ...] = ()
    hl_secondary_vertex_tracks: tuple[SecondaryVertexTrack, ...] = ()
    hl_secondary_vertex: SecondaryVertexSummary = field(default_factory=SecondaryVertexSummary)
    ml_secondary_vertex: SecondaryVertexSummary = field(default_factory=SecondaryVertexSummary)
    hl_tracking: HighLevelTracking = field(default_factory=HighLevelTracking)
    truth_vertices: tuple[TruthVertex, ...] = ()

    @property
    def pt(self) -> float:
        """Transverse momentum."""
        return self.momentum.pt

    @property
    def is_leaf(self) -> bool:
        return not self.children


class EventGraph:
    """Arena of the candidates of one event.

    Candidates live in a dense list; ``unique_id == index + 1`` so that 0
    can serve as the null handle. Named arrays hold ordered unique ids and
    are what the branch registry binds its projectors to.
    """

    def __init__(self, event_number: int = 0):
        self.event_number = event_number
        self._candidates: list[Candidate] = []
        self._arrays: dict[str, tuple[int, ...]] = {}

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self._candidates)

    def __getitem__(self, uid: int) -> Candidate:
        return self.get(uid)

    def __contains__(self, uid: object) -> bool:
        return isinstance(uid, int) and 1 <= uid <= len(self._candidates)

    def add(self, candidate: Candidate) -> int:
        """Append a candidate and assign its unique id."""
        uid = len(self._candidates) + 1
        if candidate.unique_id and candidate.unique_id != uid:
            raise GraphShapeError(
                f"candidate carries unique id {candidate.unique_id}, expected {uid}"
            )
        candidate.unique_id = uid
        self._candidates.append(candidate)
        return uid

    def extend(self, candidates: Iterable[Candidate]) -> list[int]:
        return [self.add(c) for c in candidates]

    def get(self, uid: int) -> Candidate:
        if uid not in self:
            raise GraphShapeError(f"dangling candidate reference {uid!r} in event {self.event_number}")
        return self._candidates[uid - 1]

    def children_of(self, candidate: Candidate) -> list[Candidate]:
        return [self.get(uid) for uid in candidate.children]

    def first_child(self, candidate: Candidate) -> Candidate:
        """The first child, e.g. the originating particle of a track."""
        if not candidate.children:
            raise GraphShapeError(
                f"candidate {candidate.unique_id} has no children; an originating particle is required"
            )
        return self.get(candidate.children[0])

    def set_array(self, name: str, uids: Iterable[int]) -> None:
        uids = tuple(int(u) for u in uids)
        for uid in uids:
            if uid not in self:
                raise GraphShapeError(f"array '{name}' references unknown candidate {uid}")
        self._arrays[name] = uids

    def add_array(self, name: str, candidates: Iterable[Candidate]) -> None:
        """Add candidates (if not yet in the arena) and register them as an array."""
        uids = []
        for c in candidates:
            uids.append(c.unique_id if c.unique_id else self.add(c))
        self.set_array(name, uids)

    def array(self, name: str) -> list[Candidate]:
        if name not in self._arrays:
            raise UnresolvedArrayError(name)
        return [self._candidates[uid - 1] for uid in self._arrays[name]]

    def array_ids(self, name: str) -> tuple[int, ...]:
        if name not in self._arrays:
            raise UnresolvedArrayError(name)
        return self._arrays[name]

    @property
    def arrays(self) -> Mapping[str, tuple[int, ...]]:
        return dict(self._arrays)

    def array_names(self) -> list[str]:
        return list(self._arrays)

    def find(self, uid: int) -> Optional[Candidate]:
        return self._candidates[uid - 1] if uid in self else None
