"""
Output record schema.

One dataclass per output class. Records hold only scalars, fixed-size
arrays, nested record structures and integer references (candidate unique
ids); they never hold candidates. ``to_dict`` produces plain values suitable
for Arrow and JSON.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Iterator, Optional


def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class Record:
    """Mixin shared by all output records.

    Class attributes:
        class_name: Schema class name written to the branch.
        reference_fields: Fields holding a single unique id.
        reference_list_fields: Fields holding a list of unique ids.
        array_sizes: Fixed lengths of array-valued fields.
    """

    class_name: ClassVar[str] = ""
    reference_fields: ClassVar[tuple[str, ...]] = ()
    reference_list_fields: ClassVar[tuple[str, ...]] = ()
    array_sizes: ClassVar[dict[str, int]] = {}

    def to_dict(self) -> dict:
        return _plain(asdict(self))

    def references(self) -> list[int]:
        """All unique ids this record points to."""
        out = [getattr(self, f) for f in self.reference_fields]
        for f in self.reference_list_fields:
            out.extend(getattr(self, f))
        return out


@dataclass
class GenParticleRecord(Record):
    class_name: ClassVar[str] = "GenParticle"

    unique_id: int = 0
    pid: int = 0
    status: int = 0
    is_pu: int = 0
    m1: int = -1
    m2: int = -1
    d1: int = -1
    d2: int = -1
    charge: int = 0
    mass: float = 0.0
    e: float = 0.0
    px: float = 0.0
    py: float = 0.0
    pz: float = 0.0
    eta: float = 0.0
    phi: float = 0.0
    pt: float = 0.0
    rapidity: float = 0.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    t: float = 0.0


@dataclass
class VertexRecord(Record):
    class_name: ClassVar[str] = "Vertex"

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    t: float = 0.0


@dataclass
class TrackRecord(Record):
    """Reconstructed track.

    ``eta_outer``/``phi_outer`` and the ``*_outer`` coordinates describe the
    track at the outer surface of the tracker; ``eta``/``phi``/``pt`` come
    from the momentum at production and ``x``..``t`` from the originating
    particle's production point.
    """

    class_name: ClassVar[str] = "Track"
    reference_fields: ClassVar[tuple[str, ...]] = ("particle",)
    array_sizes: ClassVar[dict[str, int]] = {"track_parameters": 5, "track_covariance": 15}

    unique_id: int = 0
    pid: int = 0
    charge: int = 0
    eta: float = 0.0
    phi: float = 0.0
    pt: float = 0.0
    eta_outer: float = 0.0
    phi_outer: float = 0.0
    x_outer: float = 0.0
    y_outer: float = 0.0
    z_outer: float = 0.0
    t_outer: float = 0.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    t: float = 0.0
    dxy: float = 0.0
    sdxy: float = 0.0
    xd: float = 0.0
    yd: float = 0.0
    zd: float = 0.0
    track_parameters: list[float] = field(default_factory=list)
    track_covariance: list[float] = field(default_factory=list)
    particle: int = 0


@dataclass
class TowerRecord(Record):
    class_name: ClassVar[str] = "Tower"
    reference_list_fields: ClassVar[tuple[str, ...]] = ("particles",)
    array_sizes: ClassVar[dict[str, int]] = {"edges": 4}

    unique_id: int = 0
    eta: float = 0.0
    phi: float = 0.0
    et: float = 0.0
    e: float = 0.0
    eem: float = 0.0
    ehad: float = 0.0
    edges: list[float] = field(default_factory=list)
    t: float = 0.0
    n_time_hits: int = 0
    particles: list[int] = field(default_factory=list)


@dataclass
class PhotonRecord(Record):
    class_name: ClassVar[str] = "Photon"
    reference_list_fields: ClassVar[tuple[str, ...]] = ("particles",)

    unique_id: int = 0
    eta: float = 0.0
    phi: float = 0.0
    pt: float = 0.0
    e: float = 0.0
    t: float = 0.0
    isolation_var: float = 0.0
    isolation_var_rho_corr: float = 0.0
    sum_pt_charged: float = 0.0
    sum_pt_neutral: float = 0.0
    sum_pt_charged_pu: float = 0.0
    sum_pt: float = 0.0
    ehad_over_eem: float = 0.0
    particles: list[int] = field(default_factory=list)


@dataclass
class ElectronRecord(Record):
    class_name: ClassVar[str] = "Electron"
    reference_fields: ClassVar[tuple[str, ...]] = ("particle",)

    unique_id: int = 0
    eta: float = 0.0
    phi: float = 0.0
    pt: float = 0.0
    t: float = 0.0
    charge: int = 0
    isolation_var: float = 0.0
    isolation_var_rho_corr: float = 0.0
    sum_pt_charged: float = 0.0
    sum_pt_neutral: float = 0.0
    sum_pt_charged_pu: float = 0.0
    sum_pt: float = 0.0
    ehad_over_eem: float = 0.0
    particle: int = 0


@dataclass
class MuonRecord(Record):
    class_name: ClassVar[str] = "Muon"
    reference_fields: ClassVar[tuple[str, ...]] = ("particle",)

    unique_id: int = 0
    eta: float = 0.0
    phi: float = 0.0
    pt: float = 0.0
    t: float = 0.0
    charge: int = 0
    isolation_var: float = 0.0
    isolation_var_rho_corr: float = 0.0
    sum_pt_charged: float = 0.0
    sum_pt_neutral: float = 0.0
    sum_pt_charged_pu: float = 0.0
    sum_pt: float = 0.0
    particle: int = 0


@dataclass
class SecondaryVertexTrackRecord:
    weight: float = 0.0
    d0: float = 0.0
    z0: float = 0.0
    d0err: float = 0.0
    z0err: float = 0.0
    momentum: float = 0.0
    dphi: float = 0.0
    deta: float = 0.0


@dataclass
class SecondaryVertexRecord:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    lxy: float = 0.0
    lsig: float = 0.0
    decay_length_variance: float = 0.0
    n_tracks: int = 0
    e_frac: float = 0.0
    mass: float = 0.0
    config: int = 0
    tracks: list[SecondaryVertexTrackRecord] = field(default_factory=list)


@dataclass
class SecondaryVertexSummaryRecord:
    mass: float = 0.0
    energy_fraction: float = 0.0
    n_vertices: int = 0
    n_two_track_vertices: int = 0
    n_tracks: int = 0
    lxy: float = 0.0
    lsig: float = 0.0
    delta_r: float = 0.0


@dataclass
class TruthVertexRecord:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class JetRecord(Record):
    """Jet with substructure, flavour tagging and vertex-finder inputs.

    ``constituents``, ``subjets`` and ``tracks`` copy the jet's edges as they
    are; ``particles`` is the flattened leaf set. Four-vector valued fields
    (``area`` and the groomed sub-momenta) are ``[px, py, pz, E]`` lists.
    """

    class_name: ClassVar[str] = "Jet"
    reference_list_fields: ClassVar[tuple[str, ...]] = ("constituents", "subjets", "tracks", "particles")
    array_sizes: ClassVar[dict[str, int]] = {
        "area": 4,
        "frac_pt": 5,
        "tau": 5,
        "trimmed_p4": 5,
        "pruned_p4": 5,
        "soft_dropped_p4": 5,
    }

    unique_id: int = 0
    eta: float = 0.0
    phi: float = 0.0
    pt: float = 0.0
    t: float = 0.0
    mass: float = 0.0
    area: list[float] = field(default_factory=list)
    delta_eta: float = 0.0
    delta_phi: float = 0.0
    flavor: int = 0
    flavor_algo: int = 0
    flavor_phys: int = 0
    btag: int = 0
    btag_algo: int = 0
    btag_phys: int = 0
    tau_tag: int = 0
    charge: int = 0
    ehad_over_eem: float = 0.0

    primary_vertex_tracks: list[SecondaryVertexTrackRecord] = field(default_factory=list)
    secondary_vertices: list[SecondaryVertexRecord] = field(default_factory=list)
    hl_secondary_vertex_tracks: list[SecondaryVertexTrackRecord] = field(default_factory=list)
    hl_secondary_vertex: SecondaryVertexSummaryRecord = field(default_factory=SecondaryVertexSummaryRecord)
    ml_secondary_vertex: SecondaryVertexSummaryRecord = field(default_factory=SecondaryVertexSummaryRecord)
    truth_vertices: list[TruthVertexRecord] = field(default_factory=list)

    # high-level tracking inputs
    track2_d0_significance: float = 0.0
    track3_d0_significance: float = 0.0
    track2_z0_significance: float = 0.0
    track3_z0_significance: float = 0.0
    n_tracks_over_d0_threshold: int = 0
    jet_prob: float = 0.0
    jet_width_eta: float = 0.0
    jet_width_phi: float = 0.0

    # pile-up jet id
    n_charged: int = 0
    n_neutrals: int = 0
    beta: float = 0.0
    beta_star: float = 0.0
    mean_sq_delta_r: float = 0.0
    ptd: float = 0.0

    # substructure
    n_subjets_trimmed: int = 0
    n_subjets_pruned: int = 0
    n_subjets_soft_dropped: int = 0
    frac_pt: list[float] = field(default_factory=list)
    tau: list[float] = field(default_factory=list)
    trimmed_p4: list[list[float]] = field(default_factory=list)
    pruned_p4: list[list[float]] = field(default_factory=list)
    soft_dropped_p4: list[list[float]] = field(default_factory=list)

    constituents: list[int] = field(default_factory=list)
    subjets: list[int] = field(default_factory=list)
    tracks: list[int] = field(default_factory=list)
    particles: list[int] = field(default_factory=list)


@dataclass
class MissingETRecord(Record):
    class_name: ClassVar[str] = "MissingET"

    met: float = 0.0
    eta: float = 0.0
    phi: float = 0.0


@dataclass
class ScalarHTRecord(Record):
    class_name: ClassVar[str] = "ScalarHT"

    ht: float = 0.0


@dataclass
class RhoRecord(Record):
    class_name: ClassVar[str] = "Rho"
    array_sizes: ClassVar[dict[str, int]] = {"edges": 2}

    rho: float = 0.0
    edges: list[float] = field(default_factory=list)


@dataclass
class WeightRecord(Record):
    class_name: ClassVar[str] = "Weight"

    weight: float = 0.0


@dataclass
class HectorHitRecord(Record):
    """Hit in a far-forward detector; ``s`` is the distance along the beam line."""

    class_name: ClassVar[str] = "HectorHit"
    reference_fields: ClassVar[tuple[str, ...]] = ("particle",)

    unique_id: int = 0
    e: float = 0.0
    tx: float = 0.0
    ty: float = 0.0
    t: float = 0.0
    x: float = 0.0
    y: float = 0.0
    s: float = 0.0
    particle: int = 0


RECORD_TYPES: dict[str, type] = {
    cls.class_name: cls
    for cls in (
        GenParticleRecord,
        VertexRecord,
        TrackRecord,
        TowerRecord,
        PhotonRecord,
        ElectronRecord,
        MuonRecord,
        JetRecord,
        MissingETRecord,
        ScalarHTRecord,
        RhoRecord,
        WeightRecord,
        HectorHitRecord,
    )
}


@dataclass
class EventRecords:
    """All records projected from one event, keyed by branch name.

    Attributes:
        event_number: Event number of the source graph.
        branches: Branch name -> ordered records.
        classes: Branch name -> schema class name.
    """

    event_number: int = 0
    branches: dict[str, list[Record]] = field(default_factory=dict)
    classes: dict[str, str] = field(default_factory=dict)

    def __getitem__(self, branch: str) -> list[Record]:
        return self.branches[branch]

    def __iter__(self) -> Iterator[str]:
        return iter(self.branches)

    def __len__(self) -> int:
        return len(self.branches)

    def index(self) -> dict[int, tuple[str, int]]:
        """Unique id -> (branch, position) for every identifiable record.

        When several branches hold the same unique id the first one in
        branch order wins.
        """
        out: dict[int, tuple[str, int]] = {}
        for name, records in self.branches.items():
            for i, rec in enumerate(records):
                uid = getattr(rec, "unique_id", 0)
                if uid and uid not in out:
                    out[uid] = (name, i)
        return out

    def resolve(self, uid: int) -> Optional[Record]:
        """The output record a reference points to, or None if it dangles."""
        loc = self.index().get(uid)
        if loc is None:
            return None
        name, i = loc
        return self.branches[name][i]

    def counts(self) -> dict[str, int]:
        return {name: len(records) for name, records in self.branches.items()}

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"event_number": self.event_number}
        for name, records in self.branches.items():
            out[name] = [r.to_dict() for r in records]
        return out


@dataclass
class RecordFile:
    """Records read back from disk.

    Attributes:
        events: One dict per event, as produced by ``EventRecords.to_dict``.
        classes: Branch name -> class name.
        metadata: Provenance and other file-level metadata.
        format_name: Name of the file format (e.g. "parquet", "jsonl").
    """

    events: list[dict] = field(default_factory=list)
    classes: dict[str, str] = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)
    format_name: str = ""

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):
        return iter(self.events)

    def __getitem__(self, idx):
        return self.events[idx]

    @property
    def branch_names(self) -> list[str]:
        return list(self.classes)
