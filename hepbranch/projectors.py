"""
Per-class record projectors.

Each projector takes the candidates of one input array and appends exactly
one record per candidate to a sink (singleton classes append at most one).
Final analysis objects (photons, electrons, muons, jets) are stably sorted
with ``ProjectionOptions.sort_key`` first; everything else keeps input
order. Projectors only read the graph.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, MutableSequence, Sequence

from .errors import GraphShapeError, UnknownBranchClassError
from .flatten import fill_particles
from .kinematics import (
    FourVector,
    convert_time,
    eta_or_sentinel,
    ratio_or_sentinel,
    rapidity_or_sentinel,
)
from .models import (
    Candidate,
    EventGraph,
    HighLevelTracking,
    SecondaryVertex,
    SecondaryVertexSummary,
    SecondaryVertexTrack,
    TrackParam,
    TruthVertex,
)
from .records import (
    ElectronRecord,
    GenParticleRecord,
    HectorHitRecord,
    JetRecord,
    MissingETRecord,
    MuonRecord,
    PhotonRecord,
    Record,
    RhoRecord,
    ScalarHTRecord,
    SecondaryVertexRecord,
    SecondaryVertexSummaryRecord,
    SecondaryVertexTrackRecord,
    TowerRecord,
    TrackRecord,
    TruthVertexRecord,
    VertexRecord,
    WeightRecord,
)

Sink = MutableSequence[Record]


def descending_pt(candidate: Candidate) -> float:
    return -candidate.momentum.pt


@dataclass(frozen=True)
class ProjectionOptions:
    """Settings shared by all projectors.

    Attributes:
        sort_key: Key for the stable sort applied to photons, electrons,
            muons and jets. Defaults to descending transverse momentum.
        check_track_parameters: Verify that each track's impact parameters
            agree with its d0/z0 track parameters.
        track_parameter_tolerance: Relative tolerance for that check.
    """

    sort_key: Callable[[Candidate], float] = descending_pt
    check_track_parameters: bool = False
    track_parameter_tolerance: float = 1e-9


DEFAULT_OPTIONS = ProjectionOptions()


class BranchClass(str, Enum):
    """Output record classes known to the projector table."""

    GEN_PARTICLE = "GenParticle"
    VERTEX = "Vertex"
    TRACK = "Track"
    TOWER = "Tower"
    PHOTON = "Photon"
    ELECTRON = "Electron"
    MUON = "Muon"
    JET = "Jet"
    MISSING_ET = "MissingET"
    SCALAR_HT = "ScalarHT"
    RHO = "Rho"
    WEIGHT = "Weight"
    HECTOR_HIT = "HectorHit"

    @classmethod
    def from_name(cls, name: str) -> "BranchClass":
        try:
            return cls(name)
        except ValueError:
            raise UnknownBranchClassError(name) from None


def _sorted(candidates: Iterable[Candidate], options: ProjectionOptions) -> list[Candidate]:
    # sorted() is stable: ties keep input order
    return sorted(candidates, key=options.sort_key)


def _values_match(a: float, b: float, tolerance: float) -> bool:
    diff = a - b
    if abs(diff) < 1e-15:
        return True
    if a == 0.0:
        return False
    return abs(diff / a) <= tolerance


def _check_track_parameters(candidate: Candidate, tolerance: float) -> None:
    z0 = candidate.track_parameters[TrackParam.Z0]
    d0 = candidate.track_parameters[TrackParam.D0]
    if not _values_match(candidate.zd, z0, tolerance):
        raise GraphShapeError(f"track {candidate.unique_id}: zd={candidate.zd} != z0={z0}")
    if not _values_match(candidate.dxy, d0, tolerance):
        raise GraphShapeError(f"track {candidate.unique_id}: dxy={candidate.dxy} != d0={d0}")


def _fixed(values: Sequence[float], size: int, name: str, uid: int) -> list[float]:
    if len(values) != size:
        raise GraphShapeError(f"candidate {uid}: {name} has {len(values)} entries, expected {size}")
    return [float(v) for v in values]


def _fixed_vectors(vectors: Sequence[FourVector], size: int, name: str, uid: int) -> list[list[float]]:
    if len(vectors) != size:
        raise GraphShapeError(f"candidate {uid}: {name} has {len(vectors)} entries, expected {size}")
    return [list(v.as_tuple()) for v in vectors]


def project_particles(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                      options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in candidates:
        momentum = candidate.momentum
        position = candidate.position
        sink.append(GenParticleRecord(
            unique_id=candidate.unique_id,
            pid=candidate.pid,
            status=candidate.status,
            is_pu=candidate.is_pu,
            m1=candidate.m1,
            m2=candidate.m2,
            d1=candidate.d1,
            d2=candidate.d2,
            charge=candidate.charge,
            mass=candidate.mass,
            e=momentum.e,
            px=momentum.px,
            py=momentum.py,
            pz=momentum.pz,
            eta=eta_or_sentinel(momentum),
            phi=momentum.phi,
            pt=momentum.pt,
            rapidity=rapidity_or_sentinel(momentum),
            x=position.x,
            y=position.y,
            z=position.z,
            t=convert_time(position.t),
        ))


def project_vertices(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                     options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in candidates:
        position = candidate.position
        sink.append(VertexRecord(
            x=position.x,
            y=position.y,
            z=position.z,
            t=convert_time(position.t),
        ))


def project_tracks(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                   options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in candidates:
        if options.check_track_parameters:
            _check_track_parameters(candidate, options.track_parameter_tolerance)

        # direction at the outer tracker surface
        position = candidate.position
        # direction at production
        momentum = candidate.momentum
        particle = graph.first_child(candidate)
        initial = particle.position

        sink.append(TrackRecord(
            unique_id=candidate.unique_id,
            pid=candidate.pid,
            charge=candidate.charge,
            eta=eta_or_sentinel(momentum),
            phi=momentum.phi,
            pt=momentum.pt,
            eta_outer=eta_or_sentinel(position),
            phi_outer=position.phi,
            x_outer=position.x,
            y_outer=position.y,
            z_outer=position.z,
            t_outer=convert_time(position.t),
            x=initial.x,
            y=initial.y,
            z=initial.z,
            t=convert_time(initial.t),
            dxy=candidate.dxy,
            sdxy=candidate.sdxy,
            xd=candidate.xd,
            yd=candidate.yd,
            zd=candidate.zd,
            track_parameters=_fixed(candidate.track_parameters, 5, "track_parameters", candidate.unique_id),
            track_covariance=_fixed(candidate.track_covariance, 15, "track_covariance", candidate.unique_id),
            particle=particle.unique_id,
        ))


def project_towers(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                   options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in candidates:
        momentum = candidate.momentum
        sink.append(TowerRecord(
            unique_id=candidate.unique_id,
            eta=eta_or_sentinel(momentum),
            phi=momentum.phi,
            et=momentum.pt,
            e=momentum.e,
            eem=candidate.eem,
            ehad=candidate.ehad,
            edges=_fixed(candidate.edges, 4, "edges", candidate.unique_id),
            t=convert_time(candidate.position.t),
            n_time_hits=candidate.n_time_hits,
            particles=fill_particles(graph, candidate),
        ))


def _isolation(candidate: Candidate) -> dict:
    return {
        "isolation_var": candidate.isolation_var,
        "isolation_var_rho_corr": candidate.isolation_var_rho_corr,
        "sum_pt_charged": candidate.sum_pt_charged,
        "sum_pt_neutral": candidate.sum_pt_neutral,
        "sum_pt_charged_pu": candidate.sum_pt_charged_pu,
        "sum_pt": candidate.sum_pt,
    }


def project_photons(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                    options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in _sorted(candidates, options):
        momentum = candidate.momentum
        sink.append(PhotonRecord(
            unique_id=candidate.unique_id,
            eta=eta_or_sentinel(momentum),
            phi=momentum.phi,
            pt=momentum.pt,
            e=momentum.e,
            t=convert_time(candidate.position.t),
            ehad_over_eem=ratio_or_sentinel(candidate.ehad, candidate.eem),
            particles=fill_particles(graph, candidate),
            **_isolation(candidate),
        ))


def project_electrons(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                      options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in _sorted(candidates, options):
        momentum = candidate.momentum
        sink.append(ElectronRecord(
            unique_id=candidate.unique_id,
            eta=eta_or_sentinel(momentum),
            phi=momentum.phi,
            pt=momentum.pt,
            t=convert_time(candidate.position.t),
            charge=candidate.charge,
            # no calorimeter split is tracked for electrons
            ehad_over_eem=0.0,
            particle=graph.first_child(candidate).unique_id,
            **_isolation(candidate),
        ))


def project_muons(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                  options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in _sorted(candidates, options):
        momentum = candidate.momentum
        sink.append(MuonRecord(
            unique_id=candidate.unique_id,
            eta=eta_or_sentinel(momentum),
            phi=momentum.phi,
            pt=momentum.pt,
            t=convert_time(candidate.position.t),
            charge=candidate.charge,
            particle=graph.first_child(candidate).unique_id,
            **_isolation(candidate),
        ))


def _vertex_track(track: SecondaryVertexTrack) -> SecondaryVertexTrackRecord:
    return SecondaryVertexTrackRecord(
        weight=track.weight,
        d0=track.d0,
        z0=track.z0,
        d0err=track.d0err,
        z0err=track.z0err,
        momentum=track.momentum,
        dphi=track.dphi,
        deta=track.deta,
    )


def _secondary_vertex(vertex: SecondaryVertex) -> SecondaryVertexRecord:
    return SecondaryVertexRecord(
        x=vertex.position.x,
        y=vertex.position.y,
        z=vertex.position.z,
        lxy=vertex.lxy,
        lsig=vertex.lsig,
        decay_length_variance=vertex.decay_length_variance,
        n_tracks=vertex.n_tracks,
        e_frac=vertex.e_frac,
        mass=vertex.mass,
        config=vertex.config,
        tracks=[_vertex_track(t) for t in vertex.tracks],
    )


def _vertex_summary(summary: SecondaryVertexSummary) -> SecondaryVertexSummaryRecord:
    return SecondaryVertexSummaryRecord(
        mass=summary.mass,
        energy_fraction=summary.energy_fraction,
        n_vertices=summary.n_vertices,
        n_two_track_vertices=summary.n_two_track_vertices,
        n_tracks=summary.n_tracks,
        lxy=summary.lxy,
        lsig=summary.lsig,
        delta_r=summary.delta_r,
    )


def _truth_vertex(vertex: TruthVertex) -> TruthVertexRecord:
    return TruthVertexRecord(x=vertex.x, y=vertex.y, z=vertex.z)


def _tracking(hl: HighLevelTracking) -> dict:
    return {
        "track2_d0_significance": hl.track2_d0_significance,
        "track3_d0_significance": hl.track3_d0_significance,
        "track2_z0_significance": hl.track2_z0_significance,
        "track3_z0_significance": hl.track3_z0_significance,
        "n_tracks_over_d0_threshold": hl.n_tracks_over_d0_threshold,
        "jet_prob": hl.jet_prob,
        "jet_width_eta": hl.jet_width_eta,
        "jet_width_phi": hl.jet_width_phi,
    }


def project_jets(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                 options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in _sorted(candidates, options):
        momentum = candidate.momentum
        uid = candidate.unique_id

        # calorimeter split summed over direct constituents, not leaves
        ecal_energy = 0.0
        hcal_energy = 0.0
        constituents = []
        for constituent in graph.children_of(candidate):
            constituents.append(constituent.unique_id)
            ecal_energy += constituent.eem
            hcal_energy += constituent.ehad

        sink.append(JetRecord(
            unique_id=uid,
            eta=eta_or_sentinel(momentum),
            phi=momentum.phi,
            pt=momentum.pt,
            t=convert_time(candidate.position.t),
            mass=momentum.mass,
            area=list(candidate.area.as_tuple()),
            delta_eta=candidate.delta_eta,
            delta_phi=candidate.delta_phi,
            flavor=candidate.flavor,
            flavor_algo=candidate.flavor_algo,
            flavor_phys=candidate.flavor_phys,
            btag=candidate.btag,
            btag_algo=candidate.btag_algo,
            btag_phys=candidate.btag_phys,
            tau_tag=candidate.tau_tag,
            charge=candidate.charge,
            ehad_over_eem=ratio_or_sentinel(hcal_energy, ecal_energy),
            primary_vertex_tracks=[_vertex_track(t) for t in candidate.primary_vertex_tracks],
            secondary_vertices=[_secondary_vertex(v) for v in candidate.secondary_vertices],
            hl_secondary_vertex_tracks=[_vertex_track(t) for t in candidate.hl_secondary_vertex_tracks],
            hl_secondary_vertex=_vertex_summary(candidate.hl_secondary_vertex),
            ml_secondary_vertex=_vertex_summary(candidate.ml_secondary_vertex),
            truth_vertices=[_truth_vertex(v) for v in candidate.truth_vertices],
            n_charged=candidate.n_charged,
            n_neutrals=candidate.n_neutrals,
            beta=candidate.beta,
            beta_star=candidate.beta_star,
            mean_sq_delta_r=candidate.mean_sq_delta_r,
            ptd=candidate.ptd,
            n_subjets_trimmed=candidate.n_subjets_trimmed,
            n_subjets_pruned=candidate.n_subjets_pruned,
            n_subjets_soft_dropped=candidate.n_subjets_soft_dropped,
            frac_pt=_fixed(candidate.frac_pt, 5, "frac_pt", uid),
            tau=_fixed(candidate.tau, 5, "tau", uid),
            trimmed_p4=_fixed_vectors(candidate.trimmed_p4, 5, "trimmed_p4", uid),
            pruned_p4=_fixed_vectors(candidate.pruned_p4, 5, "pruned_p4", uid),
            soft_dropped_p4=_fixed_vectors(candidate.soft_dropped_p4, 5, "soft_dropped_p4", uid),
            constituents=constituents,
            subjets=list(candidate.subjets),
            tracks=list(candidate.tracks),
            particles=fill_particles(graph, candidate),
            **_tracking(candidate.hl_tracking),
        ))


def project_missing_et(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                       options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    if not candidates:
        return
    momentum = candidates[0].momentum
    # missing momentum points opposite to the visible sum
    opposite = -momentum
    sink.append(MissingETRecord(
        met=momentum.pt,
        eta=eta_or_sentinel(opposite),
        phi=opposite.phi,
    ))


def project_scalar_ht(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                      options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    if not candidates:
        return
    sink.append(ScalarHTRecord(ht=candidates[0].momentum.pt))


def project_rho(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in candidates:
        sink.append(RhoRecord(
            rho=candidate.momentum.e,
            edges=[float(candidate.edges[0]), float(candidate.edges[1])],
        ))


def project_weight(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                   options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    if not candidates:
        return
    sink.append(WeightRecord(weight=candidates[0].momentum.e))


def project_hector_hits(graph: EventGraph, candidates: Sequence[Candidate], sink: Sink,
                        options: ProjectionOptions = DEFAULT_OPTIONS) -> None:
    for candidate in candidates:
        momentum = candidate.momentum
        position = candidate.position
        sink.append(HectorHitRecord(
            unique_id=candidate.unique_id,
            e=momentum.e,
            tx=momentum.px,
            ty=momentum.py,
            t=position.t,
            x=position.x,
            y=position.y,
            s=position.z,
            particle=graph.first_child(candidate).unique_id,
        ))


Projector = Callable[[EventGraph, Sequence[Candidate], Sink, ProjectionOptions], None]

PROJECTORS: dict[BranchClass, Projector] = {
    BranchClass.GEN_PARTICLE: project_particles,
    BranchClass.VERTEX: project_vertices,
    BranchClass.TRACK: project_tracks,
    BranchClass.TOWER: project_towers,
    BranchClass.PHOTON: project_photons,
    BranchClass.ELECTRON: project_electrons,
    BranchClass.MUON: project_muons,
    BranchClass.JET: project_jets,
    BranchClass.MISSING_ET: project_missing_et,
    BranchClass.SCALAR_HT: project_scalar_ht,
    BranchClass.RHO: project_rho,
    BranchClass.WEIGHT: project_weight,
    BranchClass.HECTOR_HIT: project_hector_hits,
}

# Classes whose input is stably sorted before projection.
SORTED_CLASSES = frozenset({BranchClass.PHOTON, BranchClass.ELECTRON, BranchClass.MUON, BranchClass.JET})


def get_projector(branch_class: BranchClass | str) -> Projector:
    if not isinstance(branch_class, BranchClass):
        branch_class = BranchClass.from_name(branch_class)
    return PROJECTORS[branch_class]
