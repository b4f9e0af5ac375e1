import math

import pytest

from hepbranch.errors import GraphShapeError, UnknownBranchClassError
from hepbranch.kinematics import SENTINEL, FourVector
from hepbranch.models import Candidate, EventGraph
from hepbranch.projectors import (
    PROJECTORS,
    SORTED_CLASSES,
    BranchClass,
    ProjectionOptions,
    get_projector,
    project_electrons,
    project_hector_hits,
    project_jets,
    project_missing_et,
    project_muons,
    project_particles,
    project_photons,
    project_rho,
    project_scalar_ht,
    project_towers,
    project_tracks,
    project_vertices,
    project_weight,
)

C = 2.99792458e8


def _project(fn, graph, array, options=None):
    sink = []
    if options is None:
        fn(graph, graph.array(array), sink)
    else:
        fn(graph, graph.array(array), sink, options)
    return sink


def test_every_class_has_a_projector():
    assert set(PROJECTORS) == set(BranchClass)
    assert SORTED_CLASSES == {BranchClass.PHOTON, BranchClass.ELECTRON, BranchClass.MUON, BranchClass.JET}


def test_from_name():
    assert BranchClass.from_name("GenParticle") is BranchClass.GEN_PARTICLE
    assert get_projector("Jet") is project_jets
    with pytest.raises(UnknownBranchClassError) as exc:
        BranchClass.from_name("Kaon")
    assert "Kaon" in str(exc.value)


def test_particles(sample_graph):
    recs = _project(project_particles, sample_graph, "Delphes/allParticles")
    assert [r.unique_id for r in recs] == [1, 2, 3, 4]

    e = recs[0]
    assert e.pid == 11
    assert e.charge == -1
    assert e.m1 == 0 and e.m2 == -1
    assert e.px == 10.0 and e.pz == 5.0
    assert e.pt == pytest.approx(10.0)
    assert e.t == 1000.0 * 1.0e-3 / C
    assert e.eta == pytest.approx(math.asinh(0.5))

    beam = recs[3]
    assert beam.eta == SENTINEL
    assert beam.rapidity == SENTINEL
    assert beam.pt == 0.0


def test_vertices(sample_graph):
    (v,) = _project(project_vertices, sample_graph, "VertexFinder/vertices")
    assert (v.x, v.y, v.z) == (0.1, 0.2, 0.3)
    assert v.t == 3.0 * 1.0e-3 / C


def test_tracks(sample_graph):
    recs = _project(project_tracks, sample_graph, "TrackMerger/tracks")
    assert [r.unique_id for r in recs] == [5, 6]

    trk = recs[0]
    assert trk.particle == 1
    # production point comes from the originating particle
    assert (trk.x, trk.y, trk.z) == (1.0, 2.0, 3.0)
    assert trk.t == 1000.0 * 1.0e-3 / C
    # outer surface comes from the track itself
    assert (trk.x_outer, trk.y_outer, trk.z_outer) == (1000.0, 50.0, 480.0)
    assert trk.t_outer == 3500.0 * 1.0e-3 / C
    assert trk.eta_outer == pytest.approx(FourVector(1000.0, 50.0, 480.0, 0.0).eta)
    assert trk.phi_outer == pytest.approx(math.atan2(50.0, 1000.0))
    assert trk.pt == pytest.approx(10.0)
    assert trk.track_parameters == [0.01, 0.5, 0.0, 1.1, -0.09]
    assert trk.track_covariance == [float(i) for i in range(15)]
    assert trk.dxy == 0.01 and trk.zd == 0.5


def test_track_production_point_example():
    g = EventGraph()
    p = g.add(Candidate(position=FourVector(1.0, 2.0, 3.0, 1000.0)))
    g.add(Candidate(children=(p,), momentum=FourVector(1.0, 0.0, 0.0, 1.0)))
    g.set_array("tracks", [2])
    (trk,) = _project(project_tracks, g, "tracks")
    assert (trk.x, trk.y, trk.z) == (1.0, 2.0, 3.0)
    assert trk.t == 1000.0 * 1.0e-3 / 2.99792458e8
    assert trk.particle == p


def test_track_without_particle_raises():
    g = EventGraph()
    g.add(Candidate())
    g.set_array("tracks", [1])
    with pytest.raises(GraphShapeError):
        _project(project_tracks, g, "tracks")


def test_track_parameter_check(sample_graph):
    opts = ProjectionOptions(check_track_parameters=True)
    assert len(_project(project_tracks, sample_graph, "TrackMerger/tracks", opts)) == 2

    g = EventGraph()
    p = g.add(Candidate())
    g.add(Candidate(children=(p,), zd=0.3, track_parameters=(0.0, 0.5, 0.0, 0.0, 0.0)))
    g.set_array("tracks", [2])
    # off by default
    assert len(_project(project_tracks, g, "tracks")) == 1
    with pytest.raises(GraphShapeError):
        _project(project_tracks, g, "tracks", opts)


def test_towers(sample_graph):
    recs = _project(project_towers, sample_graph, "Calorimeter/towers")
    assert [r.unique_id for r in recs] == [7, 8]
    t7, t8 = recs
    assert t7.particles == [1, 2]
    assert t8.particles == [3]
    assert t7.eem == 4.0 and t7.ehad == 6.0
    assert t7.edges == [0.3, 0.4, 0.0, 0.1]
    assert t7.et == pytest.approx(math.hypot(13.0, 4.0))
    assert t7.n_time_hits == 2
    assert t7.t == 5000.0 * 1.0e-3 / C


def test_photons(sample_graph):
    (ph,) = _project(project_photons, sample_graph, "UniqueObjectFinder/photons")
    assert ph.unique_id == 10
    assert ph.ehad_over_eem == pytest.approx(0.25)
    assert ph.particles == [3]
    assert ph.isolation_var == 0.01


def test_photon_without_em_energy():
    g = EventGraph()
    g.add(Candidate(eem=0.0, ehad=3.0))
    g.set_array("photons", [1])
    (ph,) = _project(project_photons, g, "photons")
    assert ph.ehad_over_eem == SENTINEL
    assert ph.particles == []


def test_electrons(sample_graph):
    (el,) = _project(project_electrons, sample_graph, "UniqueObjectFinder/electrons")
    assert el.unique_id == 9
    assert el.particle == 1
    assert el.charge == -1
    assert el.ehad_over_eem == 0.0
    assert el.isolation_var == 0.05
    assert el.sum_pt_charged == 0.3
    assert el.sum_pt == 0.5


def test_muons(sample_graph):
    (mu,) = _project(project_muons, sample_graph, "UniqueObjectFinder/muons")
    assert mu.unique_id == 13
    assert mu.particle == 2
    assert mu.charge == 1
    assert mu.sum_pt_neutral == 0.2


def test_jets_sorted_by_pt(sample_graph):
    recs = _project(project_jets, sample_graph, "UniqueObjectFinder/jets")
    assert [r.unique_id for r in recs] == [11, 12]
    assert recs[0].pt == pytest.approx(50.0)
    assert recs[1].pt == pytest.approx(20.0)


def test_jet_fields(sample_graph):
    jet, sub = _project(project_jets, sample_graph, "UniqueObjectFinder/jets")
    assert jet.constituents == [7, 8]
    assert jet.subjets == [12]
    assert jet.tracks == [5, 6]
    assert jet.particles == [1, 2, 3]
    # summed over towers 7 and 8
    assert jet.ehad_over_eem == pytest.approx(6.0 / 12.0)
    assert jet.mass == pytest.approx(math.sqrt(52.0**2 - 40.0**2 - 30.0**2 - 10.0**2))
    assert jet.area == [0.1, 0.1, 0.0, 0.5]
    assert jet.frac_pt == [0.7, 0.3, 0.0, 0.0, 0.0]
    assert jet.tau == [0.5, 0.3, 0.2, 0.1, 0.05]
    assert jet.trimmed_p4[0] == [40.0, 30.0, 10.0, 51.0]
    assert len(jet.pruned_p4) == 5
    assert jet.flavor == 5 and jet.flavor_phys == 4 and jet.btag == 1
    assert jet.n_charged == 2 and jet.ptd == 0.6
    assert jet.track2_d0_significance == 3.5
    assert jet.jet_prob == 0.01

    (sv,) = jet.secondary_vertices
    assert (sv.x, sv.y, sv.z) == (1.0, 1.5, 0.5)
    assert [t.weight for t in sv.tracks] == [0.9, 0.8]
    assert jet.primary_vertex_tracks[0].z0 == 0.02
    assert jet.hl_secondary_vertex.n_tracks == 2
    assert jet.ml_secondary_vertex.n_two_track_vertices == 1
    assert jet.truth_vertices[0].x == 1.1

    # track-only jet: no calorimeter energy
    assert sub.constituents == [6]
    assert sub.particles == [2]
    assert sub.ehad_over_eem == SENTINEL


def test_jet_hadronic_only_gets_sentinel():
    g = EventGraph()
    p = g.add(Candidate())
    tower = g.add(Candidate(children=(p,), eem=0.0, ehad=5.0))
    g.add(Candidate(children=(tower,), momentum=FourVector(5.0, 0.0, 0.0, 5.0)))
    g.set_array("jets", [3])
    (jet,) = _project(project_jets, g, "jets")
    assert jet.ehad_over_eem == SENTINEL
    assert jet.ehad_over_eem == 999.9


@pytest.mark.parametrize("field,value", [
    ("tau", (0.1, 0.2)),
    ("frac_pt", (1.0,) * 6),
    ("trimmed_p4", (FourVector(),) * 2),
    ("pruned_p4", ()),
    ("soft_dropped_p4", (FourVector(),) * 7),
])
def test_jet_bad_substructure_raises(field, value):
    g = EventGraph()
    g.add(Candidate(**{field: value}))
    g.set_array("jets", [1])
    with pytest.raises(GraphShapeError, match=field):
        _project(project_jets, g, "jets")


def test_sort_is_stable():
    g = EventGraph()
    g.extend([
        Candidate(momentum=FourVector(10.0, 0.0, 0.0, 10.0)),
        Candidate(momentum=FourVector(0.0, 30.0, 0.0, 30.0)),
        Candidate(momentum=FourVector(0.0, 10.0, 0.0, 10.0)),
        Candidate(momentum=FourVector(20.0, 0.0, 0.0, 20.0)),
    ])
    g.set_array("objs", [1, 2, 3, 4])
    recs = _project(project_photons, g, "objs")
    # 1 and 3 tie at pt 10 and keep input order
    assert [r.unique_id for r in recs] == [2, 4, 1, 3]


def test_sort_key_is_configurable():
    g = EventGraph()
    g.extend([
        Candidate(momentum=FourVector(10.0, 0.0, 0.0, 10.0)),
        Candidate(momentum=FourVector(30.0, 0.0, 0.0, 30.0)),
    ])
    g.set_array("objs", [1, 2])
    opts = ProjectionOptions(sort_key=lambda c: c.momentum.pt)
    recs = _project(project_photons, g, "objs", opts)
    assert [r.unique_id for r in recs] == [1, 2]


def test_unsorted_classes_keep_order(sample_graph):
    sample_graph.set_array("reversed", [4, 3, 2, 1])
    recs = _project(project_particles, sample_graph, "reversed")
    assert [r.unique_id for r in recs] == [4, 3, 2, 1]


def test_missing_et(sample_graph):
    (met,) = _project(project_missing_et, sample_graph, "MissingET/momentum")
    assert met.met == pytest.approx(5.0)
    opposite = FourVector(-3.0, -4.0, 0.0, -5.0)
    assert met.phi == pytest.approx(opposite.phi)
    assert met.eta == pytest.approx(opposite.eta)


def test_singletons_take_first_entry():
    g = EventGraph()
    g.extend([
        Candidate(momentum=FourVector(3.0, 4.0, 0.0, 5.0)),
        Candidate(momentum=FourVector(30.0, 40.0, 0.0, 50.0)),
    ])
    g.set_array("two", [1, 2])
    g.set_array("none", [])

    for fn in (project_missing_et, project_scalar_ht, project_weight):
        assert len(_project(fn, g, "two")) == 1
        assert _project(fn, g, "none") == []

    (ht,) = _project(project_scalar_ht, g, "two")
    assert ht.ht == pytest.approx(5.0)
    (w,) = _project(project_weight, g, "two")
    assert w.weight == 5.0


def test_scalar_ht_and_weight(sample_graph):
    (ht,) = _project(project_scalar_ht, sample_graph, "ScalarHT/energy")
    assert ht.ht == pytest.approx(120.0)
    (w,) = _project(project_weight, sample_graph, "Weight/weight")
    assert w.weight == 0.8


def test_rho(sample_graph):
    (rho,) = _project(project_rho, sample_graph, "Rho/rho")
    assert rho.rho == 1.5
    assert rho.edges == [0.0, 2.5]


def test_hector_hits(sample_graph):
    (hit,) = _project(project_hector_hits, sample_graph, "Hector/hits")
    assert hit.unique_id == 19
    assert hit.particle == 4
    assert hit.e == 50.0
    assert (hit.tx, hit.ty) == (0.001, 0.002)
    assert (hit.x, hit.y, hit.s) == (1.0, 2.0, 220000.0)
    # time is stored as given
    assert hit.t == 5.0


def test_projectors_do_not_mutate_graph(sample_graph):
    before = [(c.unique_id, c.children, c.momentum) for c in sample_graph]
    _project(project_jets, sample_graph, "UniqueObjectFinder/jets")
    _project(project_towers, sample_graph, "Calorimeter/towers")
    after = [(c.unique_id, c.children, c.momentum) for c in sample_graph]
    assert before == after
    assert sample_graph.array_ids("UniqueObjectFinder/jets") == (12, 11)
