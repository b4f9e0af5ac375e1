"""Test fixtures.

The event-graph fixture file under ``tests/fixtures/`` is (re)generated at
test collection time from ``make_event`` so that the suite does not depend
on shipped data files.
"""

from __future__ import annotations

import math
from pathlib import Path

import pytest

from hepbranch.kinematics import FourVector
from hepbranch.models import (
    Candidate,
    EventGraph,
    HighLevelTracking,
    SecondaryVertex,
    SecondaryVertexSummary,
    SecondaryVertexTrack,
    TruthVertex,
)
from hepbranch.registry import BranchSpec

FIXTURES = Path(__file__).resolve().parent / "fixtures"
EVENTS_FILE = FIXTURES / "sample_events.jsonl"

ALL_BRANCHES = [
    BranchSpec("Delphes/allParticles", "Particle", "GenParticle"),
    BranchSpec("VertexFinder/vertices", "Vertex", "Vertex"),
    BranchSpec("TrackMerger/tracks", "Track", "Track"),
    BranchSpec("Calorimeter/towers", "Tower", "Tower"),
    BranchSpec("UniqueObjectFinder/photons", "Photon", "Photon"),
    BranchSpec("UniqueObjectFinder/electrons", "Electron", "Electron"),
    BranchSpec("UniqueObjectFinder/muons", "Muon", "Muon"),
    BranchSpec("UniqueObjectFinder/jets", "Jet", "Jet"),
    BranchSpec("MissingET/momentum", "MissingET", "MissingET"),
    BranchSpec("ScalarHT/energy", "ScalarHT", "ScalarHT"),
    BranchSpec("Rho/rho", "Rho", "Rho"),
    BranchSpec("Weight/weight", "Weight", "Weight"),
    BranchSpec("Hector/hits", "HectorHit", "HectorHit"),
]


def _p4(px: float, py: float, pz: float, m: float = 0.0) -> FourVector:
    return FourVector(px, py, pz, math.sqrt(px * px + py * py + pz * pz + m * m))


def make_event(event_number: int = 1) -> EventGraph:
    """A small but complete event.

    Unique ids:
        1-4   generated particles (4 lies on the beam axis)
        5-6   tracks of particles 1 and 2
        7     tower built from tracks 5 and 6
        8     tower hit directly by particle 3
        9     electron (from particle 1)
        10    photon (from tower 8)
        11    leading jet (towers 7 and 8), subjet 12
        12    sub-leading jet (track 6)
        13    muon (from particle 2)
        14-17 missing ET, scalar HT, rho, weight
        18    primary vertex
        19    far-forward hit of particle 4
    """
    g = EventGraph(event_number=event_number)

    g.add(Candidate(pid=11, status=1, charge=-1, mass=0.000511, m1=0, m2=-1,
                    momentum=_p4(10.0, 0.0, 5.0, 0.000511),
                    position=FourVector(1.0, 2.0, 3.0, 1000.0)))
    g.add(Candidate(pid=211, status=1, charge=1, mass=0.1396,
                    momentum=_p4(3.0, 4.0, 0.0, 0.1396),
                    position=FourVector(0.0, 0.0, 0.5, 0.0)))
    g.add(Candidate(pid=22, status=1, momentum=_p4(0.0, 8.0, 2.0)))
    g.add(Candidate(pid=2212, status=1, mass=0.938,
                    momentum=FourVector(0.0, 0.0, 50.0, 50.0)))

    g.add(Candidate(pid=11, charge=-1, children=(1,),
                    momentum=_p4(10.0, 0.0, 5.0),
                    position=FourVector(1000.0, 50.0, 480.0, 3500.0),
                    track_parameters=(0.01, 0.5, 0.0, 1.1, -0.09),
                    track_covariance=tuple(float(i) for i in range(15)),
                    dxy=0.01, sdxy=0.002, xd=0.001, yd=0.01, zd=0.5))
    g.add(Candidate(pid=211, charge=1, children=(2,),
                    momentum=_p4(3.0, 4.0, 0.0),
                    position=FourVector(600.0, 800.0, 0.0, 3300.0),
                    track_parameters=(0.02, 0.1, 0.9, 1.57, 0.2),
                    track_covariance=(0.0,) * 15,
                    dxy=0.02, zd=0.1))

    g.add(Candidate(children=(5, 6), momentum=_p4(13.0, 4.0, 5.0),
                    position=FourVector(1500.0, 500.0, 600.0, 5000.0),
                    eem=4.0, ehad=6.0, edges=(0.3, 0.4, 0.0, 0.1), n_time_hits=2))
    g.add(Candidate(children=(3,), momentum=_p4(0.0, 8.0, 2.0),
                    eem=8.0, ehad=0.0, edges=(0.2, 0.3, 1.5, 1.6), n_time_hits=1))

    g.add(Candidate(children=(1,), charge=-1, momentum=_p4(10.0, 0.0, 5.0),
                    isolation_var=0.05, sum_pt_charged=0.3, sum_pt=0.5))
    g.add(Candidate(children=(8,), momentum=_p4(0.0, 8.0, 2.0),
                    eem=8.0, ehad=2.0, isolation_var=0.01))

    g.add(Candidate(
        children=(7, 8), subjets=(12,), tracks=(5, 6),
        momentum=FourVector(40.0, 30.0, 10.0, 52.0),
        area=FourVector(0.1, 0.1, 0.0, 0.5),
        flavor=5, flavor_algo=5, flavor_phys=4, btag=1, btag_algo=1, tau_tag=0, charge=0,
        n_charged=2, n_neutrals=1, beta=0.8, beta_star=0.1, mean_sq_delta_r=0.02, ptd=0.6,
        n_subjets_trimmed=2, n_subjets_pruned=2, n_subjets_soft_dropped=1,
        frac_pt=(0.7, 0.3, 0.0, 0.0, 0.0),
        tau=(0.5, 0.3, 0.2, 0.1, 0.05),
        trimmed_p4=(FourVector(40.0, 30.0, 10.0, 51.0),) + (FourVector(),) * 4,
        primary_vertex_tracks=(SecondaryVertexTrack(weight=1.0, d0=0.01, z0=0.02),),
        secondary_vertices=(
            SecondaryVertex(
                position=FourVector(1.0, 1.5, 0.5, 0.0), lxy=1.8, lsig=6.0, n_tracks=2, mass=1.9,
                tracks=(SecondaryVertexTrack(weight=0.9, d0=0.4), SecondaryVertexTrack(weight=0.8, d0=0.3)),
            ),
        ),
        hl_secondary_vertex_tracks=(SecondaryVertexTrack(weight=0.7),),
        hl_secondary_vertex=SecondaryVertexSummary(mass=1.9, n_vertices=1, n_tracks=2),
        ml_secondary_vertex=SecondaryVertexSummary(mass=2.1, n_vertices=2, n_two_track_vertices=1),
        hl_tracking=HighLevelTracking(track2_d0_significance=3.5, jet_prob=0.01),
        truth_vertices=(TruthVertex(1.1, 1.4, 0.6),),
    ))
    g.add(Candidate(children=(6,), momentum=FourVector(20.0, 0.0, 5.0, 21.0)))

    g.add(Candidate(children=(2,), charge=1, momentum=_p4(3.0, 4.0, 0.0), sum_pt_neutral=0.2))

    g.add(Candidate(momentum=FourVector(3.0, 4.0, 0.0, 5.0)))
    g.add(Candidate(momentum=FourVector(120.0, 0.0, 0.0, 120.0)))
    g.add(Candidate(momentum=FourVector(0.0, 0.0, 0.0, 1.5), edges=(0.0, 2.5, 0.0, 0.0)))
    g.add(Candidate(momentum=FourVector(0.0, 0.0, 0.0, 0.8)))

    g.add(Candidate(position=FourVector(0.1, 0.2, 0.3, 3.0)))
    g.add(Candidate(children=(4,), momentum=FourVector(0.001, 0.002, 49.0, 50.0),
                    position=FourVector(1.0, 2.0, 220000.0, 5.0)))

    g.set_array("Delphes/allParticles", [1, 2, 3, 4])
    g.set_array("VertexFinder/vertices", [18])
    g.set_array("TrackMerger/tracks", [5, 6])
    g.set_array("Calorimeter/towers", [7, 8])
    g.set_array("UniqueObjectFinder/photons", [10])
    g.set_array("UniqueObjectFinder/electrons", [9])
    g.set_array("UniqueObjectFinder/muons", [13])
    # sub-leading jet first on purpose
    g.set_array("UniqueObjectFinder/jets", [12, 11])
    g.set_array("MissingET/momentum", [14])
    g.set_array("ScalarHT/energy", [15])
    g.set_array("Rho/rho", [16])
    g.set_array("Weight/weight", [17])
    g.set_array("Hector/hits", [19])
    return g


@pytest.fixture
def sample_graph() -> EventGraph:
    return make_event()


@pytest.fixture
def all_branches() -> list[BranchSpec]:
    return list(ALL_BRANCHES)


@pytest.fixture
def events_file() -> Path:
    return EVENTS_FILE


def pytest_configure(config):  # noqa: D401
    """Ensure fixtures exist before any tests run."""
    from hepbranch.io.graph_json import write_graphs

    FIXTURES.mkdir(parents=True, exist_ok=True)
    write_graphs(str(EVENTS_FILE), [make_event(n) for n in (1, 2, 3)])
