from __future__ import annotations

from velibadvisor.decision.alternatives import AlternativeEstimator, alternative_for_distance
from velibadvisor.schemas.core import Coordinate, TransportMode


def test_walk_band() -> None:
    alt = alternative_for_distance(1200.0)
    assert alt.mode is TransportMode.WALK
    assert alt.duration_s == 1000
    assert alt.breakdown is None


def test_transit_band_clamps_walk_to_station() -> None:
    # 2000 m: walk scaled to 90 s, clamped up to 180 s each way.
    alt = alternative_for_distance(2000.0)
    assert alt.mode is TransportMode.TRANSIT
    assert alt.duration_s == 360 + 300 + 2 * 180
    assert alt.breakdown == "Including ~6min walking and 5min waiting"

    # 6000 m: walk scaled to 270 s each way.
    alt = alternative_for_distance(6000.0)
    assert alt.duration_s == 1080 + 300 + 2 * 270


def test_fast_transit_band() -> None:
    alt = alternative_for_distance(9000.0)
    assert alt.mode is TransportMode.FAST_TRANSIT
    assert alt.duration_s == 1080 + 480 + 840
    assert alt.breakdown == "Including ~14min walking and 8min waiting"


def test_band_edges() -> None:
    assert alternative_for_distance(1499.9).mode is TransportMode.WALK
    assert alternative_for_distance(1500.0).mode is TransportMode.TRANSIT
    assert alternative_for_distance(7999.9).mode is TransportMode.TRANSIT
    assert alternative_for_distance(8000.0).mode is TransportMode.FAST_TRANSIT


def test_estimator_is_deterministic_and_rejects_bad_coordinates() -> None:
    estimator = AlternativeEstimator()
    origin = Coordinate(lat=48.8584, lng=2.3470)
    destination = Coordinate(lat=48.8800, lng=2.3550)
    first = estimator.estimate(origin, destination)
    assert first is not None
    assert first == estimator.estimate(origin, destination)

    assert estimator.estimate(Coordinate(lat=float("nan"), lng=2.35), destination) is None
    assert estimator.estimate(None, destination) is None  # type: ignore[arg-type]
