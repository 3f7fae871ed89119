from __future__ import annotations

import math
from typing import Any, Optional

from velibadvisor.config.models import DecisionSettings
from velibadvisor.schemas.core import AlternativeTransport, Coordinate, TransportMode
from velibadvisor.utils.geo import format_distance, format_duration, great_circle_distance


WALK_BAND_MAX_M = 1500.0
TRANSIT_BAND_MAX_M = 8000.0

TRANSIT_SPEED_MPS = 20_000 / 3600
TRANSIT_WAIT_S = 300
TRANSIT_WALK_MIN_S = 180
TRANSIT_WALK_MAX_S = 360

FAST_TRANSIT_SPEED_MPS = 30_000 / 3600
FAST_TRANSIT_WAIT_S = 480
FAST_TRANSIT_WALK_S = 420


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def walk_alternative(distance_m: float, *, walking_speed_mps: float) -> AlternativeTransport:
    duration = int(round(distance_m / walking_speed_mps))
    return AlternativeTransport(
        mode=TransportMode.WALK,
        duration_s=duration,
        description=f"Walking is a good option for this {format_distance(distance_m)} trip.",
        distance_m=distance_m,
    )


def alternative_for_distance(distance_m: float, *, walking_speed_mps: float = 1.2) -> AlternativeTransport:
    """
    Banded estimate of the best non bike-share option for a direct distance.

    - under 1.5 km: walk
    - 1.5 to 8 km: metro/bus, walk to the stop scaled with distance
    - 8 km and over: fast transit (RER), fixed access walk and longer wait
    """

    if distance_m < WALK_BAND_MAX_M:
        return walk_alternative(distance_m, walking_speed_mps=walking_speed_mps)

    if distance_m < TRANSIT_BAND_MAX_M:
        walk_each_way = min(
            TRANSIT_WALK_MAX_S,
            max(TRANSIT_WALK_MIN_S, int(round(distance_m / TRANSIT_BAND_MAX_M * TRANSIT_WALK_MAX_S))),
        )
        in_vehicle = int(round(distance_m / TRANSIT_SPEED_MPS))
        total = in_vehicle + TRANSIT_WAIT_S + 2 * walk_each_way
        return AlternativeTransport(
            mode=TransportMode.TRANSIT,
            duration_s=total,
            description=f"Public transit is recommended for this {format_distance(distance_m)} trip.",
            distance_m=distance_m,
            breakdown=(
                f"Including ~{format_duration(2 * walk_each_way)} walking "
                f"and {format_duration(TRANSIT_WAIT_S)} waiting"
            ),
        )

    in_vehicle = int(round(distance_m / FAST_TRANSIT_SPEED_MPS))
    total = in_vehicle + FAST_TRANSIT_WAIT_S + 2 * FAST_TRANSIT_WALK_S
    return AlternativeTransport(
        mode=TransportMode.FAST_TRANSIT,
        duration_s=total,
        description=f"For this {format_distance(distance_m)} trip, prefer fast transit lines.",
        distance_m=distance_m,
        breakdown=(
            f"Including ~{format_duration(2 * FAST_TRANSIT_WALK_S)} walking "
            f"and {format_duration(FAST_TRANSIT_WAIT_S)} waiting"
        ),
    )


class AlternativeEstimator:
    def __init__(self, settings: Optional[DecisionSettings] = None) -> None:
        self._walking_speed_mps = (settings or DecisionSettings()).walking_speed_mps

    def estimate(self, origin: Coordinate, destination: Coordinate) -> Optional[AlternativeTransport]:
        # Unusable coordinates mean "no alternative", not an error.
        if origin is None or destination is None:
            return None
        if not all(_is_number(v) for v in (origin.lat, origin.lng, destination.lat, destination.lng)):
            return None
        distance = great_circle_distance(origin, destination)
        return alternative_for_distance(distance, walking_speed_mps=self._walking_speed_mps)
