from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Optional

from velibadvisor.config.models import DecisionSettings
from velibadvisor.schemas.core import RouteResult, Station


Resource = Literal["bikes", "docks"]

_DEFAULTS = DecisionSettings()


def availability(station: Station, resource: Resource) -> int:
    if resource == "bikes":
        return station.bikes_available
    if resource == "docks":
        return station.docks_available
    raise ValueError(f"Unsupported resource: {resource}")


def station_score(station: Station, resource: Resource, *, settings: DecisionSettings = _DEFAULTS) -> int:
    # Scarce stations may be empty (or full) by the time the rider gets there.
    penalty = settings.scarcity_penalty_s if availability(station, resource) < settings.scarcity_threshold else 0
    return station.walk_duration_s + penalty


def get_best_stations(
    stations: Iterable[Station],
    resource: Resource,
    *,
    count: Optional[int] = None,
    settings: DecisionSettings = _DEFAULTS,
) -> list[Station]:
    """
    Rank candidate stations for one end of the trip.

    Only stations with at least one unit of `resource` qualify. Candidates within
    `best_station_max_distance_m` are ranked by walk time plus a scarcity penalty; when
    none is that close, the nearest qualifying stations are returned instead.
    """

    limit = settings.best_station_count if count is None else count
    if limit <= 0:
        return []

    usable = [s for s in stations if availability(s, resource) > 0]
    close = [s for s in usable if s.distance_m <= settings.best_station_max_distance_m]
    if close:
        # Ties keep the provider's order (nearest first) since `sorted` is stable.
        return sorted(close, key=lambda s: station_score(s, resource, settings=settings))[:limit]
    return sorted(usable, key=lambda s: s.distance_m)[:limit]


@dataclass(frozen=True)
class VelibTime:
    cycling_s: int
    walk_to_station_s: int
    walk_from_station_s: int
    buffer_s: int

    @property
    def walking_s(self) -> int:
        return self.walk_to_station_s + self.walk_from_station_s

    @property
    def total_s(self) -> int:
        return self.cycling_s + self.walking_s + self.buffer_s


def compute_velib_time(
    route: RouteResult,
    departure: Station,
    arrival: Station,
    *,
    settings: DecisionSettings = _DEFAULTS,
) -> VelibTime:
    # Short hops get a smaller lock/unlock allowance so overhead does not dominate.
    buffer_s = settings.short_trip_buffer_s if route.distance_m < settings.short_trip_threshold_m else settings.buffer_s
    return VelibTime(
        cycling_s=int(route.duration_s),
        walk_to_station_s=min(departure.walk_duration_s, settings.walk_cap_s),
        walk_from_station_s=min(arrival.walk_duration_s, settings.walk_cap_s),
        buffer_s=buffer_s,
    )


def should_recommend_velib(
    bike_time: float,
    alternative_time: float,
    departure_availability: int,
    arrival_availability: int,
    *,
    settings: DecisionSettings = _DEFAULTS,
) -> bool:
    """
    Compare the bike-share door-to-door time with the alternative.

    Outside a +/-20% band the faster option wins. Inside the band the tie-break depends on
    supply: with more than `abundant_threshold` bikes and docks, bike-share wins up to 10%
    slower; with marginal supply it must be strictly faster.
    """

    if bike_time < alternative_time * settings.clearly_faster_ratio:
        return True
    if bike_time > alternative_time * settings.clearly_slower_ratio:
        return False
    abundant = (
        departure_availability > settings.abundant_threshold
        and arrival_availability > settings.abundant_threshold
    )
    if abundant:
        return bike_time <= alternative_time * settings.abundant_tolerance_ratio
    return bike_time < alternative_time
