from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Protocol, Sequence

from velibadvisor.config.models import DecisionSettings, TimeoutSettings
from velibadvisor.decision.alternatives import AlternativeEstimator, alternative_for_distance, walk_alternative
from velibadvisor.decision.policy import VelibTime, compute_velib_time, get_best_stations, should_recommend_velib
from velibadvisor.errors import InvalidInput, NoAvailability, NoStationsNearby, UnavailableJourney
from velibadvisor.providers.routing import estimate_route
from velibadvisor.schemas.core import (
    AlternativeTransport,
    Coordinate,
    JourneyDecision,
    RouteResult,
    Station,
    TransportMode,
)
from velibadvisor.utils.geo import format_distance, format_duration, great_circle_distance
from velibadvisor.utils.logging import DECISION_LOGGER_NAME
from velibadvisor.utils.resilience import fan_out, run_with_deadline


logger = logging.getLogger(__name__)
# One line per analysis; `configure_logging` can route it to its own file.
decision_logger = logging.getLogger(DECISION_LOGGER_NAME)


class StationProvider(Protocol):
    def fetch_nearby_stations(self, point: Coordinate, radius_m: float) -> list[Station]: ...


class RouteProvider(Protocol):
    def compute_route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: Optional[str] = None,
    ) -> RouteResult: ...


class AlternativeProvider(Protocol):
    def estimate(self, origin: Coordinate, destination: Coordinate) -> Optional[AlternativeTransport]: ...


_MODE_LABELS = {
    TransportMode.WALK: "walking",
    TransportMode.TRANSIT: "public transit",
    TransportMode.FAST_TRANSIT: "fast transit",
}


def _log_decision(origin: Coordinate, destination: Coordinate, decision: JourneyDecision) -> None:
    alternative = decision.alternative
    decision_logger.info(
        "origin=%.5f,%.5f destination=%.5f,%.5f distance_m=%s recommend=%s reason_code=%s "
        "velib_s=%s alternative=%s alternative_s=%s",
        origin.lat,
        origin.lng,
        destination.lat,
        destination.lng,
        None if decision.direct_distance_m is None else round(decision.direct_distance_m),
        decision.recommend,
        decision.reason_code,
        decision.total_velib_duration_s,
        None if alternative is None else alternative.mode.value,
        None if alternative is None else alternative.duration_s,
    )


def coerce_coordinate(value: Any, *, label: str) -> Coordinate:
    """Accept a `Coordinate` or a `{"lat": ..., "lng": ...}` mapping; raise `InvalidInput` otherwise."""

    if isinstance(value, Mapping):
        lat, lng = value.get("lat"), value.get("lng")
    else:
        lat, lng = getattr(value, "lat", None), getattr(value, "lng", None)

    for name, number in (("lat", lat), ("lng", lng)):
        if not isinstance(number, (int, float)) or isinstance(number, bool) or not math.isfinite(number):
            raise InvalidInput(f"{label}.{name} must be a finite number, got {number!r}")
    if not -90.0 <= lat <= 90.0:
        raise InvalidInput(f"{label}.lat out of range [-90, 90]: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidInput(f"{label}.lng out of range [-180, 180]: {lng}")
    return value if isinstance(value, Coordinate) else Coordinate(lat=float(lat), lng=float(lng))


class DecisionEngine:
    """
    Decide whether a Vélib trip beats walking or transit between two points.

    One call to `analyze_journey` runs: validate input, check the distance band, fetch
    stations/route/alternative concurrently, check availability, compute the Vélib time,
    compare. Every stage after validation can conclude early with `recommend=False`.
    The engine keeps no per-call state, so calls are independent and reentrant.
    """

    def __init__(
        self,
        *,
        stations: StationProvider,
        routes: RouteProvider,
        alternatives: Optional[AlternativeProvider] = None,
        settings: Optional[DecisionSettings] = None,
        timeouts: Optional[TimeoutSettings] = None,
        cycling_profile: str = "cycling-regular",
    ) -> None:
        self._settings = settings or DecisionSettings()
        self._timeouts = timeouts or TimeoutSettings()
        self._stations = stations
        self._routes = routes
        self._alternatives = alternatives or AlternativeEstimator(self._settings)
        self._cycling_profile = cycling_profile

    @property
    def settings(self) -> DecisionSettings:
        return self._settings

    def analyze_journey(self, origin: Any, destination: Any) -> JourneyDecision:
        origin = coerce_coordinate(origin, label="origin")
        destination = coerce_coordinate(destination, label="destination")
        try:
            decision = self._analyze(origin, destination)
        except Exception as e:
            logger.exception("Journey analysis failed for %s -> %s", origin, destination)
            decision = JourneyDecision(
                recommend=False,
                reason=f"Analysis failed: {e}",
                reason_code="error",
                error=True,
            )
        _log_decision(origin, destination, decision)
        return decision

    def _analyze(self, origin: Coordinate, destination: Coordinate) -> JourneyDecision:
        settings = self._settings
        distance = great_circle_distance(origin, destination)

        if distance < settings.min_distance_m:
            return JourneyDecision(
                recommend=False,
                reason=f"Too short, walk instead: {format_distance(distance)} is quicker on foot.",
                reason_code="too_short",
                direct_distance_m=distance,
                alternative=walk_alternative(distance, walking_speed_mps=settings.walking_speed_mps),
            )
        if distance > settings.max_distance_m:
            alternative = self._bounded_estimate(origin, destination) or alternative_for_distance(
                distance, walking_speed_mps=settings.walking_speed_mps
            )
            return JourneyDecision(
                recommend=False,
                reason=f"Too long for bike-share: {format_distance(distance)} is beyond a comfortable Vélib ride.",
                reason_code="too_long",
                direct_distance_m=distance,
                alternative=alternative,
            )

        outcomes = fan_out(
            {
                "departure_stations": lambda: self._stations.fetch_nearby_stations(origin, settings.station_radius_m),
                "arrival_stations": lambda: self._stations.fetch_nearby_stations(
                    destination, settings.station_radius_m
                ),
                "route": lambda: self._routes.compute_route(origin, destination, self._cycling_profile),
                "alternative": lambda: self._alternatives.estimate(origin, destination),
            },
            timeout_s=self._timeouts.provider_s,
            defaults={"departure_stations": [], "arrival_stations": []},
        )
        departure_all: Sequence[Station] = outcomes["departure_stations"].value or []
        arrival_all: Sequence[Station] = outcomes["arrival_stations"].value or []
        alternative: Optional[AlternativeTransport] = outcomes["alternative"].value
        route: Optional[RouteResult] = outcomes["route"].value
        if route is None:
            logger.warning("No cycling route available; falling back to a distance estimate")
            route = estimate_route(origin, destination)

        best_departure = tuple(get_best_stations(departure_all, "bikes", settings=settings))
        best_arrival = tuple(get_best_stations(arrival_all, "docks", settings=settings))

        try:
            self._check_availability(departure_all, arrival_all, best_departure, best_arrival)
        except UnavailableJourney as e:
            return JourneyDecision(
                recommend=False,
                reason=str(e),
                reason_code=e.reason_code,
                direct_distance_m=distance,
                best_departure_stations=best_departure,
                best_arrival_stations=best_arrival,
                alternative=alternative,
            )

        velib = compute_velib_time(route, best_departure[0], best_arrival[0], settings=settings)

        if alternative is None:
            recommend = True
            reason_code = "no_alternative"
            reason = f"Vélib is the only option we could estimate: {self._describe(velib)}."
        else:
            recommend = should_recommend_velib(
                velib.total_s,
                alternative.duration_s,
                best_departure[0].bikes_available,
                best_arrival[0].docks_available,
                settings=settings,
            )
            label = _MODE_LABELS.get(alternative.mode, alternative.mode.value)
            if recommend:
                reason_code = "velib_faster"
                reason = (
                    f"Vélib is faster than the alternatives: {self._describe(velib)} "
                    f"vs {alternative.duration_text} by {label}."
                )
            else:
                reason_code = "alternative_faster"
                reason = (
                    f"Vélib is not recommended, {label} is faster: {alternative.duration_text} "
                    f"vs {self._describe(velib)}."
                )

        if route.ascent_m > settings.climb_threshold_m:
            reason += " Significant climb on this route."
        if route.is_estimated:
            reason += " Cycling time is an estimate."

        return JourneyDecision(
            recommend=recommend,
            reason=reason,
            reason_code=reason_code,
            direct_distance_m=distance,
            best_departure_stations=best_departure,
            best_arrival_stations=best_arrival,
            route=route,
            total_velib_duration_s=velib.total_s,
            alternative=alternative,
        )

    def _bounded_estimate(self, origin: Coordinate, destination: Coordinate) -> Optional[AlternativeTransport]:
        try:
            return run_with_deadline(
                lambda: self._alternatives.estimate(origin, destination),
                timeout_s=self._timeouts.provider_s,
                label="alternative",
            )
        except Exception as e:
            logger.warning("Alternative estimate failed (%s: %s); using distance bands", type(e).__name__, e)
            return None

    @staticmethod
    def _check_availability(
        departure_all: Sequence[Station],
        arrival_all: Sequence[Station],
        best_departure: Sequence[Station],
        best_arrival: Sequence[Station],
    ) -> None:
        if not departure_all:
            raise NoStationsNearby("No station nearby: no station near departure.", reason_code="no_departure_station")
        if not arrival_all:
            raise NoStationsNearby("No station nearby: no station near arrival.", reason_code="no_arrival_station")
        if not best_departure:
            raise NoAvailability("No bikes available at stations near departure.", reason_code="no_bikes")
        if not best_arrival:
            raise NoAvailability("No docks available at stations near arrival.", reason_code="no_docks")

    @staticmethod
    def _describe(velib: VelibTime) -> str:
        return (
            f"{format_duration(velib.total_s)} by Vélib "
            f"({format_duration(velib.cycling_s)} cycling + {format_duration(velib.walking_s)} walking "
            f"+ {format_duration(velib.buffer_s)} buffer)"
        )
