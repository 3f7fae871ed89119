from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from velibadvisor.utils.geo import format_distance, format_duration


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class Station:
    station_id: str
    name: str
    lat: float
    lng: float
    bikes_available: int
    docks_available: int
    distance_m: float
    walk_duration_s: int
    mechanical_bikes: Optional[int] = None
    ebikes: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["distance_text"] = format_distance(self.distance_m)
        payload["walk_duration_text"] = format_duration(self.walk_duration_s)
        return payload


@dataclass(frozen=True)
class RouteResult:
    distance_m: float
    duration_s: int
    ascent_m: float = 0.0
    descent_m: float = 0.0
    is_estimated: bool = False
    points: tuple[Coordinate, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "distance_m": self.distance_m,
            "distance_text": format_distance(self.distance_m),
            "duration_s": self.duration_s,
            "duration_text": format_duration(self.duration_s),
            "ascent_m": self.ascent_m,
            "descent_m": self.descent_m,
            "is_estimated": self.is_estimated,
            "points": [[p.lat, p.lng] for p in self.points],
        }


class TransportMode(str, Enum):
    WALK = "walk"
    TRANSIT = "transit"
    FAST_TRANSIT = "fast_transit"


@dataclass(frozen=True)
class AlternativeTransport:
    mode: TransportMode
    duration_s: int
    description: str
    distance_m: float
    breakdown: Optional[str] = None

    @property
    def duration_text(self) -> str:
        return format_duration(self.duration_s)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "duration_s": self.duration_s,
            "duration_text": self.duration_text,
            "description": self.description,
            "breakdown": self.breakdown,
            "distance_m": self.distance_m,
        }


@dataclass(frozen=True)
class JourneyDecision:
    recommend: bool
    reason: str
    reason_code: str
    direct_distance_m: Optional[float] = None
    best_departure_stations: tuple[Station, ...] = field(default_factory=tuple)
    best_arrival_stations: tuple[Station, ...] = field(default_factory=tuple)
    route: Optional[RouteResult] = None
    total_velib_duration_s: Optional[int] = None
    alternative: Optional[AlternativeTransport] = None
    error: bool = False

    def to_dict(self) -> dict[str, Any]:
        total = self.total_velib_duration_s
        return {
            "recommend": self.recommend,
            "reason": self.reason,
            "reason_code": self.reason_code,
            "direct_distance_m": self.direct_distance_m,
            "best_departure_stations": [s.to_dict() for s in self.best_departure_stations],
            "best_arrival_stations": [s.to_dict() for s in self.best_arrival_stations],
            "route": None if self.route is None else self.route.to_dict(),
            "total_velib_duration_s": total,
            "total_velib_duration_text": None if total is None else format_duration(total),
            "alternative": None if self.alternative is None else self.alternative.to_dict(),
            "error": self.error,
        }


@dataclass(frozen=True)
class AddressSuggestion:
    display_name: str
    full_name: str
    lat: float
    lng: float
    kind: Optional[str]
    importance: float
    paris_bonus: int
