from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CoordinateIn(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class CoordinateOut(BaseModel):
    lat: float
    lng: float


class AnalyzeAddressesIn(BaseModel):
    origin: Optional[str] = Field(default=None, examples=["10 rue de Rivoli", "Ma position"])
    destination: str = Field(min_length=1, examples=["Place de la Bastille"])
    current_position: Optional[CoordinateIn] = None


class AnalyzeCoordinatesIn(BaseModel):
    origin: CoordinateIn
    destination: CoordinateIn


class StationOut(BaseModel):
    station_id: str
    name: str
    lat: float
    lng: float
    bikes_available: int
    docks_available: int
    distance_m: float
    distance_text: str
    walk_duration_s: int
    walk_duration_text: str
    mechanical_bikes: Optional[int] = None
    ebikes: Optional[int] = None


class RouteOut(BaseModel):
    distance_m: float
    distance_text: str
    duration_s: int
    duration_text: str
    ascent_m: float
    descent_m: float
    is_estimated: bool
    points: list[list[float]] = Field(default_factory=list)


class AlternativeOut(BaseModel):
    mode: str = Field(examples=["walk", "transit", "fast_transit"])
    duration_s: int
    duration_text: str
    description: str
    breakdown: Optional[str] = None
    distance_m: float


class JourneyDecisionOut(BaseModel):
    recommend: bool
    reason: str
    reason_code: str
    direct_distance_m: Optional[float] = None
    best_departure_stations: list[StationOut] = Field(default_factory=list)
    best_arrival_stations: list[StationOut] = Field(default_factory=list)
    route: Optional[RouteOut] = None
    total_velib_duration_s: Optional[int] = None
    total_velib_duration_text: Optional[str] = None
    alternative: Optional[AlternativeOut] = None
    error: bool = False


class JourneyAnalysisOut(BaseModel):
    origin: CoordinateOut
    destination: CoordinateOut
    decision: JourneyDecisionOut


class NearbyStationsOut(BaseModel):
    items: list[StationOut] = Field(default_factory=list)
    meta: dict[str, object] = Field(default_factory=dict)


class AddressSuggestionOut(BaseModel):
    display_name: str
    full_name: str
    lat: float
    lng: float
    kind: Optional[str] = None
    importance: float = 0.0


class DecisionConfigOut(BaseModel):
    min_distance_m: float
    max_distance_m: float
    walking_speed_mps: float
    station_radius_m: float
    buffer_s: int
    short_trip_buffer_s: int


class AppConfigOut(BaseModel):
    app_name: str
    decision: DecisionConfigOut
    provider_timeout_s: float
    routing_enabled: bool
