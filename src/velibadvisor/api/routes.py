from __future__ import annotations

# FastAPI primitives:
# - `APIRouter` groups endpoints so the app factory can include them cleanly.
# - `Depends` performs dependency injection per request (no global variables needed).
# - `HTTPException` converts domain errors into proper HTTP status codes + JSON error payloads.
# - `Request` gives access to `app.state` where we store our service object.
from fastapi import APIRouter, Depends, HTTPException, Query, Request

# Pydantic response models define the JSON schema returned to clients.
from velibadvisor.api.schemas import (
    AddressSuggestionOut,
    AnalyzeAddressesIn,
    AnalyzeCoordinatesIn,
    AppConfigOut,
    CoordinateOut,
    JourneyAnalysisOut,
    JourneyDecisionOut,
    NearbyStationsOut,
    StationOut,
)
# `JourneyService` hides provider wiring and address resolution from the HTTP layer.
# Dataflow: HTTP request -> route handler -> JourneyService -> DecisionEngine -> dataclass -> Pydantic -> JSON.
from velibadvisor.api.service import JourneyService
from velibadvisor.errors import AddressNotFound, InvalidInput, ProviderError
from velibadvisor.schemas.core import Coordinate


router = APIRouter()


def get_service(request: Request) -> JourneyService:
    return request.app.state.journey_service  # type: ignore[attr-defined]


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/config", response_model=AppConfigOut)
def get_config(service: JourneyService = Depends(get_service)) -> AppConfigOut:
    cfg = service.config
    return AppConfigOut(
        app_name=cfg.app.name,
        decision={
            "min_distance_m": cfg.decision.min_distance_m,
            "max_distance_m": cfg.decision.max_distance_m,
            "walking_speed_mps": cfg.decision.walking_speed_mps,
            "station_radius_m": cfg.decision.station_radius_m,
            "buffer_s": cfg.decision.buffer_s,
            "short_trip_buffer_s": cfg.decision.short_trip_buffer_s,
        },
        provider_timeout_s=cfg.timeouts.provider_s,
        # Without an API key every cycling route is an estimate.
        routing_enabled=bool(cfg.providers.routing.api_key),
    )


@router.post("/journeys/analyze", response_model=JourneyAnalysisOut)
def analyze_addresses(
    payload: AnalyzeAddressesIn,
    service: JourneyService = Depends(get_service),
) -> JourneyAnalysisOut:
    current = None
    if payload.current_position is not None:
        current = Coordinate(lat=payload.current_position.lat, lng=payload.current_position.lng)
    try:
        origin, destination, decision = service.analyze_addresses(
            payload.origin,
            payload.destination,
            current_position=current,
        )
    except AddressNotFound as e:
        # Address failures are the one user-actionable error: say which end to fix.
        raise HTTPException(status_code=404, detail={"role": e.role, "message": str(e)})
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return JourneyAnalysisOut(
        origin=CoordinateOut(lat=origin.lat, lng=origin.lng),
        destination=CoordinateOut(lat=destination.lat, lng=destination.lng),
        decision=JourneyDecisionOut(**decision.to_dict()),
    )


@router.post("/journeys/analyze/coordinates", response_model=JourneyDecisionOut)
def analyze_coordinates(
    payload: AnalyzeCoordinatesIn,
    service: JourneyService = Depends(get_service),
) -> JourneyDecisionOut:
    try:
        decision = service.analyze_coordinates(
            Coordinate(lat=payload.origin.lat, lng=payload.origin.lng),
            Coordinate(lat=payload.destination.lat, lng=payload.destination.lng),
        )
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return JourneyDecisionOut(**decision.to_dict())


@router.get("/stations/nearby", response_model=NearbyStationsOut)
def nearby_stations(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius_m: float | None = Query(default=None, gt=0, le=5000),
    service: JourneyService = Depends(get_service),
) -> NearbyStationsOut:
    try:
        stations = service.nearby_stations(Coordinate(lat=lat, lng=lng), radius_m=radius_m)
    except ProviderError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return NearbyStationsOut(
        items=[StationOut(**s.to_dict()) for s in stations],
        meta={"count": len(stations), "radius_m": radius_m or service.config.decision.station_radius_m},
    )


@router.get("/addresses/search", response_model=list[AddressSuggestionOut])
def search_addresses(
    q: str = Query(min_length=1),
    limit: int = Query(default=10, ge=1, le=20),
    service: JourneyService = Depends(get_service),
) -> list[AddressSuggestionOut]:
    return [
        AddressSuggestionOut(
            display_name=s.display_name,
            full_name=s.full_name,
            lat=s.lat,
            lng=s.lng,
            kind=s.kind,
            importance=s.importance,
        )
        for s in service.search_addresses(q, limit=limit)
    ]
