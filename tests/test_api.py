from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from velibadvisor.api.app import create_app
from velibadvisor.api.service import JourneyService
from velibadvisor.config.loader import load_config
from velibadvisor.decision.engine import DecisionEngine
from velibadvisor.errors import AddressNotFound, ProviderError
from velibadvisor.schemas.core import (
    AddressSuggestion,
    AlternativeTransport,
    Coordinate,
    RouteResult,
    Station,
    TransportMode,
)


CHATELET = Coordinate(lat=48.8566, lng=2.3522)
GARE_DU_NORD = Coordinate(lat=48.88358, lng=2.3522)
CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "default.json"


def _station(station_id: str, *, bikes: int = 6, docks: int = 6) -> Station:
    return Station(
        station_id=station_id,
        name=f"Station {station_id}",
        lat=48.86,
        lng=2.35,
        bikes_available=bikes,
        docks_available=docks,
        distance_m=180.0,
        walk_duration_s=150,
    )


class FakeStations:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.radii: list[float] = []

    def fetch_nearby_stations(self, point: Coordinate, radius_m: float) -> list[Station]:
        self.radii.append(radius_m)
        if self.fail:
            raise ProviderError("feed down")
        return [_station(f"{point.lat:.3f}")]


class FakeRoutes:
    def compute_route(self, origin: Coordinate, destination: Coordinate, profile: Optional[str] = None) -> RouteResult:
        return RouteResult(distance_m=3100, duration_s=600, points=(origin, destination))


class FakeAlternatives:
    def estimate(self, origin: Coordinate, destination: Coordinate) -> AlternativeTransport:
        return AlternativeTransport(
            mode=TransportMode.TRANSIT,
            duration_s=1500,
            description="Public transit",
            distance_m=3000.0,
        )


class FakeGeocoder:
    known = {"Châtelet": CHATELET, "Gare du Nord": GARE_DU_NORD}

    def geocode(self, address: str, *, current_position: Optional[Coordinate] = None) -> Coordinate:
        if address == "current position" and current_position is not None:
            return current_position
        try:
            return self.known[address]
        except KeyError:
            raise AddressNotFound(f"Address not found: {address}", address=address) from None

    def search_addresses(self, query: str, *, limit: int = 10) -> list[AddressSuggestion]:
        return [
            AddressSuggestion(
                display_name="Gare du Nord, Paris, 75010",
                full_name="Gare du Nord, Rue de Dunkerque, Paris",
                lat=GARE_DU_NORD.lat,
                lng=GARE_DU_NORD.lng,
                kind="station",
                importance=0.7,
                paris_bonus=1,
            )
        ][:limit]


@pytest.fixture
def stations() -> FakeStations:
    return FakeStations()


@pytest.fixture
def client(monkeypatch, tmp_path, stations: FakeStations) -> TestClient:
    monkeypatch.delenv("ORS_API_KEY", raising=False)
    monkeypatch.delenv("VELIBADVISOR_LOG_LEVEL", raising=False)
    config = load_config(CONFIG_PATH, base_dir=tmp_path)
    engine = DecisionEngine(
        stations=stations,
        routes=FakeRoutes(),
        alternatives=FakeAlternatives(),
        settings=config.decision,
        timeouts=config.timeouts,
    )
    service = JourneyService(config, engine=engine, geocoder=FakeGeocoder(), stations=stations)  # type: ignore[arg-type]
    return TestClient(create_app(config, service=service))


def test_health_and_config(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}

    payload = client.get("/config").json()
    assert payload["app_name"] == "VelibAdvisor"
    assert payload["decision"]["min_distance_m"] == 500
    assert payload["routing_enabled"] is False


def test_analyze_addresses(client: TestClient) -> None:
    resp = client.post("/journeys/analyze", json={"origin": "Châtelet", "destination": "Gare du Nord"})
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["origin"] == {"lat": CHATELET.lat, "lng": CHATELET.lng}

    decision = payload["decision"]
    # 600 cycling + 150 + 150 walking + 120 buffer
    assert decision["total_velib_duration_s"] == 1020
    assert decision["total_velib_duration_text"] == "17min"
    assert decision["recommend"] is True
    assert decision["reason_code"] == "velib_faster"
    assert decision["alternative"]["mode"] == "transit"
    assert decision["best_departure_stations"][0]["distance_text"] == "180m"
    assert len(decision["route"]["points"]) == 2


def test_analyze_from_current_position(client: TestClient) -> None:
    resp = client.post(
        "/journeys/analyze",
        json={"destination": "Gare du Nord", "current_position": {"lat": CHATELET.lat, "lng": CHATELET.lng}},
    )
    assert resp.status_code == 200
    assert resp.json()["decision"]["error"] is False


def test_unknown_address_names_the_failing_end(client: TestClient) -> None:
    resp = client.post("/journeys/analyze", json={"origin": "Châtelet", "destination": "Atlantis"})
    assert resp.status_code == 404
    detail = resp.json()["detail"]
    assert detail["role"] == "destination"
    assert "destination address could not be located" in detail["message"]

    resp = client.post("/journeys/analyze", json={"destination": "Gare du Nord"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["role"] == "departure"


def test_analyze_coordinates(client: TestClient) -> None:
    resp = client.post(
        "/journeys/analyze/coordinates",
        json={
            "origin": {"lat": CHATELET.lat, "lng": CHATELET.lng},
            "destination": {"lat": CHATELET.lat, "lng": CHATELET.lng + 0.001},
        },
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["reason_code"] == "too_short"
    assert payload["alternative"]["mode"] == "walk"

    resp = client.post(
        "/journeys/analyze/coordinates",
        json={"origin": {"lat": 95, "lng": 2.35}, "destination": {"lat": CHATELET.lat, "lng": CHATELET.lng}},
    )
    assert resp.status_code == 422


def test_nearby_stations(client: TestClient, stations: FakeStations) -> None:
    resp = client.get("/stations/nearby", params={"lat": CHATELET.lat, "lng": CHATELET.lng})
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["meta"] == {"count": 1, "radius_m": 750.0}
    assert payload["items"][0]["walk_duration_text"] == "2min"

    client.get("/stations/nearby", params={"lat": CHATELET.lat, "lng": CHATELET.lng, "radius_m": 300})
    assert stations.radii[-1] == 300

    stations.fail = True
    resp = client.get("/stations/nearby", params={"lat": CHATELET.lat, "lng": CHATELET.lng})
    assert resp.status_code == 503


def test_address_search(client: TestClient) -> None:
    resp = client.get("/addresses/search", params={"q": "gare du n"})
    assert resp.status_code == 200
    assert resp.json()[0]["display_name"] == "Gare du Nord, Paris, 75010"
