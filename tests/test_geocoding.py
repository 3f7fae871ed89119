from __future__ import annotations

from typing import Any

import pytest

from velibadvisor.config.models import GeocodingProviderSettings
from velibadvisor.errors import AddressNotFound, ProviderError
from velibadvisor.providers.geocoding import NominatimGeocoder, is_current_position, qualify_address
from velibadvisor.schemas.core import Coordinate


SETTINGS = GeocodingProviderSettings(
    base_url="https://nominatim.example",
    viewbox="2.2241,48.7965,2.4699,48.9115",
    language="fr",
)


class FakeHttp:
    base_url = SETTINGS.base_url

    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def get_json(self, path: str, *, params=None, headers=None) -> Any:  # type: ignore[no-untyped-def]
        self.calls.append((path, dict(params or {})))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _geocoder(http: FakeHttp) -> NominatimGeocoder:
    return NominatimGeocoder(http=http, settings=SETTINGS)  # type: ignore[arg-type]


def test_qualify_address() -> None:
    assert qualify_address("rue de Rivoli") == "rue de Rivoli, Paris"
    assert qualify_address("10 rue de Rivoli, 75001") == "10 rue de Rivoli, 75001"
    assert qualify_address("Mairie de Montreuil") == "Mairie de Montreuil"


def test_current_position_sentinel() -> None:
    assert is_current_position("  Ma Position ")
    here = Coordinate(lat=48.85, lng=2.35)
    http = FakeHttp()
    assert _geocoder(http).geocode("current position", current_position=here) == here
    assert http.calls == []
    with pytest.raises(AddressNotFound):
        _geocoder(http).geocode("ma position")


def test_geocode_bounded_first() -> None:
    http = FakeHttp([{"lat": "48.8606", "lon": "2.3376", "display_name": "Louvre"}])
    point = _geocoder(http).geocode("Louvre")
    assert point == Coordinate(lat=48.8606, lng=2.3376)
    path, params = http.calls[0]
    assert path == "search"
    assert params["q"] == "Louvre, Paris"
    assert params["bounded"] == 1


def test_geocode_retries_without_bounds_then_fails() -> None:
    http = FakeHttp([], [{"lat": "48.80", "lon": "2.13"}])
    assert _geocoder(http).geocode("Château de Versailles") == Coordinate(lat=48.80, lng=2.13)
    assert "bounded" not in http.calls[1][1]
    assert http.calls[1][1]["countrycodes"] == "fr"

    with pytest.raises(AddressNotFound):
        _geocoder(FakeHttp([], [])).geocode("nowhere at all")


def test_search_addresses_keeps_paris_area_and_ranks() -> None:
    results = [
        {
            "lat": "48.85",
            "lon": "2.35",
            "display_name": "Rue de Rivoli, Paris",
            "importance": 0.4,
            "type": "road",
            "address": {"road": "Rue de Rivoli", "city": "Paris", "postcode": "75004"},
        },
        {
            "lat": "48.86",
            "lon": "2.44",
            "display_name": "Rue de Paris, Montreuil",
            "importance": 0.9,
            "address": {"road": "Rue de Paris", "city": "Montreuil", "postcode": "93100"},
        },
        {
            "lat": "45.75",
            "lon": "4.85",
            "display_name": "Rue de Rivoli, Lyon",
            "importance": 0.99,
            "address": {"road": "Rue de Rivoli", "city": "Lyon", "postcode": "69002"},
        },
    ]
    suggestions = _geocoder(FakeHttp(results)).search_addresses("rue de rivoli")
    assert [s.display_name for s in suggestions] == ["Rue de Rivoli, Paris, 75004", "Rue de Paris, Montreuil, 93100"]
    assert suggestions[0].paris_bonus == 1


def test_search_addresses_is_best_effort() -> None:
    assert _geocoder(FakeHttp()).search_addresses("ru") == []
    assert _geocoder(FakeHttp(ProviderError("down"))).search_addresses("rue de rivoli") == []


def test_reverse_geocode() -> None:
    http = FakeHttp({"display_name": "Place du Châtelet, Paris"}, {"error": "Unable to geocode"})
    geocoder = _geocoder(http)
    assert geocoder.reverse_geocode(Coordinate(lat=48.858, lng=2.347)) == "Place du Châtelet, Paris"
    assert http.calls[0][0] == "reverse"
    with pytest.raises(AddressNotFound):
        geocoder.reverse_geocode(Coordinate(lat=0.0, lng=0.0))
