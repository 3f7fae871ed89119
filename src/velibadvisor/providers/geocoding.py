from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

from velibadvisor.config.models import CacheSettings, GeocodingProviderSettings
from velibadvisor.errors import AddressNotFound, ProviderError
from velibadvisor.providers.http_base import HttpJsonClient
from velibadvisor.schemas.core import AddressSuggestion, Coordinate
from velibadvisor.utils.cache import JsonFileCache
from velibadvisor.utils.safe import safe_float, safe_get


logger = logging.getLogger(__name__)


CURRENT_POSITION_SENTINELS = frozenset({"ma position", "position actuelle", "current position"})

# Inner-suburb cities accepted by address search, with their postcode prefix.
PARIS_AREA_CITIES: dict[str, str] = {
    "paris": "75",
    "boulogne": "92100",
    "neuilly": "92200",
    "levallois": "92300",
    "issy": "92130",
    "vanves": "92170",
    "malakoff": "92240",
    "montrouge": "92120",
    "gentilly": "94250",
    "ivry": "94200",
    "charenton": "94220",
    "saint-mandé": "94160",
    "saint-ouen": "93400",
    "clichy": "92110",
    "puteaux": "92800",
    "montreuil": "93100",
    "pantin": "93500",
    "aubervilliers": "93300",
}

_CITY_PATTERN = re.compile("|".join(re.escape(city) for city in PARIS_AREA_CITIES), re.IGNORECASE)


def is_current_position(address: str) -> bool:
    return address.strip().lower() in CURRENT_POSITION_SENTINELS


def qualify_address(address: str) -> str:
    """Append ", Paris" to bare street queries so Nominatim does not match a namesake elsewhere."""

    if _CITY_PATTERN.search(address) or "," in address:
        return address
    return f"{address}, Paris"


def _is_paris_area(item: Mapping[str, Any]) -> bool:
    postcode = str(safe_get(item, "address.postcode", ""))
    if postcode.startswith("75"):
        return True
    if postcode[:2] in ("92", "93", "94"):
        city = str(safe_get(item, "address.city", "")).lower()
        return any(known in city or postcode.startswith(prefix) for known, prefix in PARIS_AREA_CITIES.items())
    return False


def _short_display_name(item: Mapping[str, Any]) -> str:
    address = safe_get(item, "address", {})
    parts: list[str] = []
    road = safe_get(address, "road")
    house_number = safe_get(address, "house_number")
    if road and house_number:
        parts.append(f"{house_number} {road}")
    elif road:
        parts.append(str(road))
    elif safe_get(address, "pedestrian"):
        parts.append(str(address["pedestrian"]))

    locality = (
        safe_get(address, "city")
        or safe_get(address, "town")
        or safe_get(address, "village")
        or safe_get(address, "suburb")
    )
    if locality:
        parts.append(str(locality))
    if safe_get(address, "postcode"):
        parts.append(str(address["postcode"]))

    if parts:
        return ", ".join(parts)
    return ",".join(str(safe_get(item, "display_name", "")).split(",")[:3])


class NominatimGeocoder:
    """
    Address resolution against Nominatim (OpenStreetMap).

    The shared `HttpJsonClient` should be built with `min_request_interval_s=1.0`:
    Nominatim's usage policy allows one request per second.
    """

    def __init__(
        self,
        *,
        http: HttpJsonClient,
        settings: GeocodingProviderSettings,
        cache: Optional[JsonFileCache] = None,
        cache_settings: Optional[CacheSettings] = None,
    ) -> None:
        self._http = http
        self._settings = settings
        self._cache = cache
        self._ttl_s = 86_400 if cache_settings is None else cache_settings.geocode_ttl_seconds

    def geocode(self, address: str, *, current_position: Optional[Coordinate] = None) -> Coordinate:
        if not address or not address.strip():
            raise AddressNotFound("Empty address", address=address)

        if is_current_position(address):
            if current_position is None:
                raise AddressNotFound("Current position is unavailable", address=address)
            return current_position

        cache_key = None
        if self._cache is not None:
            cache_key = self._cache.make_key("nominatim:geocode", {"base_url": self._http.base_url, "q": address})
            cached = self._cache.get(cache_key, ttl_seconds=self._ttl_s)
            if cached is not None:
                return Coordinate(lat=float(cached["lat"]), lng=float(cached["lng"]))

        bounded = {
            "q": qualify_address(address),
            "format": "json",
            "limit": 1,
            "accept-language": self._settings.language,
            "bounded": 1,
            "viewbox": self._settings.viewbox,
        }
        results = self._search(bounded)
        if not results:
            logger.info("No match for %r inside Paris; retrying France-wide", address)
            wider = {
                "q": address,
                "format": "json",
                "limit": 1,
                "accept-language": self._settings.language,
                "countrycodes": "fr",
            }
            results = self._search(wider)
        if not results:
            raise AddressNotFound(f"Address not found: {address}", address=address)

        best = results[0]
        lat = safe_float(safe_get(best, "lat"))
        lng = safe_float(safe_get(best, "lon"))
        if lat is None or lng is None:
            raise AddressNotFound(f"Address not found: {address}", address=address)
        logger.info("Geocoded %r -> %s", address, safe_get(best, "display_name", f"{lat},{lng}"))

        point = Coordinate(lat=lat, lng=lng)
        if self._cache is not None and cache_key is not None:
            self._cache.set(cache_key, {"lat": lat, "lng": lng})
        return point

    def search_addresses(self, query: str, *, limit: int = 10) -> list[AddressSuggestion]:
        if not query or len(query.strip()) < 3:
            return []

        params = {
            "q": qualify_address(query),
            "format": "json",
            "limit": limit,
            "accept-language": self._settings.language,
            "addressdetails": 1,
            "countrycodes": "fr",
            "bounded": 1,
            "viewbox": self._settings.viewbox,
        }
        try:
            data = self._search(params)
        except ProviderError as e:
            # Suggestions are best-effort; a failed lookup shows an empty list.
            logger.warning("Address search failed for %r: %s", query, e)
            return []

        suggestions: list[AddressSuggestion] = []
        for item in data:
            if not _is_paris_area(item):
                continue
            lat = safe_float(safe_get(item, "lat"))
            lng = safe_float(safe_get(item, "lon"))
            if lat is None or lng is None:
                continue
            postcode = str(safe_get(item, "address.postcode", ""))
            suggestions.append(
                AddressSuggestion(
                    display_name=_short_display_name(item),
                    full_name=str(safe_get(item, "display_name", "")),
                    lat=lat,
                    lng=lng,
                    kind=safe_get(item, "type"),
                    importance=safe_float(safe_get(item, "importance"), 0.0) or 0.0,
                    paris_bonus=1 if postcode.startswith("75") else 0,
                )
            )
        suggestions.sort(key=lambda s: s.importance + s.paris_bonus, reverse=True)
        return suggestions

    def reverse_geocode(self, point: Coordinate) -> str:
        data = self._http.get_json(
            "reverse",
            params={
                "lat": f"{point.lat:.6f}",
                "lon": f"{point.lng:.6f}",
                "format": "json",
                "accept-language": self._settings.language,
            },
        )
        if safe_get(data, "error"):
            raise AddressNotFound(str(data["error"]))
        name = safe_get(data, "display_name")
        if not name:
            raise AddressNotFound(f"No address at {point.lat:.5f},{point.lng:.5f}")
        return str(name)

    def _search(self, params: Mapping[str, Any]) -> list[Mapping[str, Any]]:
        data = self._http.get_json("search", params=params)
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, Mapping)]
