from __future__ import annotations

# `logging` records radius expansions and feed anomalies without failing the lookup.
import logging
# Typing helpers keep parsing rules explicit while we still consume raw JSON dicts.
from typing import Any, Mapping, Optional

# Typed settings tell this client which dataset to query and how wide to search.
from velibadvisor.config.models import CacheSettings, DecisionSettings, VelibProviderSettings
# `HttpJsonClient` handles retries, throttling and HTTP details so this module stays focused on station semantics.
from velibadvisor.providers.http_base import HttpJsonClient
from velibadvisor.schemas.core import Coordinate, Station
from velibadvisor.utils.cache import JsonFileCache
from velibadvisor.utils.geo import haversine_m
from velibadvisor.utils.safe import safe_float, safe_get, safe_int


logger = logging.getLogger(__name__)


# `VelibStationClient` wraps the Paris open data real-time availability feed.
# Design goal: the decision engine consumes stable `Station` dataclasses even though the feed
# has optional fields, string-typed distances, and stations that are installed but not renting.
class VelibStationClient:
    def __init__(
        self,
        *,
        http: HttpJsonClient,
        settings: VelibProviderSettings,
        decision: DecisionSettings,
        cache: Optional[JsonFileCache] = None,
        cache_settings: Optional[CacheSettings] = None,
    ) -> None:
        self._http = http
        self._settings = settings
        # Walking speed and radius ceiling come from the decision policy so both stay consistent.
        self._walking_speed_mps = decision.walking_speed_mps
        self._max_radius_m = decision.max_station_radius_m
        self._cache = cache
        self._ttl_s = 120 if cache_settings is None else cache_settings.stations_ttl_seconds

    def fetch_nearby_stations(self, point: Coordinate, radius_m: float) -> list[Station]:
        """
        Return stations around `point`, nearest first.

        An empty result widens the search (doubling) until `max_station_radius_m`.
        Never returns None; an empty list means no station exists within the ceiling.
        """

        radius = float(radius_m)
        while True:
            stations = self._fetch(point, radius)
            if stations or radius >= self._max_radius_m:
                return stations
            widened = min(radius * 2, self._max_radius_m)
            logger.info(
                "No station within %.0fm of (%.5f, %.5f); widening search to %.0fm",
                radius,
                point.lat,
                point.lng,
                widened,
            )
            radius = widened

    def _fetch(self, point: Coordinate, radius_m: float) -> list[Station]:
        params = {
            "dataset": self._settings.dataset,
            "rows": self._settings.rows,
            "geofilter.distance": f"{point.lat:.6f},{point.lng:.6f},{int(round(radius_m))}",
        }

        cache_key = None
        if self._cache is not None:
            cache_key = self._cache.make_key(
                "velib:stations",
                {"base_url": self._http.base_url, "params": params},
            )
            cached = self._cache.get(cache_key, ttl_seconds=self._ttl_s)
            if cached is not None:
                return self.parse_records(cached, origin=point, walking_speed_mps=self._walking_speed_mps)

        data = self._http.get_json("search/", params=params)
        records = safe_get(data, "records", [])
        if not isinstance(records, list):
            logger.warning("Unexpected station payload shape: records=%r", type(records).__name__)
            records = []
        if self._cache is not None and cache_key is not None:
            self._cache.set(cache_key, records)
        return self.parse_records(records, origin=point, walking_speed_mps=self._walking_speed_mps)

    @classmethod
    def parse_records(
        cls,
        records: list[Mapping[str, Any]],
        *,
        origin: Coordinate,
        walking_speed_mps: float,
    ) -> list[Station]:
        stations: list[Station] = []
        for record in records:
            station = cls.parse_station(record, origin=origin, walking_speed_mps=walking_speed_mps)
            if station is not None:
                stations.append(station)
        stations.sort(key=lambda s: s.distance_m)
        return stations

    @staticmethod
    def parse_station(
        record: Mapping[str, Any],
        *,
        origin: Coordinate,
        walking_speed_mps: float,
    ) -> Optional[Station]:
        fields = safe_get(record, "fields", {})

        # Position is a [lat, lng] pair in `fields`; the GeoJSON geometry ([lng, lat]) is the fallback.
        lat = safe_float(safe_get(fields, "coordonnees_geo.0"))
        lng = safe_float(safe_get(fields, "coordonnees_geo.1"))
        if lat is None or lng is None:
            lng = safe_float(safe_get(record, "geometry.coordinates.0"))
            lat = safe_float(safe_get(record, "geometry.coordinates.1"))
        if lat is None or lng is None:
            logger.debug("Skipping station without coordinates: %s", safe_get(fields, "stationcode"))
            return None

        station_id = safe_get(fields, "stationcode") or safe_get(record, "recordid")
        if not station_id:
            return None

        bikes = max(safe_int(safe_get(fields, "numbikesavailable")), 0)
        docks = max(safe_int(safe_get(fields, "numdocksavailable")), 0)
        # A station can be installed yet closed for renting or returning.
        if str(safe_get(fields, "is_renting", "OUI")).upper() == "NON":
            bikes = 0
        if str(safe_get(fields, "is_returning", "OUI")).upper() == "NON":
            docks = 0

        # `dist` is a string when the query uses a distance geofilter; compute it otherwise.
        distance = safe_float(safe_get(fields, "dist"))
        if distance is None or distance <= 0:
            distance = haversine_m(origin.lat, origin.lng, lat, lng)

        mechanical = safe_get(fields, "mechanical")
        ebikes = safe_get(fields, "ebike")

        return Station(
            station_id=str(station_id),
            name=str(safe_get(fields, "name", station_id)),
            lat=lat,
            lng=lng,
            bikes_available=bikes,
            docks_available=docks,
            distance_m=float(distance),
            walk_duration_s=int(round(distance / walking_speed_mps)),
            mechanical_bikes=None if mechanical is None else safe_int(mechanical),
            ebikes=None if ebikes is None else safe_int(ebikes),
        )
