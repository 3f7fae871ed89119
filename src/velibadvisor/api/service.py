from __future__ import annotations

import logging
from typing import Optional

from velibadvisor.config.models import AppConfig
from velibadvisor.decision.alternatives import AlternativeEstimator
from velibadvisor.decision.engine import DecisionEngine, StationProvider
from velibadvisor.errors import AddressNotFound, ProviderError
from velibadvisor.providers.geocoding import NominatimGeocoder
from velibadvisor.providers.http_base import HttpJsonClient
from velibadvisor.providers.routing import OpenRouteServiceClient
from velibadvisor.providers.velib import VelibStationClient
from velibadvisor.schemas.core import AddressSuggestion, Coordinate, JourneyDecision, Station
from velibadvisor.utils.cache import JsonFileCache
from velibadvisor.utils.resilience import run_with_deadline


logger = logging.getLogger(__name__)


_NOT_FOUND_MESSAGES = {
    "departure": "The departure address could not be located. Please make it more specific.",
    "destination": "The destination address could not be located. Please make it more specific.",
}


# `JourneyService` is a thin application layer between HTTP routes / scripts and the decision engine.
# It owns address resolution (the one stage whose failures reach the user as errors) and the
# lifecycle of the HTTP clients behind the providers.
class JourneyService:
    def __init__(
        self,
        config: AppConfig,
        *,
        engine: DecisionEngine,
        geocoder: NominatimGeocoder,
        stations: StationProvider,
        clients: Optional[list[HttpJsonClient]] = None,
    ) -> None:
        self._config = config
        self._engine = engine
        self._geocoder = geocoder
        self._stations = stations
        self._clients = clients or []

    @classmethod
    def from_config(cls, config: AppConfig, *, cache: Optional[JsonFileCache] = None) -> "JourneyService":
        providers = config.providers
        if cache is None:
            cache = JsonFileCache(config.cache)
            # Nothing outlives the longest provider TTL.
            cache.purge_expired(
                max(config.cache.routes_ttl_seconds, config.cache.geocode_ttl_seconds, config.cache.stations_ttl_seconds)
            )

        def http(base_url: str, *, min_interval_s: float = 0.0) -> HttpJsonClient:
            return HttpJsonClient(
                base_url=base_url,
                timeout_s=providers.http_timeout_s,
                max_retries=providers.max_retries,
                backoff_factor=providers.backoff_factor,
                min_request_interval_s=min_interval_s,
                user_agent=providers.user_agent,
            )

        velib_http = http(providers.velib.base_url)
        routing_http = http(providers.routing.base_url)
        geocoding_http = http(
            providers.geocoding.base_url,
            min_interval_s=providers.geocoding.min_request_interval_s,
        )

        stations = VelibStationClient(
            http=velib_http,
            settings=providers.velib,
            decision=config.decision,
            cache=cache,
            cache_settings=config.cache,
        )
        routes = OpenRouteServiceClient(
            http=routing_http,
            settings=providers.routing,
            cache=cache,
            cache_settings=config.cache,
        )
        geocoder = NominatimGeocoder(
            http=geocoding_http,
            settings=providers.geocoding,
            cache=cache,
            cache_settings=config.cache,
        )
        engine = DecisionEngine(
            stations=stations,
            routes=routes,
            alternatives=AlternativeEstimator(config.decision),
            settings=config.decision,
            timeouts=config.timeouts,
            cycling_profile=providers.routing.cycling_profile,
        )
        return cls(
            config,
            engine=engine,
            geocoder=geocoder,
            stations=stations,
            clients=[velib_http, routing_http, geocoding_http],
        )

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def engine(self) -> DecisionEngine:
        return self._engine

    def resolve_address(
        self,
        address: str,
        *,
        role: str,
        current_position: Optional[Coordinate] = None,
    ) -> Coordinate:
        """Geocode one end of the journey; every failure becomes an `AddressNotFound` naming `role`."""

        try:
            return run_with_deadline(
                lambda: self._geocoder.geocode(address, current_position=current_position),
                timeout_s=self._config.timeouts.geocode_s,
                label=f"geocode {role}",
            )
        except (AddressNotFound, ProviderError) as e:
            logger.info("Could not resolve %s address %r: %s", role, address, e)
            raise AddressNotFound(_NOT_FOUND_MESSAGES[role], address=address, role=role) from e

    def analyze_addresses(
        self,
        origin: Optional[str],
        destination: str,
        *,
        current_position: Optional[Coordinate] = None,
    ) -> tuple[Coordinate, Coordinate, JourneyDecision]:
        # A missing origin means "start from where I am".
        origin_point = self.resolve_address(
            origin or "current position",
            role="departure",
            current_position=current_position,
        )
        destination_point = self.resolve_address(destination, role="destination", current_position=current_position)
        return origin_point, destination_point, self._engine.analyze_journey(origin_point, destination_point)

    def analyze_coordinates(self, origin: Coordinate, destination: Coordinate) -> JourneyDecision:
        return self._engine.analyze_journey(origin, destination)

    def nearby_stations(self, point: Coordinate, *, radius_m: Optional[float] = None) -> list[Station]:
        radius = self._config.decision.station_radius_m if radius_m is None else radius_m
        return self._stations.fetch_nearby_stations(point, radius)

    def search_addresses(self, query: str, *, limit: int = 10) -> list[AddressSuggestion]:
        return self._geocoder.search_addresses(query, limit=limit)

    def close(self) -> None:
        for client in self._clients:
            client.close()
