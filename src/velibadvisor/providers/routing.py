from __future__ import annotations

import logging
from typing import Any, Optional

from velibadvisor.config.models import CacheSettings, RoutingProviderSettings
from velibadvisor.errors import ProviderError
from velibadvisor.providers.http_base import HttpJsonClient
from velibadvisor.schemas.core import Coordinate, RouteResult
from velibadvisor.utils.cache import JsonFileCache
from velibadvisor.utils.geo import decode_polyline, encode_polyline, haversine_m
from velibadvisor.utils.safe import safe_float, safe_get


logger = logging.getLogger(__name__)


# Conservative urban cycling average (20 km/h) and road-network detour factor for estimates.
ESTIMATE_SPEED_MPS = 5.56
ESTIMATE_ROUTE_FACTOR = 1.2


def estimate_route(origin: Coordinate, destination: Coordinate) -> RouteResult:
    direct = haversine_m(origin.lat, origin.lng, destination.lat, destination.lng)
    return RouteResult(
        distance_m=direct * ESTIMATE_ROUTE_FACTOR,
        duration_s=int(round(direct / ESTIMATE_SPEED_MPS)),
        ascent_m=0.0,
        descent_m=0.0,
        is_estimated=True,
        points=(),
    )


class OpenRouteServiceClient:
    """
    Directions client for OpenRouteService.

    `compute_route` never raises on provider trouble: a missing API key, an HTTP error or an
    unusable payload all fall back to `estimate_route` with `is_estimated=True`.
    """

    def __init__(
        self,
        *,
        http: HttpJsonClient,
        settings: RoutingProviderSettings,
        cache: Optional[JsonFileCache] = None,
        cache_settings: Optional[CacheSettings] = None,
    ) -> None:
        self._http = http
        self._settings = settings
        self._cache = cache
        self._ttl_s = 86_400 if cache_settings is None else cache_settings.routes_ttl_seconds

    def compute_route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: Optional[str] = None,
    ) -> RouteResult:
        profile = profile or self._settings.cycling_profile
        if not self._settings.api_key:
            logger.warning("No routing API key configured; using estimated %s route", profile)
            return estimate_route(origin, destination)

        body = {
            "coordinates": [[origin.lng, origin.lat], [destination.lng, destination.lat]],
            "instructions": False,
            "elevation": True,
        }

        cache_key = None
        if self._cache is not None:
            cache_key = self._cache.make_key(
                "ors:directions",
                {"base_url": self._http.base_url, "profile": profile, "body": body},
            )
            cached = self._cache.get(cache_key, ttl_seconds=self._ttl_s)
            if cached is not None:
                route = self.parse_route(cached)
                if route is not None:
                    return route

        try:
            data = self._http.post_json(
                f"v2/directions/{profile}",
                body=body,
                headers={"Authorization": self._settings.api_key},
            )
        except ProviderError as e:
            logger.warning("Routing provider failed (%s); using estimated %s route", e, profile)
            return estimate_route(origin, destination)

        route = self.parse_route(data)
        if route is None:
            logger.warning("Routing provider returned no usable route; using estimated %s route", profile)
            return estimate_route(origin, destination)

        if self._cache is not None and cache_key is not None:
            self._cache.set(cache_key, self._cacheable(route))
        return route

    @staticmethod
    def parse_route(data: Any) -> Optional[RouteResult]:
        route = safe_get(data, "routes.0")
        if route is None:
            return None
        distance = safe_float(safe_get(route, "summary.distance"))
        duration = safe_float(safe_get(route, "summary.duration"))
        if distance is None or duration is None:
            return None

        # ORS reports climb on the route object; older payloads put it in the summary.
        ascent = safe_float(safe_get(route, "ascent"), safe_float(safe_get(route, "summary.ascent"), 0.0))
        descent = safe_float(safe_get(route, "descent"), safe_float(safe_get(route, "summary.descent"), 0.0))

        geometry = safe_get(route, "geometry")
        points = ()
        if isinstance(geometry, str) and geometry:
            # Elevation-enabled requests encode a third (height) value per point.
            dimensions = 3 if safe_get(route, "elevation", True) else 2
            points = tuple(decode_polyline(geometry, dimensions=dimensions))

        return RouteResult(
            distance_m=distance,
            duration_s=int(round(duration)),
            ascent_m=float(ascent or 0.0),
            descent_m=float(descent or 0.0),
            is_estimated=False,
            points=points,
        )

    @staticmethod
    def _cacheable(route: RouteResult) -> dict[str, Any]:
        # Re-encoded as 2D; `parse_route` reads it back with the same shape as a live response.
        return {
            "routes": [
                {
                    "summary": {"distance": route.distance_m, "duration": route.duration_s},
                    "ascent": route.ascent_m,
                    "descent": route.descent_m,
                    "geometry": encode_polyline(route.points),
                    "elevation": False,
                }
            ]
        }
