from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class AppSettings:
    name: str = "VelibAdvisor"


@dataclass(frozen=True)
class VelibProviderSettings:
    base_url: str
    dataset: str
    rows: int


@dataclass(frozen=True)
class RoutingProviderSettings:
    base_url: str
    api_key: Optional[str]
    cycling_profile: str = "cycling-regular"


@dataclass(frozen=True)
class GeocodingProviderSettings:
    base_url: str
    viewbox: str
    language: str
    min_request_interval_s: float = 1.0


@dataclass(frozen=True)
class ProviderSettings:
    velib: VelibProviderSettings
    routing: RoutingProviderSettings
    geocoding: GeocodingProviderSettings
    user_agent: str = "velibadvisor/0.1.0"
    http_timeout_s: float = 10.0
    max_retries: int = 2
    backoff_factor: float = 0.3


@dataclass(frozen=True)
class DecisionSettings:
    min_distance_m: float = 500.0
    max_distance_m: float = 10_000.0
    walking_speed_mps: float = 1.2
    station_radius_m: float = 750.0
    max_station_radius_m: float = 2000.0
    best_station_max_distance_m: float = 1000.0
    best_station_count: int = 3
    scarcity_threshold: int = 3
    scarcity_penalty_s: int = 300
    walk_cap_s: int = 300
    buffer_s: int = 120
    short_trip_buffer_s: int = 60
    short_trip_threshold_m: float = 2000.0
    abundant_threshold: int = 3
    clearly_faster_ratio: float = 0.8
    clearly_slower_ratio: float = 1.2
    abundant_tolerance_ratio: float = 1.1
    climb_threshold_m: float = 100.0


@dataclass(frozen=True)
class TimeoutSettings:
    provider_s: float = 5.0
    geocode_s: float = 5.0


@dataclass(frozen=True)
class CacheSettings:
    dir: Path
    ttl_seconds: int = 3600
    stations_ttl_seconds: int = 120
    routes_ttl_seconds: int = 86_400
    geocode_ttl_seconds: int = 86_400


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str
    file: Optional[Path] = None
    decision_file: Optional[Path] = None


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    providers: ProviderSettings
    decision: DecisionSettings
    timeouts: TimeoutSettings
    cache: CacheSettings
    logging: LoggingSettings
