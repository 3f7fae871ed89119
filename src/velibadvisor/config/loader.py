from __future__ import annotations

from dataclasses import fields
import json
import math
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from velibadvisor.config.models import (
    AppConfig,
    AppSettings,
    CacheSettings,
    DecisionSettings,
    GeocodingProviderSettings,
    LoggingSettings,
    ProviderSettings,
    RoutingProviderSettings,
    TimeoutSettings,
    VelibProviderSettings,
)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def load_dotenv_if_available(path: str = ".env") -> None:
    try:
        from dotenv import load_dotenv  # type: ignore
    except ModuleNotFoundError:
        return
    load_dotenv(path)


def _as_path(value: str, *, base_dir: Path) -> Path:
    candidate = Path(value)
    return candidate if candidate.is_absolute() else (base_dir / candidate)


def _coerce_number(name: str, value: Any, *, like: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"decision.{name} must be a number, got {value!r}")
    if isinstance(like, int):
        if not float(value).is_integer():
            raise ValueError(f"decision.{name} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def _decision_settings(raw: Mapping[str, Any]) -> DecisionSettings:
    defaults = DecisionSettings()
    known = {f.name for f in fields(DecisionSettings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown decision settings: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for name in known:
        default = getattr(defaults, name)
        values[name] = _coerce_number(name, raw.get(name, default), like=default)
    decision = DecisionSettings(**values)

    if decision.min_distance_m < 0 or decision.max_distance_m <= decision.min_distance_m:
        raise ValueError("decision.max_distance_m must be greater than decision.min_distance_m >= 0")
    if decision.walking_speed_mps <= 0:
        raise ValueError("decision.walking_speed_mps must be > 0")
    if decision.station_radius_m <= 0 or decision.max_station_radius_m < decision.station_radius_m:
        raise ValueError("decision.max_station_radius_m must be >= decision.station_radius_m > 0")
    if decision.best_station_count < 1:
        raise ValueError("decision.best_station_count must be >= 1")
    if not (decision.clearly_faster_ratio <= 1.0 <= decision.clearly_slower_ratio):
        raise ValueError("decision ratios must satisfy clearly_faster_ratio <= 1 <= clearly_slower_ratio")
    if not (1.0 <= decision.abundant_tolerance_ratio <= decision.clearly_slower_ratio):
        raise ValueError("decision.abundant_tolerance_ratio must satisfy 1 <= ratio <= clearly_slower_ratio")
    return decision


def load_config(path: Optional[str | Path] = None, *, base_dir: Optional[Path] = None) -> AppConfig:
    """
    Load typed application config from JSON.

    - Path resolution is relative to `base_dir` (defaults to current working directory).
    - `.env` is loaded when python-dotenv is installed (dev convenience).
    - `ORS_API_KEY` and `VELIBADVISOR_LOG_LEVEL` override the file when set.
    """

    load_dotenv_if_available()

    config_path = Path(
        path
        or os.getenv("VELIBADVISOR_CONFIG_PATH", "config/default.json")
    ).resolve()
    base_dir = (base_dir or Path.cwd()).resolve()

    raw = json.loads(config_path.read_text(encoding="utf-8"))

    app_raw: Mapping[str, Any] = raw.get("app", {})
    app = AppSettings(name=str(app_raw.get("name", "VelibAdvisor")))

    providers_raw: Mapping[str, Any] = raw.get("providers", {})
    velib_raw: Mapping[str, Any] = providers_raw.get("velib", {})
    routing_raw: Mapping[str, Any] = providers_raw.get("routing", {})
    geocoding_raw: Mapping[str, Any] = providers_raw.get("geocoding", {})
    if not velib_raw.get("base_url") or not routing_raw.get("base_url") or not geocoding_raw.get("base_url"):
        raise ValueError("Config missing required fields: providers.{velib,routing,geocoding}.base_url")

    api_key = os.getenv("ORS_API_KEY") or routing_raw.get("api_key") or None
    providers = ProviderSettings(
        velib=VelibProviderSettings(
            base_url=str(velib_raw["base_url"]),
            dataset=str(velib_raw.get("dataset", "velib-disponibilite-en-temps-reel")),
            rows=int(velib_raw.get("rows", 30)),
        ),
        routing=RoutingProviderSettings(
            base_url=str(routing_raw["base_url"]),
            api_key=None if api_key is None else str(api_key),
            cycling_profile=str(routing_raw.get("cycling_profile", "cycling-regular")),
        ),
        geocoding=GeocodingProviderSettings(
            base_url=str(geocoding_raw["base_url"]),
            viewbox=str(geocoding_raw.get("viewbox", "2.2241,48.7965,2.4699,48.9115")),
            language=str(geocoding_raw.get("language", "fr")),
            min_request_interval_s=float(geocoding_raw.get("min_request_interval_s", 1.0)),
        ),
        user_agent=str(providers_raw.get("user_agent", "velibadvisor/0.1.0")),
        http_timeout_s=float(providers_raw.get("http_timeout_s", 10.0)),
        max_retries=int(providers_raw.get("max_retries", 2)),
        backoff_factor=float(providers_raw.get("backoff_factor", 0.3)),
    )

    decision = _decision_settings(raw.get("decision", {}))

    timeouts_raw: Mapping[str, Any] = raw.get("timeouts", {})
    timeouts = TimeoutSettings(
        provider_s=float(timeouts_raw.get("provider_s", 5.0)),
        geocode_s=float(timeouts_raw.get("geocode_s", 5.0)),
    )
    if timeouts.provider_s <= 0 or timeouts.geocode_s <= 0:
        raise ValueError("timeouts must be > 0")

    cache_raw: Mapping[str, Any] = raw.get("cache", {})
    cache = CacheSettings(
        dir=_as_path(str(cache_raw.get("dir", "data/cache")), base_dir=base_dir),
        ttl_seconds=int(cache_raw.get("ttl_seconds", 3600)),
        stations_ttl_seconds=int(cache_raw.get("stations_ttl_seconds", 120)),
        routes_ttl_seconds=int(cache_raw.get("routes_ttl_seconds", 86_400)),
        geocode_ttl_seconds=int(cache_raw.get("geocode_ttl_seconds", 86_400)),
    )

    logging_raw: Mapping[str, Any] = raw.get("logging", {})
    file_value = logging_raw.get("file")
    log_file = None if not file_value else _as_path(str(file_value), base_dir=base_dir)
    decision_value = logging_raw.get("decision_file")
    decision_file = None if not decision_value else _as_path(str(decision_value), base_dir=base_dir)
    level = os.getenv("VELIBADVISOR_LOG_LEVEL") or str(logging_raw.get("level", "INFO"))
    if level.upper() not in _VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}")
    logging_settings = LoggingSettings(
        level=level.upper(),
        format=str(logging_raw.get("format", "%(asctime)s %(levelname)s %(name)s - %(message)s")),
        file=log_file,
        decision_file=decision_file,
    )

    return AppConfig(
        app=app,
        providers=providers,
        decision=decision,
        timeouts=timeouts,
        cache=cache,
        logging=logging_settings,
    )
