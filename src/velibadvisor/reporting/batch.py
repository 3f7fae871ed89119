from __future__ import annotations

import logging
from typing import Iterable

import pandas as pd

from velibadvisor.decision.engine import DecisionEngine
from velibadvisor.errors import InvalidInput
from velibadvisor.schemas.core import Coordinate, JourneyDecision


logger = logging.getLogger(__name__)


INPUT_COLUMNS = ["origin_lat", "origin_lng", "destination_lat", "destination_lng"]

OUTPUT_COLUMNS = [
    "recommend",
    "reason_code",
    "reason",
    "direct_distance_m",
    "total_velib_duration_s",
    "alternative_mode",
    "alternative_duration_s",
    "route_is_estimated",
    "departure_station",
    "departure_bikes",
    "arrival_station",
    "arrival_docks",
    "error",
]


def decision_row(decision: JourneyDecision) -> dict[str, object]:
    departure = decision.best_departure_stations[0] if decision.best_departure_stations else None
    arrival = decision.best_arrival_stations[0] if decision.best_arrival_stations else None
    alternative = decision.alternative
    return {
        "recommend": decision.recommend,
        "reason_code": decision.reason_code,
        "reason": decision.reason,
        "direct_distance_m": decision.direct_distance_m,
        "total_velib_duration_s": decision.total_velib_duration_s,
        "alternative_mode": None if alternative is None else alternative.mode.value,
        "alternative_duration_s": None if alternative is None else alternative.duration_s,
        "route_is_estimated": None if decision.route is None else decision.route.is_estimated,
        "departure_station": None if departure is None else departure.name,
        "departure_bikes": None if departure is None else departure.bikes_available,
        "arrival_station": None if arrival is None else arrival.name,
        "arrival_docks": None if arrival is None else arrival.docks_available,
        "error": decision.error,
    }


def decisions_to_frame(decisions: Iterable[JourneyDecision]) -> pd.DataFrame:
    return pd.DataFrame([decision_row(d) for d in decisions], columns=OUTPUT_COLUMNS)


def analyze_pairs_frame(engine: DecisionEngine, pairs: pd.DataFrame) -> pd.DataFrame:
    """
    Run the engine over a table of origin/destination pairs.

    Input needs `origin_lat, origin_lng, destination_lat, destination_lng`; extra columns are kept.
    Rows with unusable coordinates get `reason_code="invalid_input"` instead of aborting the batch.
    """

    missing = [c for c in INPUT_COLUMNS if c not in pairs.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")

    coords = pairs[INPUT_COLUMNS].apply(pd.to_numeric, errors="coerce")

    rows: list[dict[str, object]] = []
    for idx, row in coords.iterrows():
        origin = Coordinate(lat=float(row["origin_lat"]), lng=float(row["origin_lng"]))
        destination = Coordinate(lat=float(row["destination_lat"]), lng=float(row["destination_lng"]))
        try:
            decision = engine.analyze_journey(origin, destination)
        except InvalidInput as e:
            logger.warning("Row %s skipped: %s", idx, e)
            invalid = {c: None for c in OUTPUT_COLUMNS}
            invalid.update(recommend=False, reason_code="invalid_input", reason=str(e), error=True)
            rows.append(invalid)
            continue
        rows.append(decision_row(decision))

    out = pd.DataFrame(rows, columns=OUTPUT_COLUMNS, index=pairs.index)
    return pd.concat([pairs, out], axis=1)
