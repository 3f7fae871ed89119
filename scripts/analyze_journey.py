from __future__ import annotations

import sys
from pathlib import Path

# Allow running scripts without requiring an editable install (`pip install -e .`).
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
sys.path.insert(0, str(SRC_PATH))

import argparse
import json
import logging

from velibadvisor.api.service import JourneyService
from velibadvisor.config.loader import load_config
from velibadvisor.errors import AddressNotFound, InvalidInput
from velibadvisor.schemas.core import Coordinate, JourneyDecision
from velibadvisor.utils.logging import configure_logging


logger = logging.getLogger(__name__)


def _parse_point(value: str) -> Coordinate:
    try:
        lat_s, lng_s = value.split(",", 1)
        return Coordinate(lat=float(lat_s), lng=float(lng_s))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected 'lat,lng', got {value!r}") from e


def _print_summary(decision: JourneyDecision) -> None:
    verdict = "YES, take a Vélib" if decision.recommend else "NO, skip the Vélib"
    print(verdict)
    print(decision.reason)
    for label, stations, resource in (
        ("Departure", decision.best_departure_stations, "bikes"),
        ("Arrival", decision.best_arrival_stations, "docks"),
    ):
        for s in stations:
            count = s.bikes_available if resource == "bikes" else s.docks_available
            print(f"  {label}: {s.name} ({s.to_dict()['distance_text']}, {count} {resource})")
    if decision.alternative is not None:
        alt = decision.alternative
        print(f"Alternative: {alt.mode.value} ({alt.duration_text})")
        if alt.breakdown:
            print(f"  {alt.breakdown}")


def main() -> int:
    p = argparse.ArgumentParser(description="Should I take a Vélib? Analyze one journey.")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--from", dest="origin", help="Departure address")
    src.add_argument("--from-coords", dest="origin_coords", type=_parse_point, help="Departure as 'lat,lng'")
    dst = p.add_mutually_exclusive_group(required=True)
    dst.add_argument("--to", dest="destination", help="Destination address")
    dst.add_argument("--to-coords", dest="destination_coords", type=_parse_point, help="Destination as 'lat,lng'")
    p.add_argument("--config", default=None)
    p.add_argument("--json", action="store_true", help="Print the full decision as JSON")
    args = p.parse_args()

    config = load_config(args.config)
    configure_logging(config.logging)
    service = JourneyService.from_config(config)

    try:
        origin = args.origin_coords or service.resolve_address(args.origin, role="departure")
        destination = args.destination_coords or service.resolve_address(args.destination, role="destination")
        decision = service.analyze_coordinates(origin, destination)
    except (AddressNotFound, InvalidInput) as e:
        print(str(e), file=sys.stderr)
        return 2
    finally:
        service.close()

    if args.json:
        print(json.dumps(decision.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_summary(decision)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
