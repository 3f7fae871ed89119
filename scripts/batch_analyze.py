from __future__ import annotations

import sys
from pathlib import Path

# Allow running scripts without requiring an editable install (`pip install -e .`).
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
sys.path.insert(0, str(SRC_PATH))

import argparse
import logging

import pandas as pd

from velibadvisor.api.service import JourneyService
from velibadvisor.config.loader import load_config
from velibadvisor.reporting.batch import analyze_pairs_frame
from velibadvisor.utils.logging import configure_logging


logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Analyze a CSV of origin/destination pairs.")
    parser.add_argument("input", help="CSV with origin_lat, origin_lng, destination_lat, destination_lng")
    parser.add_argument("--output", default="data/reports/journeys.csv")
    parser.add_argument("--config", default=None)
    args = parser.parse_args()

    config = load_config(args.config)
    configure_logging(config.logging)

    pairs = pd.read_csv(args.input)
    service = JourneyService.from_config(config)
    try:
        # The engine is reached through the service so providers share one cache and HTTP pool.
        report = analyze_pairs_frame(service.engine, pairs)
    finally:
        service.close()

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    report.to_csv(output, index=False)
    recommended = int(report["recommend"].fillna(False).astype(bool).sum())
    logger.info("Wrote %s journeys (%s recommended) to %s", len(report), recommended, output)


if __name__ == "__main__":
    main()
