from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from order_pricing.app.config import LOG_FORMAT, Settings
from order_pricing.app.orders_csv import read_orders
from order_pricing.app.processor import run_batch


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--file",
        default="orders.csv",
        help="CSV file in demo folder (default: orders.csv)",
    )
    args = parser.parse_args()

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    rows = read_orders(Path(__file__).with_name(args.file))
    summary = run_batch(rows, settings)

    print("Results:")
    for result in summary.results:
        print(result.to_dict())

    print(f"Total: {summary.total}  Successful: {summary.succeeded}  Failed: {summary.failed}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
