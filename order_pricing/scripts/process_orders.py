from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path

from dotenv import load_dotenv

from order_pricing.app.config import Settings, configure_logging
from order_pricing.app.orders_csv import read_orders
from order_pricing.app.processor import BANNER, run_batch


def main() -> int:
    parser = argparse.ArgumentParser(description="Price a CSV batch of orders.")
    parser.add_argument("--input", dest="orders_csv", help="orders CSV (default: $ORDERS_CSV)")
    parser.add_argument("--log-file", dest="log_file", help="log file (default: $LOG_FILE)")
    parser.add_argument("--log-level", dest="log_level", help="log level (default: $LOG_LEVEL)")
    args = parser.parse_args()

    load_dotenv(Path(__file__).resolve().parents[1] / ".env")
    settings = Settings.from_env()
    overrides = {k: v for k, v in vars(args).items() if v is not None}
    if overrides:
        settings = dataclasses.replace(settings, **overrides)
    configure_logging(settings)

    print(BANNER)
    print("  ORDER PROCESSING SYSTEM")
    print("  Holiday Rush Batch Processor")
    print(BANNER)

    logging.info(BANNER)
    logging.info("ORDER PROCESSOR STARTED")
    logging.info("Processing file: %s", settings.orders_csv)
    logging.info(BANNER)

    try:
        rows = read_orders(settings.orders_csv)
    except FileNotFoundError as exc:
        message = f"FATAL: {exc}"
        print(message)
        logging.critical(message)
        return 1

    summary = run_batch(rows, settings)

    print("\nProcessing complete!")
    print(f"  Total Orders: {summary.total}")
    print(f"  Successful:   {summary.succeeded}")
    print(f"  Failed:       {summary.failed}")
    if settings.log_file:
        print(f"\nCheck {settings.log_file} for detailed output.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
