from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Mapping

import pandas as pd
from dotenv import load_dotenv

from order_pricing.app.config import Settings, configure_logging
from order_pricing.app.logic import money
from order_pricing.app.orders_csv import read_orders
from order_pricing.app.processor import ProcessResult, run_batch


REPORT_COLUMNS = [
    "orderId",
    "customer",
    "productId",
    "productName",
    "quantity",
    "unitPrice",
    "status",
    "reason",
    "flaggedForReview",
    "subtotal",
    "discountRate",
    "discountedTotal",
    "tax",
    "shipping",
    "finalTotal",
]


def build_report(rows: list[Mapping[str, Any]], results: list[ProcessResult]) -> pd.DataFrame:
    """One report line per input row; pricing columns stay empty for skipped orders."""
    report_rows: list[dict[str, Any]] = []
    for row, result in zip(rows, results):
        pricing = result.pricing
        report_rows.append({
            "orderId": result.order_id,
            "customer": row.get("customer_name", ""),
            "productId": row.get("product_id", ""),
            "productName": row.get("product_name", ""),
            "quantity": row.get("quantity", ""),
            "unitPrice": row.get("unit_price", ""),
            "status": "processed" if result.processed else "skipped",
            "reason": result.reason,
            "flaggedForReview": result.flagged_for_review,
            "subtotal": float(money(pricing.subtotal)) if pricing else None,
            "discountRate": float(pricing.discount_rate) if pricing else None,
            "discountedTotal": float(money(pricing.discounted_total)) if pricing else None,
            "tax": float(money(pricing.tax)) if pricing else None,
            "shipping": float(money(pricing.shipping)) if pricing else None,
            "finalTotal": float(money(pricing.final_total)) if pricing else None,
        })
    return pd.DataFrame(report_rows, columns=REPORT_COLUMNS)


def write_report(df: pd.DataFrame, out: str | Path) -> None:
    out_path = Path(out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if out_path.suffix.lower() in {".xlsx", ".xls"}:
        df.to_excel(out_path, index=False)
    else:
        df.to_csv(out_path, index=False)


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--input", dest="orders_csv", help="orders CSV (default: $ORDERS_CSV)")
    parser.add_argument("--out", dest="out", required=True, help=".xlsx or .csv report path")
    args = parser.parse_args()

    load_dotenv(Path(__file__).resolve().parents[1] / ".env")
    settings = Settings.from_env()
    configure_logging(settings)

    try:
        rows = read_orders(args.orders_csv or settings.orders_csv)
    except FileNotFoundError as exc:
        message = f"FATAL: {exc}"
        print(message)
        logging.critical(message)
        return 1

    summary = run_batch(rows, settings)

    df = build_report(rows, summary.results)
    write_report(df, args.out)
    logging.info("Report written to %s", args.out)
    print(f"Saved {len(df)} rows to {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
