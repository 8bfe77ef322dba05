from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request

from .config import LOG_FORMAT, Settings
from .processor import run_batch

load_dotenv(Path(__file__).resolve().parents[1] / ".env")

settings = Settings.from_env()
logging.basicConfig(
    level=settings.log_level.upper(),
    format=LOG_FORMAT,
)

app = FastAPI(title="Order Pricing")


# ------------------------------------------------------------------
# helpers
# ------------------------------------------------------------------

def _extract_rows(payload: Any) -> list[dict[str, Any]]:
    """Accept ``{"orders": [...]}``, a bare list, or a single order object."""
    if isinstance(payload, dict):
        orders = payload.get("orders")
        if orders is None:
            orders = [payload]
    else:
        orders = payload

    if not isinstance(orders, list):
        raise HTTPException(status_code=400, detail="orders must be a list of objects")

    rows: list[dict[str, Any]] = []
    for item in orders:
        if not isinstance(item, dict):
            logging.warning("Skipping non-object order entry: %r", item)
            continue
        rows.append(item)
    return rows


# ------------------------------------------------------------------
# endpoints
# ------------------------------------------------------------------

@app.get("/")
async def root() -> dict[str, str]:
    return {
        "service": "order_pricing_service",
        "status": "ok",
        "endpoints": "/health, /orders/price",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/orders/price")
async def price_orders(request: Request) -> dict[str, Any]:
    if settings.api_bearer_token:
        auth = request.headers.get("Authorization", "")
        if auth != f"Bearer {settings.api_bearer_token}":
            raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be JSON") from None

    rows = _extract_rows(payload)
    logging.info("Pricing request with %d orders", len(rows))

    # each request is its own run with a fresh order history
    summary = run_batch(rows, settings)
    return {
        "summary": {
            "total": summary.total,
            "succeeded": summary.succeeded,
            "failed": summary.failed,
        },
        "results": [result.to_dict() for result in summary.results],
    }
