from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from .config import DiscountConfig, PricingRates, Settings
from .logic import (
    DiscountCalculator,
    OrderHistory,
    PricingResult,
    describe_rejection,
    fmt_money,
    parse_record,
    price_order,
    validate_order,
)


BANNER = "=" * 60

InventoryCheck = Callable[[str], bool]


@dataclass
class ProcessResult:
    order_id: str
    processed: bool
    reason: str
    flagged_for_review: bool = False
    pricing: PricingResult | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view; money fields are rounded to cents as strings."""
        data: dict[str, Any] = {
            "order_id": self.order_id,
            "processed": self.processed,
            "reason": self.reason,
            "flagged_for_review": self.flagged_for_review,
        }
        if self.pricing is not None:
            rounded = self.pricing.rounded()
            data["pricing"] = {
                "subtotal": str(rounded.subtotal),
                "discount_rate": str(rounded.discount_rate),
                "discount_amount": str(rounded.discount_amount),
                "discounted_total": str(rounded.discounted_total),
                "tax": str(rounded.tax),
                "shipping": str(rounded.shipping),
                "final_total": str(rounded.final_total),
            }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class BatchSummary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[ProcessResult] = field(default_factory=list)

    def add(self, result: ProcessResult) -> None:
        self.results.append(result)
        self.total += 1
        if result.processed:
            self.succeeded += 1
        else:
            self.failed += 1


# ------------------------------------------------------------------
# collaborators
# ------------------------------------------------------------------

def check_inventory(product_id: str) -> bool:
    """Stock lookup placeholder: every product is considered available."""
    logging.debug("Checking inventory for product: %s", product_id)
    logging.debug("Inventory check passed for %s", product_id)
    return True


# ------------------------------------------------------------------
# single order
# ------------------------------------------------------------------

def process_order(
    row: Mapping[str, Any],
    calculator: DiscountCalculator,
    rates: PricingRates,
    inventory_check: InventoryCheck = check_inventory,
) -> ProcessResult:
    """Price one order row; never raises.

    Validation failures come back as ``processed=False`` with the reject
    reason. Anything unexpected is logged at CRITICAL and reported as
    ``unexpected_error`` so the rest of the batch keeps going.
    """
    order_id = "UNKNOWN"

    try:
        record = parse_record(row)
        order_id = record.order_id

        logging.info("========== Processing Order %s ==========", order_id)
        logging.info("Customer: %s", record.customer_display)
        logging.info("Product: %s", record.product_name)
        logging.debug("Parsing quantity value: '%s'", record.quantity_text)
        logging.debug("Parsing unit price value: '%s'", record.unit_price_text)

        outcome = validate_order(record)
        if outcome.flagged_for_review:
            logging.warning("Order %s has zero quantity - flagging for review", order_id)
        if not outcome.ok:
            logging.error(describe_rejection(record, outcome.reason))
            return ProcessResult(
                order_id=order_id,
                processed=False,
                reason=outcome.reason.value,
                flagged_for_review=outcome.flagged_for_review,
            )

        inventory_check(record.product_id)

        pricing = price_order(record, calculator, rates)

        logging.info("Order %s processed successfully!", order_id)
        logging.info("  Customer: %s", record.customer_display)
        logging.info("  Product: %s", record.product_name)
        logging.info("  Subtotal: %s", fmt_money(pricing.subtotal))
        logging.info("  After Discount: %s", fmt_money(pricing.discounted_total))
        logging.info("  Tax: %s", fmt_money(pricing.tax))
        logging.info("  Shipping: %s", fmt_money(pricing.shipping))
        logging.info("  FINAL TOTAL: %s", fmt_money(pricing.final_total))
        logging.info("========== Order %s Complete ==========", order_id)

        return ProcessResult(
            order_id=order_id,
            processed=True,
            reason="processed",
            flagged_for_review=outcome.flagged_for_review,
            pricing=pricing,
        )
    except Exception as exc:
        logging.critical("UNEXPECTED ERROR on order %s: %s", order_id, exc, exc_info=True)
        return ProcessResult(
            order_id=order_id,
            processed=False,
            reason="unexpected_error",
            error=str(exc),
        )


# ------------------------------------------------------------------
# batch
# ------------------------------------------------------------------

def process_batch(
    rows: Iterable[Mapping[str, Any]],
    discount: DiscountConfig,
    rates: PricingRates,
    inventory_check: InventoryCheck = check_inventory,
) -> BatchSummary:
    """Process *rows* one at a time, in order, sharing a single order history."""
    calculator = DiscountCalculator(discount, OrderHistory())
    summary = BatchSummary()

    for row in rows:
        summary.add(process_order(row, calculator, rates, inventory_check))

    logging.info(BANNER)
    logging.info("BATCH PROCESSING COMPLETE")
    logging.info("  Total Orders: %d", summary.total)
    logging.info("  Successful: %d", summary.succeeded)
    logging.info("  Failed: %d", summary.failed)
    logging.info(BANNER)
    return summary


def run_batch(rows: Iterable[Mapping[str, Any]], settings: Settings) -> BatchSummary:
    return process_batch(rows, settings.discount, settings.rates)
