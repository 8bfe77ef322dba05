from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from enum import Enum
from typing import Any, Iterator, Mapping

from .config import DiscountConfig, PricingRates


ZERO = Decimal("0")
CENT = Decimal("0.01")

_INT_RE = re.compile(r"[+-]?[0-9]+")
_DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")

ORDER_FIELDS = (
    "order_id",
    "customer_name",
    "product_id",
    "product_name",
    "quantity",
    "unit_price",
)


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_int(value: str) -> int | None:
    """Base-10 integer or ``None``; never raises."""
    if not _INT_RE.fullmatch(value):
        return None
    return int(value, 10)


def _to_decimal(value: str) -> Decimal | None:
    if not _DECIMAL_RE.fullmatch(value):
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        return None


def money(value: Decimal) -> Decimal:
    """Round to cents; ``-0.00`` comes back as ``0.00``."""
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the cents
        ctx.prec = max(ctx.prec, value.adjusted() + 4)
        rounded = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        return rounded.copy_abs()
    return rounded


def fmt_money(value: Decimal) -> str:
    return f"${money(value)}"


# ---------------------------------------------------------------------------
# record parser
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OrderRecord:
    order_id: str
    customer_name: str
    product_id: str
    product_name: str
    quantity_text: str
    unit_price_text: str
    quantity: int | None        # None when quantity_text is not an integer
    unit_price: Decimal | None  # None when unit_price_text is not a number

    @property
    def customer_display(self) -> str:
        return self.customer_name or "Unknown"


def parse_record(row: Mapping[str, Any]) -> OrderRecord:
    """Turn one raw tabular row into an :class:`OrderRecord`.

    Missing cells become ``""``; numeric fields that do not parse are kept
    as text with a ``None`` sentinel so the validator can report them.
    """
    values = {name: _text(row.get(name)) for name in ORDER_FIELDS}
    return OrderRecord(
        order_id=values["order_id"] or "UNKNOWN",
        customer_name=values["customer_name"],
        product_id=values["product_id"],
        product_name=values["product_name"],
        quantity_text=values["quantity"],
        unit_price_text=values["unit_price"],
        quantity=_to_int(values["quantity"]),
        unit_price=_to_decimal(values["unit_price"]),
    )


# ---------------------------------------------------------------------------
# order validator
# ---------------------------------------------------------------------------

class RejectReason(str, Enum):
    INVALID_QUANTITY = "InvalidQuantity"
    INVALID_PRICE = "InvalidPrice"
    NEGATIVE_QUANTITY = "NegativeQuantity"
    NEGATIVE_PRICE = "NegativePrice"


@dataclass(frozen=True)
class ValidationOutcome:
    reason: RejectReason | None
    flagged_for_review: bool = False

    @property
    def ok(self) -> bool:
        return self.reason is None


def validate_order(record: OrderRecord) -> ValidationOutcome:
    """Check numeric fields in a fixed order, stopping at the first failure.

    A zero quantity is accepted but flagged for review.
    """
    if record.quantity is None:
        return ValidationOutcome(RejectReason.INVALID_QUANTITY)
    if record.unit_price is None:
        return ValidationOutcome(RejectReason.INVALID_PRICE)
    if record.quantity < 0:
        return ValidationOutcome(RejectReason.NEGATIVE_QUANTITY)

    flagged = record.quantity == 0
    if record.unit_price < 0:
        return ValidationOutcome(RejectReason.NEGATIVE_PRICE, flagged)
    return ValidationOutcome(None, flagged)


def describe_rejection(record: OrderRecord, reason: RejectReason) -> str:
    if reason is RejectReason.INVALID_QUANTITY:
        return f"Invalid quantity '{record.quantity_text}' for order {record.order_id} - skipping"
    if reason is RejectReason.INVALID_PRICE:
        return f"Invalid price '{record.unit_price_text}' for order {record.order_id} - skipping"
    if reason is RejectReason.NEGATIVE_QUANTITY:
        return f"Negative quantity ({record.quantity}) for order {record.order_id} - skipping"
    return f"Negative price (${record.unit_price}) for order {record.order_id} - skipping"


# ---------------------------------------------------------------------------
# discount calculator
# ---------------------------------------------------------------------------

class OrderHistory:
    """Order ids seen so far in one run, in processing order."""

    def __init__(self) -> None:
        self._ids: list[str] = []

    def previous(self) -> str | None:
        return self._ids[-1] if self._ids else None

    def append(self, order_id: str) -> None:
        self._ids.append(order_id)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"OrderHistory({self._ids!r})"


@dataclass(frozen=True)
class DiscountOutcome:
    rate: Decimal
    amount: Decimal
    discounted_total: Decimal


class DiscountCalculator:
    def __init__(self, config: DiscountConfig, history: OrderHistory | None = None) -> None:
        self.config = config
        self.history = history if history is not None else OrderHistory()

    def bonus_rate(self, product_id: Any) -> Decimal:
        """Category bonus taken from the second ``-`` segment of *product_id*.

        Missing or short ids give no bonus instead of failing the order.
        """
        if not product_id or not isinstance(product_id, str):
            logging.warning("Invalid product ID: %s", product_id)
            return ZERO

        parts = product_id.split("-")
        if len(parts) < 2:
            logging.warning("Malformed product ID: %s (expected format: XXX-YY-ZZZ)", product_id)
            return ZERO

        if self.config.is_bonus_category(parts[1]):
            return self.config.category_bonus
        return ZERO

    def loyalty_bonus(self, order_id: str) -> Decimal:
        """Bonus when the order processed just before this one is a loyalty order.

        The previous id is read first; *order_id* is appended afterwards so an
        order never matches itself.
        """
        previous = self.history.previous()
        self.history.append(order_id)

        if previous and previous.startswith(self.config.loyalty_prefix):
            return self.config.loyalty_bonus
        return ZERO

    def discount_rate(self, order_id: str, product_id: Any) -> Decimal:
        rate = self.config.base_rate
        rate += self.bonus_rate(product_id)
        rate += self.loyalty_bonus(order_id)
        return max(ZERO, min(rate, self.config.max_discount))

    def apply_holiday_discount(self, subtotal: Decimal, order_id: str, product_id: Any) -> DiscountOutcome:
        logging.info("Applying holiday discount for order %s", order_id)
        rate = self.discount_rate(order_id, product_id)
        amount = subtotal * rate
        discounted = subtotal - amount
        logging.debug(
            "Discount applied: %s off (rate %s), new total: %s",
            fmt_money(amount), rate, fmt_money(discounted),
        )
        return DiscountOutcome(rate=rate, amount=amount, discounted_total=discounted)


# ---------------------------------------------------------------------------
# pricing pipeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PricingResult:
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    discounted_total: Decimal
    tax: Decimal
    shipping: Decimal
    final_total: Decimal

    def rounded(self) -> "PricingResult":
        """Copy with every money field quantized to cents."""
        return PricingResult(
            subtotal=money(self.subtotal),
            discount_rate=self.discount_rate,
            discount_amount=money(self.discount_amount),
            discounted_total=money(self.discounted_total),
            tax=money(self.tax),
            shipping=money(self.shipping),
            final_total=money(self.final_total),
        )


def calculate_shipping(quantity: int, rates: PricingRates) -> Decimal:
    logging.debug("Calculating shipping for %d items", quantity)
    shipping = rates.shipping_base + quantity * rates.shipping_per_item
    logging.debug("Shipping calculated: %s", fmt_money(shipping))
    return shipping


def price_order(record: OrderRecord, calculator: DiscountCalculator, rates: PricingRates) -> PricingResult:
    """Subtotal -> discount -> tax -> shipping -> final total.

    *record* must already have passed :func:`validate_order`.
    """
    if record.quantity is None or record.unit_price is None:
        raise ValueError(f"order {record.order_id} has unparsed numeric fields")

    qty = record.quantity
    price = record.unit_price

    subtotal = qty * price
    logging.debug("Subtotal calculated: %d x %s = %s", qty, fmt_money(price), fmt_money(subtotal))

    discount = calculator.apply_holiday_discount(subtotal, record.order_id, record.product_id)

    tax = discount.discounted_total * rates.tax_rate
    logging.debug("Tax calculated: %s", fmt_money(tax))

    shipping = calculate_shipping(qty, rates)
    final_total = discount.discounted_total + tax + shipping

    return PricingResult(
        subtotal=subtotal,
        discount_rate=discount.rate,
        discount_amount=discount.amount,
        discounted_total=discount.discounted_total,
        tax=tax,
        shipping=shipping,
        final_total=final_total,
    )
