from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
import logging
import os
from pathlib import Path


LOG_FORMAT = "%(asctime)s - %(levelname)-8s - [OrderProcessor] - %(message)s"


def _env(key: str, default: str = "") -> str:
    value = os.getenv(key)
    return default if value is None else value


def _env_list(key: str, default: list[str]) -> list[str]:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_decimal(key: str, default: str) -> Decimal:
    raw = _env(key, default).strip()
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"{key} must be a decimal number, got {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"{key} must be a finite number, got {raw!r}")
    return value


# ---------------------------------------------------------------------------
# discount / pricing constants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DiscountConfig:
    """Holiday discount rules.

    Built once before the first order is priced and shared read-only by the
    whole run.
    """

    base_rate: Decimal = Decimal("0.15")
    bonus_categories: tuple[str, ...] = ("RC", "Robot", "EL")
    category_bonus: Decimal = Decimal("0.05")
    loyalty_prefix: str = "CT-100"
    loyalty_bonus: Decimal = Decimal("0.02")
    max_discount: Decimal = Decimal("0.50")

    def __post_init__(self) -> None:
        # a cap above 1 would let discounted totals go negative
        if not 0 <= self.max_discount <= 1:
            raise ValueError(f"max_discount must be between 0 and 1, got {self.max_discount}")
        for name in ("base_rate", "category_bonus", "loyalty_bonus"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    def is_bonus_category(self, category: str) -> bool:
        target = category.upper()
        return any(c.upper() == target for c in self.bonus_categories)


@dataclass(frozen=True)
class PricingRates:
    tax_rate: Decimal = Decimal("0.08")
    shipping_base: Decimal = Decimal("5.99")
    shipping_per_item: Decimal = Decimal("1.50")


DEFAULT_DISCOUNT = DiscountConfig()
DEFAULT_RATES = PricingRates()


# ---------------------------------------------------------------------------
# runtime settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    orders_csv: str
    log_file: str
    log_level: str
    api_bearer_token: str

    discount: DiscountConfig = field(default=DEFAULT_DISCOUNT)
    rates: PricingRates = field(default=DEFAULT_RATES)

    @classmethod
    def from_env(cls) -> "Settings":
        discount = DiscountConfig(
            base_rate=_env_decimal("DISCOUNT_BASE_RATE", "0.15"),
            bonus_categories=tuple(_env_list("DISCOUNT_BONUS_CATEGORIES", ["RC", "Robot", "EL"])),
            category_bonus=_env_decimal("DISCOUNT_CATEGORY_BONUS", "0.05"),
            loyalty_prefix=_env("LOYALTY_PREFIX", "CT-100"),
            loyalty_bonus=_env_decimal("LOYALTY_BONUS", "0.02"),
            max_discount=_env_decimal("DISCOUNT_MAX_RATE", "0.50"),
        )
        rates = PricingRates(
            tax_rate=_env_decimal("TAX_RATE", "0.08"),
            shipping_base=_env_decimal("SHIPPING_BASE", "5.99"),
            shipping_per_item=_env_decimal("SHIPPING_PER_ITEM", "1.50"),
        )
        return cls(
            orders_csv=_env("ORDERS_CSV", "data/orders.csv"),
            log_file=_env("LOG_FILE", "logs/order_processor.log"),
            log_level=_env("LOG_LEVEL", "DEBUG"),
            api_bearer_token=_env("API_BEARER_TOKEN", ""),
            discount=discount,
            rates=rates,
        )


def configure_logging(settings: Settings) -> None:
    """Log to ``settings.log_file`` (truncated at start), or stderr if unset."""
    handlers: list[logging.Handler] = []
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="w", encoding="utf-8"))
    else:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=settings.log_level.upper(),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
