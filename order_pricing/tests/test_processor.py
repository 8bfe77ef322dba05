"""Tests for the per-order boundary, batch runner, CSV source and scripts."""
import logging
import sys
from decimal import Decimal

import pandas as pd
import pytest

from order_pricing.app.config import DiscountConfig, PricingRates, Settings, configure_logging
from order_pricing.app.logic import DiscountCalculator, OrderHistory
from order_pricing.app.orders_csv import read_orders
from order_pricing.app.processor import process_batch, process_order, run_batch
from order_pricing.scripts import export_report, process_orders


CSV_HEADER = "order_id,customer_name,product_id,product_name,quantity,unit_price\n"


# ------------------------------------------------------------------
# helpers
# ------------------------------------------------------------------

def _settings(**overrides) -> Settings:
    defaults = dict(
        orders_csv="data/orders.csv",
        log_file="",
        log_level="DEBUG",
        api_bearer_token="",
    )
    defaults.update(overrides)
    return Settings(**defaults)


def _row(**overrides) -> dict:
    defaults = dict(
        order_id="CT-2001",
        customer_name="Alice Johnson",
        product_id="CT-RC-001",
        product_name="RC Monster Truck",
        quantity="3",
        unit_price="10.00",
    )
    defaults.update(overrides)
    return defaults


def _calculator() -> DiscountCalculator:
    return DiscountCalculator(DiscountConfig(), OrderHistory())


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


# ------------------------------------------------------------------
# process_order
# ------------------------------------------------------------------

def test_process_order_success():
    result = process_order(_row(), _calculator(), PricingRates())
    assert result.processed is True
    assert result.reason == "processed"
    assert result.pricing.final_total == Decimal("36.41")


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"quantity": "abc"}, "InvalidQuantity"),
        ({"unit_price": "ten"}, "InvalidPrice"),
        ({"quantity": "-1"}, "NegativeQuantity"),
        ({"unit_price": "-5.00"}, "NegativePrice"),
    ],
)
def test_process_order_rejections(overrides, reason, caplog):
    caplog.set_level(logging.DEBUG)
    result = process_order(_row(**overrides), _calculator(), PricingRates())
    assert result.processed is False
    assert result.reason == reason
    assert result.pricing is None
    assert any(r.levelname == "ERROR" and "skipping" in r.getMessage() for r in caplog.records)


def test_rejected_order_does_not_enter_history():
    calc = _calculator()
    process_order(_row(order_id="CT-1001", quantity="abc"), calc, PricingRates())
    assert len(calc.history) == 0


def test_zero_quantity_processed_and_flagged(caplog):
    caplog.set_level(logging.DEBUG)
    calc = _calculator()
    result = process_order(_row(quantity="0"), calc, PricingRates())
    assert result.processed is True
    assert result.flagged_for_review is True
    assert result.pricing.subtotal == Decimal("0")
    assert result.pricing.final_total == Decimal("5.99")
    assert list(calc.history) == ["CT-2001"]
    assert any(r.levelname == "WARNING" and "zero quantity" in r.getMessage() for r in caplog.records)


def test_malformed_product_id_still_processed():
    result = process_order(_row(product_id="CT1234"), _calculator(), PricingRates())
    assert result.processed is True
    assert result.pricing.discount_rate == Decimal("0.15")


def test_unexpected_error_is_contained(caplog):
    caplog.set_level(logging.DEBUG)

    def broken_inventory(product_id):
        raise RuntimeError("inventory service down")

    result = process_order(_row(), _calculator(), PricingRates(), inventory_check=broken_inventory)
    assert result.processed is False
    assert result.reason == "unexpected_error"
    assert result.error == "inventory service down"
    critical = [r for r in caplog.records if r.levelname == "CRITICAL"]
    assert critical
    assert critical[0].exc_info is not None


def test_huge_price_is_priced_not_faulted():
    result = process_order(_row(unit_price="1" + "0" * 27), _calculator(), PricingRates())
    assert result.processed is True
    assert result.to_dict()["pricing"]["subtotal"].endswith(".00")


def test_negative_zero_price_serialised_as_zero(caplog):
    caplog.set_level(logging.DEBUG)
    result = process_order(_row(unit_price="-0.00"), _calculator(), PricingRates())
    assert result.processed is True
    pricing = result.to_dict()["pricing"]
    assert pricing["subtotal"] == "0.00"
    assert pricing["discounted_total"] == "0.00"
    assert not any("$-0.00" in r.getMessage() for r in caplog.records)


def test_to_dict_rounds_money():
    data = process_order(_row(), _calculator(), PricingRates()).to_dict()
    assert data["pricing"]["final_total"] == "36.41"
    assert data["pricing"]["discount_rate"] == "0.20"
    assert "error" not in data


# ------------------------------------------------------------------
# process_batch
# ------------------------------------------------------------------

def test_batch_counts_and_continues_after_failures():
    rows = [
        _row(order_id="CT-1001"),
        _row(order_id="CT-2002", quantity="abc"),
        _row(order_id="CT-2003", quantity="0"),
        _row(order_id="CT-2004", quantity="-1"),
    ]
    summary = process_batch(rows, DiscountConfig(), PricingRates())
    assert summary.total == 4
    assert summary.succeeded == 2
    assert summary.failed == 2
    assert [r.order_id for r in summary.results] == ["CT-1001", "CT-2002", "CT-2003", "CT-2004"]


def test_batch_loyalty_follows_input_order():
    rows = [
        _row(order_id="CT-1001", product_id="CT-PZ-1"),
        _row(order_id="CT-2002", product_id="CT-PZ-2"),
        _row(order_id="CT-2003", product_id="CT-PZ-3"),
    ]
    summary = process_batch(rows, DiscountConfig(), PricingRates())
    rates = [r.pricing.discount_rate for r in summary.results]
    assert rates == [Decimal("0.15"), Decimal("0.17"), Decimal("0.15")]


def test_batch_unexpected_error_counted_as_failure():
    calls = []

    def flaky_inventory(product_id):
        calls.append(product_id)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return True

    rows = [_row(order_id="CT-2001"), _row(order_id="CT-2002")]
    summary = process_batch(rows, DiscountConfig(), PricingRates(), inventory_check=flaky_inventory)
    assert summary.failed == 1
    assert summary.succeeded == 1
    assert summary.results[0].reason == "unexpected_error"


def test_each_batch_starts_with_empty_history():
    rows = [_row(order_id="CT-1001", product_id="CT-PZ-1")]
    run_batch(rows, _settings())
    summary = run_batch([_row(order_id="CT-2002", product_id="CT-PZ-2")], _settings())
    assert summary.results[0].pricing.discount_rate == Decimal("0.15")


# ------------------------------------------------------------------
# CSV source
# ------------------------------------------------------------------

def test_read_orders_short_rows_padded(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(
        CSV_HEADER
        + "CT-1001,Alice,CT-RC-001,RC Truck,3,10.00\n"
        + "CT-1002,Bob,CT-EL-002,Keyboard\n",
        encoding="utf-8",
    )
    rows = read_orders(path)
    assert len(rows) == 2
    assert rows[0]["quantity"] == "3"
    assert rows[0]["unit_price"] == "10.00"
    assert rows[1]["quantity"] == ""
    assert rows[1]["unit_price"] == ""


def test_read_orders_keeps_text(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(CSV_HEADER + ",NA,CT-RC-001,Truck,007,1.50\n", encoding="utf-8")
    row = read_orders(path)[0]
    assert row["order_id"] == ""
    assert row["customer_name"] == "NA"
    assert row["quantity"] == "007"


def test_read_orders_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_orders(tmp_path / "missing.csv")


# ------------------------------------------------------------------
# settings
# ------------------------------------------------------------------

def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("TAX_RATE", "0.10")
    monkeypatch.setenv("DISCOUNT_BONUS_CATEGORIES", "RC, PZ")
    monkeypatch.setenv("API_BEARER_TOKEN", "secret")
    settings = Settings.from_env()
    assert settings.rates.tax_rate == Decimal("0.10")
    assert settings.discount.bonus_categories == ("RC", "PZ")
    assert settings.discount.max_discount == Decimal("0.50")
    assert settings.api_bearer_token == "secret"


def test_settings_rejects_bad_number(monkeypatch):
    monkeypatch.setenv("SHIPPING_BASE", "five")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_configure_logging_writes_file(tmp_path, restore_root_logging):
    log_file = tmp_path / "logs" / "run.log"
    configure_logging(_settings(log_file=str(log_file)))
    logging.warning("hello")
    for handler in logging.getLogger().handlers:
        handler.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "WARNING  - [OrderProcessor] - hello" in text


# ------------------------------------------------------------------
# scripts
# ------------------------------------------------------------------

def _write_orders(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(
        CSV_HEADER
        + "CT-1001,Alice,CT-RC-001,RC Truck,3,10.00\n"
        + "CT-2002,Bob,CT-PZ-002,Puzzle,abc,5.00\n"
        + "CT-2003,Carol,CT-DL-003,Doll,0,9.00\n",
        encoding="utf-8",
    )
    return path


def test_process_orders_main(tmp_path, monkeypatch, capsys, restore_root_logging):
    orders = _write_orders(tmp_path)
    log_file = tmp_path / "out.log"
    monkeypatch.setattr(sys, "argv", ["process_orders", "--input", str(orders), "--log-file", str(log_file)])

    assert process_orders.main() == 0

    out = capsys.readouterr().out
    assert "Total Orders: 3" in out
    assert "Successful:   2" in out
    assert "Failed:       1" in out
    assert "FINAL TOTAL: $36.41" in log_file.read_text(encoding="utf-8")


def test_process_orders_missing_input(tmp_path, monkeypatch, capsys, restore_root_logging):
    monkeypatch.setattr(
        sys, "argv",
        ["process_orders", "--input", str(tmp_path / "nope.csv"), "--log-file", str(tmp_path / "x.log")],
    )
    assert process_orders.main() == 1
    assert "FATAL" in capsys.readouterr().out


def test_export_report_csv(tmp_path):
    rows = read_orders(_write_orders(tmp_path))
    summary = run_batch(rows, _settings())
    out = tmp_path / "report" / "orders.csv"

    export_report.write_report(export_report.build_report(rows, summary.results), out)

    df = pd.read_csv(out)
    assert list(df.columns) == export_report.REPORT_COLUMNS
    assert len(df) == 3
    assert list(df["status"]) == ["processed", "skipped", "processed"]
    assert df.loc[0, "finalTotal"] == pytest.approx(36.41)
    assert df.loc[1, "reason"] == "InvalidQuantity"
    assert pd.isna(df.loc[1, "finalTotal"])
    assert bool(df.loc[2, "flaggedForReview"]) is True


def test_export_report_xlsx(tmp_path):
    rows = read_orders(_write_orders(tmp_path))
    summary = run_batch(rows, _settings())
    out = tmp_path / "report.xlsx"

    export_report.write_report(export_report.build_report(rows, summary.results), out)

    df = pd.read_excel(out)
    assert list(df.columns) == export_report.REPORT_COLUMNS
    assert list(df["orderId"]) == ["CT-1001", "CT-2002", "CT-2003"]
    assert df.loc[0, "finalTotal"] == pytest.approx(36.41)
    assert df.loc[2, "shipping"] == pytest.approx(5.99)


def test_export_report_main(tmp_path, monkeypatch, capsys, restore_root_logging):
    orders = _write_orders(tmp_path)
    out = tmp_path / "out" / "report.xlsx"
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "export.log"))
    monkeypatch.setattr(sys, "argv", ["export_report", "--input", str(orders), "--out", str(out)])

    assert export_report.main() == 0

    assert "Saved 3 rows" in capsys.readouterr().out
    assert len(pd.read_excel(out)) == 3


def test_export_report_missing_input(tmp_path, monkeypatch, capsys, restore_root_logging):
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "export.log"))
    monkeypatch.setattr(
        sys, "argv",
        ["export_report", "--input", str(tmp_path / "nope.csv"), "--out", str(tmp_path / "r.csv")],
    )
    assert export_report.main() == 1
    assert "FATAL" in capsys.readouterr().out
    assert not (tmp_path / "r.csv").exists()
