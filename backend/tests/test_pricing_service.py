from datetime import date
from decimal import Decimal

import pytest

from fulfillment.services import pricing_service
from fulfillment.services.directory_service import ProductInfo, TierHistory
from fulfillment.services.errors import ProductInvalidError


@pytest.mark.parametrize(
    "spent,count,expected",
    [
        ("10000", 0, "Platinum"),
        ("5000", 50, "Platinum"),
        ("6000", 10, "Gold"),
        ("5000", 49, "Gold"),
        ("2500", 0, "Gold"),
        ("1000", 20, "Gold"),
        ("500", 0, "Silver"),
        ("250", 5, "Silver"),
        ("249.99", 100, "Bronze"),
        ("0", 0, "Bronze"),
    ],
)
def test_customer_tier_thresholds(spent, count, expected):
    assert pricing_service.customer_tier(Decimal(spent), count) == expected


def test_base_discount_follows_tier():
    # 6000 spent over 10 orders falls short of both Platinum clauses
    tier = pricing_service.customer_tier(Decimal("6000"), 10)
    assert tier == "Gold"
    assert pricing_service.discount_percent(tier, 1, False) == Decimal("0.10")

    tier = pricing_service.customer_tier(Decimal("10000"), 0)
    assert tier == "Platinum"
    assert pricing_service.discount_percent(tier, 1, False) == Decimal("0.15")


def test_discount_percent_bulk_and_promo():
    assert pricing_service.discount_percent("Bronze", 4, False) == Decimal("0")
    assert pricing_service.discount_percent("Bronze", 5, False) == Decimal("0.02")
    assert pricing_service.discount_percent("Gold", 10, True) == Decimal("0.18")
    assert pricing_service.discount_percent("Platinum", 12, True) == Decimal("0.23")


def test_discount_percent_is_capped():
    assert pricing_service.discount_percent("Platinum", 12, True, extra=Decimal("0.10")) == Decimal("0.25")


def test_discount_percent_unknown_tier():
    with pytest.raises(ValueError):
        pricing_service.discount_percent("Diamond", 1, False)


def test_discount_amount_rounds_to_four_places():
    assert pricing_service.discount_amount(Decimal("19.99"), 3, Decimal("0.15")) == Decimal("8.9955")
    assert pricing_service.discount_amount(Decimal("0.33333"), 1, Decimal("0.5")) == Decimal("0.1667")


def test_shipping_cost_rates_and_zones():
    assert pricing_service.shipping_cost(1, "REGIONAL", "Standard") == Decimal("5.99")
    assert pricing_service.shipping_cost(Decimal("0.5"), "LOCAL", "Economy") == Decimal("3.19")
    # 12.99 * 1.3 + 2 * 2.50 * 1.3
    assert pricing_service.shipping_cost(3, "NATIONAL", "Express") == Decimal("23.39")


def test_shipping_cost_domestic_cap_not_international():
    assert pricing_service.shipping_cost(20, "NATIONAL", "Overnight") == Decimal("99.99")
    assert pricing_service.shipping_cost(20, "INTERNATIONAL", "Overnight") == Decimal("299.50")


def test_shipping_cost_unknown_names_raise():
    with pytest.raises(ValueError):
        pricing_service.shipping_cost(1, "MARS", "Standard")
    with pytest.raises(ValueError):
        pricing_service.shipping_cost(1, "LOCAL", "Teleport")


def test_delivery_estimate_skips_weekends():
    friday = date(2024, 5, 3)
    # 5 + 1 business days after Friday
    assert pricing_service.delivery_estimate(friday, "Standard", "REGIONAL") == date(2024, 5, 13)
    assert pricing_service.delivery_estimate(friday, "Overnight", "LOCAL") == date(2024, 5, 6)
    saturday = date(2024, 5, 4)
    assert pricing_service.delivery_estimate(saturday, "Express", "LOCAL") == date(2024, 5, 7)


def test_delivery_estimate_unknown_zone():
    with pytest.raises(ValueError):
        pricing_service.delivery_estimate(date(2024, 5, 3), "Standard", "NOWHERE")


def test_order_totals_example():
    totals = pricing_service.order_totals(
        [Decimal("20.00"), Decimal("5.00")],
        Decimal("0.0875"),
        Decimal("9.99"),
        Decimal("0"),
    )
    assert totals.subtotal == Decimal("25.00")
    assert totals.tax_amount == Decimal("2.1875")
    assert totals.total_amount == Decimal("37.1775")


def test_order_totals_zero_tax_and_discount():
    totals = pricing_service.order_totals([Decimal("10")], 0, Decimal("2"), Decimal("3"))
    assert totals.tax_amount == Decimal("0")
    assert totals.total_amount == Decimal("9")


class _Customers:
    def __init__(self, spent, count):
        self.history = TierHistory(total_spent=Decimal(spent), order_count=count)

    def is_active(self, customer_id):
        return True

    def tier_history(self, customer_id):
        return self.history


class _Catalog:
    def __init__(self, info):
        self.info = info

    def product_info(self, product_id):
        return self.info


def test_quote_line_discount_uses_history_and_promo_category(app, monkeypatch):
    monkeypatch.setitem(app.config, "PROMOTIONAL_CATEGORY_IDS", [7])
    catalog = _Catalog(ProductInfo(product_id=1, price=Decimal("50"), is_active=True, category_id=7))

    with app.app_context():
        quote = pricing_service.quote_line_discount(
            1, 1, 12, Decimal("50.00"), customers=_Customers("6000", 10), catalog=catalog
        )

    assert quote["tier"] == "Gold"
    assert quote["is_promotional"] is True
    assert quote["discount_percent"] == Decimal("0.18")
    assert quote["discount_amount"] == Decimal("108.0000")


def test_quote_line_discount_unknown_product(app):
    with app.app_context():
        with pytest.raises(ProductInvalidError):
            pricing_service.quote_line_discount(
                1, 99, 1, Decimal("1"), customers=_Customers("0", 0), catalog=_Catalog(None)
            )
