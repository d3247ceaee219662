"""
Sales report tests: daily totals, best sellers and per-cashier totals over a
trailing window of days, always scoped to one store.
"""

from datetime import timedelta

import pytest
from ledgerpos.models import Sale, SaleItem, User
from ledgerpos.services import reporting_service, sales_service
from ledgerpos.time_utils import utcnow

from conftest import make_product, receive


def _sell(store, user, *lines):
    return sales_service.checkout(store.id, user.id, [
        {"product_id": product.id, "quantity": quantity} for product, quantity in lines
    ])


def _old_sale(db_session, store, user, product, quantity, *, days_ago):
    """A sale dated in the past (checkout always stamps now)."""
    created_at = utcnow() - timedelta(days=days_ago)
    total = product.price_cents * quantity
    db_session.add(Sale(
        store_id=store.id,
        user_id=user.id,
        subtotal_cents=total,
        tax_cents=0,
        total_cents=total,
        created_at=created_at,
        items=[SaleItem(
            product_id=product.id,
            position=1,
            product_name=product.name,
            quantity=quantity,
            unit_price_cents=product.price_cents,
            line_total_cents=total,
            created_at=created_at,
        )],
    ))
    db_session.commit()


class TestWindow:

    @pytest.mark.parametrize("days, expected", [
        (None, 14),
        (1, 1),
        (0, 1),
        (-5, 1),
        (30, 30),
        (1000, 365),
    ])
    def test_days_clamped(self, db_session, store_a, days, expected):
        assert reporting_service.sales_report(store_a.id, days=days)["days"] == expected

    def test_empty_store(self, db_session, store_a):
        report = reporting_service.sales_report(store_a.id)

        assert report["sale_count"] == 0
        assert report["total_cents"] == 0
        assert report["daily"] == []
        assert report["top_products"] == []
        assert report["cashiers"] == []


class TestDailySales:

    def test_groups_by_day_newest_first(self, db_session, store_a, user_a, product_a):
        receive(db_session, product_a, 20)
        first = _sell(store_a, user_a, (product_a, 1))
        _sell(store_a, user_a, (product_a, 2))
        _old_sale(db_session, store_a, user_a, product_a, 3, days_ago=3)

        rows = reporting_service.daily_sales(store_a.id)

        assert rows[0] == {
            "day": first.created_at.date().isoformat(),
            "sale_count": 2,
            "total_cents": 1800,
        }
        assert rows[1]["sale_count"] == 1
        assert rows[1]["total_cents"] == 1800
        assert rows[0]["day"] > rows[1]["day"]

    def test_sales_outside_window_ignored(self, db_session, store_a, user_a, product_a):
        _old_sale(db_session, store_a, user_a, product_a, 1, days_ago=20)
        _old_sale(db_session, store_a, user_a, product_a, 1, days_ago=5)

        assert sum(row["sale_count"] for row in reporting_service.daily_sales(store_a.id)) == 1
        assert sum(row["sale_count"] for row in reporting_service.daily_sales(store_a.id, days=30)) == 2

    def test_other_store_ignored(self, db_session, store_a, store_b, user_b, product_b):
        receive(db_session, product_b, 5)
        _sell(store_b, user_b, (product_b, 1))

        assert reporting_service.daily_sales(store_a.id) == []


class TestTopProducts:

    def test_ordered_by_quantity(self, db_session, store_a, user_a, product_a, product_a2):
        receive(db_session, product_a, 20)
        receive(db_session, product_a2, 20)
        _sell(store_a, user_a, (product_a, 1), (product_a2, 3))
        _sell(store_a, user_a, (product_a, 1))

        rows = reporting_service.top_products(store_a.id)

        assert [(row["product_id"], row["quantity"], row["total_cents"]) for row in rows] == [
            (product_a2.id, 3, 2700),
            (product_a.id, 2, 1200),
        ]
        assert rows[0]["product_name"] == product_a2.name

    def test_limited_to_ten(self, db_session, store_a, user_a):
        products = [make_product(db_session, store_a, name=f"Snack {i}", price_cents=100) for i in range(12)]
        for product in products:
            receive(db_session, product, 5)
        _sell(store_a, user_a, *[(product, 1) for product in products])

        assert len(reporting_service.top_products(store_a.id)) == 10

    def test_old_sales_ignored(self, db_session, store_a, user_a, product_a):
        _old_sale(db_session, store_a, user_a, product_a, 4, days_ago=30)

        assert reporting_service.top_products(store_a.id) == []


class TestCashiers:

    def test_totals_per_cashier(self, db_session, tenant_a, store_a, user_a, product_a):
        second = User(tenant_id=tenant_a.id, store_id=store_a.id, email="cashier_a2@acme.com", name="Cashier A2")
        db_session.add(second)
        db_session.commit()
        receive(db_session, product_a, 20)
        _sell(store_a, user_a, (product_a, 1))
        _sell(store_a, second, (product_a, 2))
        _sell(store_a, second, (product_a, 1))

        rows = reporting_service.sales_by_cashier(store_a.id)

        assert [(row["user_id"], row["sale_count"], row["total_cents"]) for row in rows] == [
            (second.id, 2, 1800),
            (user_a.id, 1, 600),
        ]
        assert rows[0]["email"] == "cashier_a2@acme.com"
        assert rows[0]["name"] == "Cashier A2"


class TestSalesReport:

    def test_headline_matches_breakdown(self, db_session, store_a, user_a, product_a, product_a2):
        receive(db_session, product_a, 20)
        receive(db_session, product_a2, 20)
        _sell(store_a, user_a, (product_a, 2))
        _sell(store_a, user_a, (product_a2, 1))
        _old_sale(db_session, store_a, user_a, product_a, 1, days_ago=2)

        report = reporting_service.sales_report(store_a.id, days=7)

        assert report["store_id"] == store_a.id
        assert report["sale_count"] == 3
        assert report["total_cents"] == 1200 + 900 + 600
        assert report["since"].endswith("Z")
        assert report["top_products"][0]["product_id"] == product_a.id
        assert report["cashiers"][0]["sale_count"] == 3
