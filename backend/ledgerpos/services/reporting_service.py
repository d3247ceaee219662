# Overview: Service-layer operations for sales reporting; store-scoped aggregates over recent sales.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SaleItem, User
from ..time_utils import to_utc_z, utcnow
from ..validation import clamp_int

DEFAULT_REPORT_DAYS = 14
MAX_REPORT_DAYS = 365
TOP_PRODUCTS_LIMIT = 10
CASHIERS_LIMIT = 20


def _window(days: int | None) -> tuple[int, datetime]:
    days = clamp_int(days, default=DEFAULT_REPORT_DAYS, maximum=MAX_REPORT_DAYS)
    return days, utcnow() - timedelta(days=days)


def daily_sales(store_id: int, *, days: int | None = None) -> list[dict]:
    """Sale count and revenue per UTC day, newest day first. Days without sales are omitted."""
    _, since = _window(days)
    day_expr = func.date(Sale.created_at)

    rows = db.session.query(
        day_expr.label("day"),
        func.count(Sale.id).label("sale_count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_cents"),
    ).filter(
        Sale.store_id == store_id,
        Sale.created_at >= since,
    ).group_by(day_expr).order_by(day_expr.desc()).all()

    return [
        {
            "day": str(row.day),
            "sale_count": int(row.sale_count or 0),
            "total_cents": int(row.total_cents or 0),
        }
        for row in rows
    ]


def top_products(store_id: int, *, days: int | None = None, limit: int = TOP_PRODUCTS_LIMIT) -> list[dict]:
    """Best sellers by quantity sold in the window."""
    _, since = _window(days)
    quantity = func.coalesce(func.sum(SaleItem.quantity), 0)

    rows = db.session.query(
        Product.id.label("product_id"),
        Product.name.label("product_name"),
        quantity.label("quantity"),
        func.coalesce(func.sum(SaleItem.line_total_cents), 0).label("total_cents"),
    ).join(
        Sale, Sale.id == SaleItem.sale_id,
    ).join(
        Product, Product.id == SaleItem.product_id,
    ).filter(
        Sale.store_id == store_id,
        Sale.created_at >= since,
    ).group_by(
        Product.id, Product.name,
    ).order_by(
        quantity.desc(), Product.id.asc(),
    ).limit(limit).all()

    return [
        {
            "product_id": row.product_id,
            "product_name": row.product_name,
            "quantity": int(row.quantity or 0),
            "total_cents": int(row.total_cents or 0),
        }
        for row in rows
    ]


def sales_by_cashier(store_id: int, *, days: int | None = None, limit: int = CASHIERS_LIMIT) -> list[dict]:
    _, since = _window(days)
    total = func.coalesce(func.sum(Sale.total_cents), 0)

    rows = db.session.query(
        User.id.label("user_id"),
        User.email.label("email"),
        User.name.label("name"),
        func.count(Sale.id).label("sale_count"),
        total.label("total_cents"),
    ).join(
        User, User.id == Sale.user_id,
    ).filter(
        Sale.store_id == store_id,
        Sale.created_at >= since,
    ).group_by(
        User.id, User.email, User.name,
    ).order_by(
        total.desc(), User.id.asc(),
    ).limit(limit).all()

    return [
        {
            "user_id": row.user_id,
            "email": row.email,
            "name": row.name,
            "sale_count": int(row.sale_count or 0),
            "total_cents": int(row.total_cents or 0),
        }
        for row in rows
    ]


def sales_report(store_id: int, *, days: int | None = None) -> dict:
    """
    Combined sales report for the store over the last ``days`` days.

    ``days`` defaults to 14 and is clamped to 1..365. Window totals are
    summed from the daily rows so the headline figures always agree with
    the breakdown.
    """
    days, since = _window(days)
    daily = daily_sales(store_id, days=days)

    return {
        "store_id": store_id,
        "days": days,
        "since": to_utc_z(since),
        "sale_count": sum(row["sale_count"] for row in daily),
        "total_cents": sum(row["total_cents"] for row in daily),
        "daily": daily,
        "top_products": top_products(store_id, days=days),
        "cashiers": sales_by_cashier(store_id, days=days),
    }
