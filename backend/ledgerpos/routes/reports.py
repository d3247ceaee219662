# Overview: Flask API routes for sales reports; parses input and returns JSON responses.

# backend/ledgerpos/routes/reports.py
"""
Sales report routes. Every route takes ?days= (default 14, clamped to 1..365).

- GET /api/reports/sales          headline totals plus all breakdowns
- GET /api/reports/daily-sales    sale count and revenue per day
- GET /api/reports/top-products   top 10 products by quantity
- GET /api/reports/cashiers       sale count and revenue per cashier
"""
from flask import Blueprint, jsonify, g, request

from ..services import reporting_service
from ..validation import ServiceError, coerce_int
from ..decorators import require_store_context


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _days_arg() -> int | None:
    raw = request.args.get("days")
    return coerce_int(raw, "days") if raw else None


@reports_bp.get("/sales")
@require_store_context
def sales_report_route():
    try:
        report = reporting_service.sales_report(g.store_id, days=_days_arg())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(report), 200


@reports_bp.get("/daily-sales")
@require_store_context
def daily_sales_route():
    try:
        rows = reporting_service.daily_sales(g.store_id, days=_days_arg())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"rows": rows}), 200


@reports_bp.get("/top-products")
@require_store_context
def top_products_route():
    try:
        rows = reporting_service.top_products(g.store_id, days=_days_arg())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"rows": rows}), 200


@reports_bp.get("/cashiers")
@require_store_context
def cashiers_route():
    try:
        rows = reporting_service.sales_by_cashier(g.store_id, days=_days_arg())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"rows": rows}), 200
