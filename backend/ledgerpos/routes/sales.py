# Overview: Flask API routes for checkout and sales; parses input and returns JSON responses.

# backend/ledgerpos/routes/sales.py
"""POS checkout and sale history routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..validation import ServiceError, coerce_int
from ..decorators import require_store_context


sales_bp = Blueprint("sales", __name__, url_prefix="/api")


@sales_bp.post("/pos/checkout")
@require_store_context
def checkout_route():
    """
    Convert a cart into a sale.

    Request body:
    {
        "items": [{"product_id": int, "quantity": int}, ...]
    }

    Returns:
        201: sale with items
        400: empty cart / invalid quantity
        404: product not in this store
        409: insufficient stock (details: product_id, requested, on_hand)
    """
    payload = request.get_json(silent=True) or {}
    items = payload.get("items", payload.get("lines"))
    if not isinstance(items, list):
        items = []

    try:
        sale = sales_service.checkout(g.store_id, g.current_user.id, items)
        return jsonify({"sale": sale.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to check out cart")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/sales")
@require_store_context
def list_sales_route():
    try:
        limit = request.args.get("limit")
        sales = sales_service.list_sales(g.store_id, coerce_int(limit, "limit") if limit else None)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"sales": [s.to_dict(include_items=False) for s in sales]}), 200


@sales_bp.get("/sales/<int:sale_id>")
@require_store_context
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.store_id, sale_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"sale": sale.to_dict()}), 200
