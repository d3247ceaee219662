# backend/ledgerpos/routes/inventory.py
"""
Inventory ledger routes.

- GET  /api/inventory/movements   recent ledger rows (optionally per product)
- POST /api/inventory/movements   manual RECEIVE / ADJUST
- GET  /api/inventory/on-hand     on-hand per product id
- GET  /api/inventory/levels      every product with on-hand and low-stock flag
- GET  /api/inventory/low-stock   only the flagged products

All routes act on the store resolved by require_store_context.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import inventory_service
from ..validation import ServiceError, ValidationError, coerce_int
from ..decorators import require_store_context


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/movements")
@require_store_context
def list_movements_route():
    try:
        product_id = request.args.get("product_id")
        limit = request.args.get("limit")
        movements = inventory_service.list_movements(
            g.store_id,
            product_id=coerce_int(product_id, "product_id") if product_id else None,
            limit=coerce_int(limit, "limit") if limit else None,
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@inventory_bp.post("/movements")
@require_store_context
def record_movement_route():
    """
    Post a manual stock movement.

    Request body:
    {
        "product_id": int,
        "type": "RECEIVE" | "ADJUST",
        "quantity": int (non-zero; RECEIVE is normalized to positive),
        "note": str (optional),
        "reference": str (optional)
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        if payload.get("product_id") is None:
            raise ValidationError("product_id is required", details={"field": "product_id"})
        if not payload.get("type"):
            raise ValidationError("type is required", details={"field": "type"})

        movement = inventory_service.record_movement(
            store_id=g.store_id,
            product_id=coerce_int(payload["product_id"], "product_id"),
            kind=payload["type"],
            quantity=payload.get("quantity"),
            note=payload.get("note"),
            reference=payload.get("reference"),
            user_id=g.current_user.id,
        )
        on_hand = inventory_service.get_quantity_on_hand(g.store_id, movement.product_id)
        return jsonify({"movement": movement.to_dict(), "on_hand": on_hand}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/on-hand")
@require_store_context
def on_hand_route():
    """
    Query params:
        product_id: repeatable; omit to get every product of the store
    """
    try:
        raw_ids = request.args.getlist("product_id")
        product_ids = [coerce_int(raw, "product_id") for raw in raw_ids] if raw_ids else None
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code

    on_hand = inventory_service.get_on_hand(g.store_id, product_ids)
    # JSON object keys are strings
    return jsonify({"on_hand": {str(pid): qty for pid, qty in on_hand.items()}}), 200


@inventory_bp.get("/levels")
@require_store_context
def stock_levels_route():
    return jsonify({"items": inventory_service.list_stock_levels(g.store_id)}), 200


@inventory_bp.get("/low-stock")
@require_store_context
def low_stock_route():
    return jsonify({"items": inventory_service.list_low_stock(g.store_id)}), 200
