# Overview: Flask API routes for product operations; parses input and returns JSON responses.

# backend/ledgerpos/routes/products.py
from flask import Blueprint, request, jsonify, g, current_app

from ..services import products_service
from ..services.inventory_service import get_on_hand, is_low_stock
from ..validation import ServiceError
from ..decorators import require_store_context


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _with_stock(products) -> list[dict]:
    on_hand = get_on_hand(g.store_id, [p.id for p in products])
    return [
        {
            **p.to_dict(),
            "on_hand": on_hand.get(p.id, 0),
            "low_stock": is_low_stock(p.reorder_level or 0, on_hand.get(p.id, 0)),
        }
        for p in products
    ]


@products_bp.get("")
@require_store_context
def list_products_route():
    products = products_service.list_products(g.store_id)
    return jsonify({"products": _with_stock(products)}), 200


@products_bp.get("/lookup")
@require_store_context
def lookup_products_route():
    """
    POS lookup by barcode, SKU or name.

    Query params:
        q: scanned code or part of a product name
    """
    products = products_service.lookup_products(g.store_id, request.args.get("q"))
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.post("")
@require_store_context
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(g.store_id, payload)
        return jsonify({"product": product.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_store_context
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(g.store_id, product_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"product": _with_stock([product])[0]}), 200


@products_bp.patch("/<int:product_id>")
@require_store_context
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(g.store_id, product_id, payload)
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_store_context
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(g.store_id, product_id)
        return jsonify({"deleted": True, "product_id": product_id}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
