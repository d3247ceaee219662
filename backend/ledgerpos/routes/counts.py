# backend/ledgerpos/routes/counts.py
"""
Stock count session API routes.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import count_service
from ..validation import ServiceError, ValidationError, coerce_int
from ..decorators import require_store_context


counts_bp = Blueprint("counts", __name__, url_prefix="/api/inventory/count-sessions")


@counts_bp.route("", methods=["GET"])
@require_store_context
def list_sessions_route():
    return jsonify({"sessions": count_service.list_sessions(g.store_id)}), 200


@counts_bp.route("", methods=["POST"])
@require_store_context
def create_session_route():
    """
    Open a count session.

    Request body:
    {
        "note": str (optional),
        "reference": str (optional)
    }

    Returns:
        201: Session created (status OPEN)
    """
    data = request.get_json(silent=True) or {}

    try:
        session = count_service.create_session(
            store_id=g.store_id,
            user_id=g.current_user.id,
            note=data.get("note"),
            reference=data.get("reference"),
        )
        return jsonify({"session": session.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create count session")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.route("/<int:session_id>", methods=["GET"])
@require_store_context
def get_session_route(session_id: int):
    try:
        return jsonify(count_service.get_session_detail(g.store_id, session_id)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@counts_bp.route("/<int:session_id>/lines", methods=["PUT"])
@require_store_context
def set_count_route(session_id: int):
    """
    Record the counted quantity for one product (upsert).

    Request body:
    {
        "product_id": int,
        "counted_qty": int (>= 0)
    }

    Returns:
        200: Line saved
        400: Invalid quantity
        404: Session or product not found
        409: Session is finalized
    """
    data = request.get_json(silent=True) or {}

    try:
        if data.get("product_id") is None:
            raise ValidationError("product_id is required", details={"field": "product_id"})

        line = count_service.set_count(
            store_id=g.store_id,
            session_id=session_id,
            product_id=coerce_int(data["product_id"], "product_id"),
            counted_qty=data.get("counted_qty"),
        )
        return jsonify({"line": line.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set count line")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.route("/<int:session_id>/finalize", methods=["POST"])
@require_store_context
def finalize_session_route(session_id: int):
    """
    Post count variances as ADJUST movements and seal the session.

    Returns:
        200: {"session", "adjustment_count", "adjustments"}
        400: No counted items
        404: Session not found
        409: Already finalized
    """
    try:
        result = count_service.finalize_count(
            store_id=g.store_id,
            session_id=session_id,
            user_id=g.current_user.id,
        )
        return jsonify(result.to_dict()), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize count session")
        return jsonify({"error": "Internal server error"}), 500
