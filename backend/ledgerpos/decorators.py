# Overview: Request decorators that establish the acting store and user for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .extensions import db
from .models import Store, User

STORE_HEADER = "X-Store-Id"
USER_HEADER = "X-User-Id"


def _header_int(name: str) -> int | None:
    raw = (request.headers.get(name) or "").strip()
    if not raw.isdigit():
        return None
    return int(raw)


def require_store_context(f):
    """
    Establish the acting store and user for the request.

    Authentication happens upstream: the gateway forwards the authenticated
    user id and the store the user selected as X-User-Id / X-Store-Id. This
    decorator only resolves them and checks tenant membership, so services
    always receive the store id explicitly.

    Sets the following Flask g attributes:
    - g.current_user: the acting User
    - g.store: the acting Store
    - g.store_id: its id, passed into every service call

    Returns 401 if the headers are missing or the user is unknown/inactive,
    403 if the store is unknown or belongs to another tenant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = _header_int(USER_HEADER)
        store_id = _header_int(STORE_HEADER)

        if user_id is None or store_id is None:
            return jsonify({"error": "Store context required"}), 401

        user = db.session.query(User).filter_by(id=user_id).first()
        if not user or not user.is_active:
            return jsonify({"error": "Unknown or inactive user"}), 401

        store = db.session.query(Store).filter_by(id=store_id).first()
        if not store or not user.can_operate(store):
            current_app.logger.warning(
                "Store access denied: user=%s store=%s path=%s",
                user_id, store_id, request.path,
            )
            return jsonify({"error": "Forbidden"}), 403

        g.current_user = user
        g.store = store
        g.store_id = store.id

        return f(*args, **kwargs)

    return decorated_function
