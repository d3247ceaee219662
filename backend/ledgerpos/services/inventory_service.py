# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

# backend/ledgerpos/services/inventory_service.py

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Product,
    StockMovement,
    MOVEMENT_ADJUST,
    MOVEMENT_KINDS,
    MOVEMENT_RECEIVE,
    MOVEMENT_SALE,
)
from ..validation import (
    InvalidMovementKindError,
    InvalidQuantityError,
    ProductNotFoundError,
    clamp_int,
    clean_optional_text,
    require_quantity,
)
from .concurrency import begin_write, lock_products, run_in_transaction
"""
Stock Ledger Invariants (authoritative)

Inventory model:
- Inventory is ledger-derived from StockMovement rows; never stored as a mutable quantity field.
- Quantity on hand is SUM(quantity_delta) over the store's movements for a product.
- The sum is order-independent; movements carry created_at only for display and audit.

Sign policy:
- RECEIVE deltas are positive (manual entry is sign-normalized with abs()).
- SALE deltas are negative and carry the sale id.
- ADJUST deltas are any non-zero integer.

Business invariants:
- The ledger itself never rejects a movement because on-hand would go negative.
  Checkout enforces "cannot sell below zero"; manual RECEIVE/ADJUST may drive
  on-hand negative by direct staff action.
- Movements are append-only: the ORM refuses updates and deletes.

Low stock:
- reorder_level > 0 AND on_hand <= reorder_level. A reorder level of 0 is never flagged.
"""

# Kinds staff may post directly; SALE movements only come from checkout
MANUAL_MOVEMENT_KINDS = (MOVEMENT_RECEIVE, MOVEMENT_ADJUST)


def _check_sign_policy(kind: str, quantity_delta: int) -> None:
    if kind == MOVEMENT_RECEIVE and quantity_delta <= 0:
        raise InvalidQuantityError(
            "RECEIVE quantity_delta must be positive",
            field="quantity_delta",
            value=quantity_delta,
        )
    if kind == MOVEMENT_SALE and quantity_delta >= 0:
        raise InvalidQuantityError(
            "SALE quantity_delta must be negative",
            field="quantity_delta",
            value=quantity_delta,
        )


def append_movement(
    *,
    store_id: int,
    product_id: int,
    kind: str,
    quantity_delta: int,
    note: str | None = None,
    reference: str | None = None,
    sale_id: int | None = None,
    stock_count_session_id: int | None = None,
    user_id: int | None = None,
) -> StockMovement:
    """
    Append one immutable ledger row.

    Adds and flushes within the caller's transaction; never commits and never
    checks the resulting on-hand. Callers that need a stock decision (checkout,
    count finalize) take the product locks before reading on-hand.
    """
    if kind not in MOVEMENT_KINDS:
        raise InvalidMovementKindError(kind, MOVEMENT_KINDS)
    require_quantity(quantity_delta, field="quantity_delta", minimum=None)
    _check_sign_policy(kind, quantity_delta)

    movement = StockMovement(
        store_id=store_id,
        product_id=product_id,
        kind=kind,
        quantity_delta=quantity_delta,
        note=note,
        reference=reference,
        sale_id=sale_id,
        stock_count_session_id=stock_count_session_id,
        created_by_user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()  # ensures movement.id is assigned without committing
    return movement


def get_on_hand(store_id: int, product_ids: Iterable[int] | None = None) -> dict[int, int]:
    """
    Sum ledger deltas per product for one store.

    - product_ids given: every requested id is present, 0 when it has no movements.
    - product_ids None: every product of the store is present.

    Runs on the caller's session, so inside a write transaction it sees the
    transaction's own appends and the state committed before its locks.
    """
    if product_ids is None:
        ids = [pid for (pid,) in db.session.query(Product.id).filter(Product.store_id == store_id)]
    else:
        ids = list(dict.fromkeys(product_ids))

    on_hand = {pid: 0 for pid in ids}
    if not ids:
        return on_hand

    rows = db.session.query(
        StockMovement.product_id,
        func.coalesce(func.sum(StockMovement.quantity_delta), 0),
    ).filter(
        StockMovement.store_id == store_id,
        StockMovement.product_id.in_(ids),
    ).group_by(StockMovement.product_id).all()

    for product_id, total in rows:
        on_hand[product_id] = int(total or 0)
    return on_hand


def get_quantity_on_hand(store_id: int, product_id: int) -> int:
    return get_on_hand(store_id, [product_id])[product_id]


def is_low_stock(reorder_level: int, on_hand: int) -> bool:
    """A reorder level of 0 means the product is never flagged."""
    return reorder_level > 0 and on_hand <= reorder_level


def list_stock_levels(store_id: int) -> list[dict]:
    """Every product of the store with its on-hand and low-stock flag, newest first."""
    products = db.session.query(Product).filter(
        Product.store_id == store_id,
    ).order_by(Product.created_at.desc(), Product.id.desc()).all()

    on_hand = get_on_hand(store_id, [p.id for p in products])

    levels = []
    for p in products:
        qty = on_hand.get(p.id, 0)
        levels.append({
            **p.to_dict(),
            "on_hand": qty,
            "low_stock": is_low_stock(p.reorder_level or 0, qty),
        })
    return levels


def list_low_stock(store_id: int) -> list[dict]:
    return [level for level in list_stock_levels(store_id) if level["low_stock"]]


def list_movements(
    store_id: int,
    *,
    product_id: int | None = None,
    limit: int | None = None,
) -> list[StockMovement]:
    limit = clamp_int(
        limit,
        default=current_app.config.get("RECENT_LIST_LIMIT", 50),
        maximum=current_app.config.get("MAX_LIST_LIMIT", 500),
    )

    q = db.session.query(StockMovement).filter(StockMovement.store_id == store_id)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)

    return q.order_by(
        StockMovement.created_at.desc(),
        StockMovement.id.desc(),
    ).limit(limit).all()


def record_movement(
    *,
    store_id: int,
    product_id: int,
    kind: str,
    quantity: int,
    note: str | None = None,
    reference: str | None = None,
    user_id: int | None = None,
) -> StockMovement:
    """
    Manual RECEIVE or ADJUST posted by staff.

    - RECEIVE quantities are sign-normalized to abs(quantity).
    - ADJUST keeps the sign given (corrections may be negative).
    - The product must belong to the store.

    Commits on success; validation happens before the transaction opens.
    """
    if kind not in MANUAL_MOVEMENT_KINDS:
        raise InvalidMovementKindError(kind, MANUAL_MOVEMENT_KINDS)
    require_quantity(quantity, minimum=None)
    note = clean_optional_text(note, "note")
    reference = clean_optional_text(reference, "reference", max_length=128)

    quantity_delta = abs(quantity) if kind == MOVEMENT_RECEIVE else quantity

    def _op():
        begin_write()
        if product_id not in lock_products(store_id, [product_id]):
            raise ProductNotFoundError([product_id])

        return append_movement(
            store_id=store_id,
            product_id=product_id,
            kind=kind,
            quantity_delta=quantity_delta,
            note=note,
            reference=reference,
            user_id=user_id,
        )

    movement = run_in_transaction(_op)
    current_app.logger.info(
        "Recorded %s movement %s: store=%s product=%s delta=%s",
        kind, movement.id, store_id, product_id, quantity_delta,
    )
    return movement
