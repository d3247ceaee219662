# backend/ledgerpos/services/count_service.py
"""
Physical stock count service.

WHY: Regular physical counts keep the ledger honest. Staff record what is on
the shelf; finalizing posts the difference between counted and computed
on-hand as ADJUST movements, exactly once per counted product.

LIFECYCLE:
1. OPEN: session created, counted quantities upserted per product
2. FINALIZED: variances posted to the ledger; session and lines sealed
"""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Product,
    StockCountLine,
    StockCountSession,
    COUNT_STATUS_FINALIZED,
    COUNT_STATUS_OPEN,
    MOVEMENT_ADJUST,
)
from ..time_utils import utcnow
from ..validation import (
    AlreadyFinalizedError,
    CountSessionNotFoundError,
    NoCountedItemsError,
    ProductNotFoundError,
    SessionFinalizedError,
    clamp_int,
    clean_optional_text,
    require_quantity,
)
from .concurrency import begin_write, lock_count_session, lock_products, run_in_transaction
from .inventory_service import append_movement, get_on_hand


@dataclass
class CountFinalization:
    """Result of finalize_count: the sealed session and what was posted."""
    session: StockCountSession
    adjustment_count: int
    adjustments: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session": self.session.to_dict(),
            "adjustment_count": self.adjustment_count,
            "adjustments": self.adjustments,
        }


def create_session(
    store_id: int,
    user_id: int,
    note: str | None = None,
    reference: str | None = None,
) -> StockCountSession:
    """Open a new count session (status: OPEN)."""
    note = clean_optional_text(note, "note")
    reference = clean_optional_text(reference, "reference", max_length=128)

    def _op():
        session = StockCountSession(
            store_id=store_id,
            status=COUNT_STATUS_OPEN,
            note=note,
            reference=reference,
            created_by_user_id=user_id,
        )
        db.session.add(session)
        db.session.flush()  # Get ID
        return session

    session = run_in_transaction(_op)
    current_app.logger.info("Opened count session %s for store %s", session.id, store_id)
    return session


def set_count(
    store_id: int,
    session_id: int,
    product_id: int,
    counted_qty: int,
) -> StockCountLine:
    """
    Upsert the counted quantity for one product.

    Creates the (session, product) line if absent, otherwise overwrites
    counted_qty and bumps updated_at. Holding the session lock serializes this
    against finalize, so no count lands after the session is sealed.

    Raises:
        InvalidQuantityError: counted_qty is not an integer >= 0
        CountSessionNotFoundError: session not in this store
        SessionFinalizedError: session is no longer OPEN
        ProductNotFoundError: product not in this store
    """
    require_quantity(counted_qty, field="counted_qty", minimum=0, allow_zero=True)

    def _op():
        begin_write()
        session = lock_count_session(store_id, session_id)
        if not session:
            raise CountSessionNotFoundError(session_id)

        if session.status != COUNT_STATUS_OPEN:
            raise SessionFinalizedError(session_id)

        product = db.session.query(Product).filter_by(id=product_id, store_id=store_id).first()
        if not product:
            raise ProductNotFoundError([product_id])

        line = db.session.query(StockCountLine).filter_by(
            session_id=session.id,
            product_id=product_id,
        ).first()

        if line is None:
            line = StockCountLine(
                session_id=session.id,
                product_id=product_id,
                counted_qty=counted_qty,
            )
            db.session.add(line)
        else:
            line.counted_qty = counted_qty
            line.updated_at = utcnow()

        db.session.flush()
        return line

    return run_in_transaction(_op)


def finalize_count(
    store_id: int,
    session_id: int,
    user_id: int | None = None,
) -> CountFinalization:
    """
    Post count variances and seal the session.

    For each counted line: diff = counted_qty - on_hand. Zero diffs post
    nothing; every other diff becomes one ADJUST movement tagged with the
    session. Afterwards on-hand equals the counted quantity for every counted
    product. Everything commits together or not at all.

    Raises:
        CountSessionNotFoundError: session not in this store
        AlreadyFinalizedError: session is not OPEN (nothing is reposted)
        NoCountedItemsError: session has no lines
    """
    def _op():
        begin_write()
        session = lock_count_session(store_id, session_id)
        if not session:
            raise CountSessionNotFoundError(session_id)

        if session.status != COUNT_STATUS_OPEN:
            raise AlreadyFinalizedError(session_id)

        lines = db.session.query(StockCountLine).filter_by(
            session_id=session.id,
        ).order_by(StockCountLine.id.asc()).all()
        if not lines:
            raise NoCountedItemsError(session_id)

        product_ids = [line.product_id for line in lines]
        lock_products(store_id, product_ids)
        on_hand = get_on_hand(store_id, product_ids)

        note = session.note or current_app.config.get("DEFAULT_COUNT_NOTE", "Stock count")

        adjustments = []
        for line in lines:
            expected = on_hand.get(line.product_id, 0)
            diff = line.counted_qty - expected

            line.expected_qty = expected
            line.variance_qty = diff

            if diff == 0:
                continue

            movement = append_movement(
                store_id=store_id,
                product_id=line.product_id,
                kind=MOVEMENT_ADJUST,
                quantity_delta=diff,
                note=note,
                reference=session.reference,
                stock_count_session_id=session.id,
                user_id=user_id,
            )
            adjustments.append({
                "product_id": line.product_id,
                "counted_qty": line.counted_qty,
                "on_hand_before": expected,
                "quantity_delta": diff,
                "movement_id": movement.id,
            })

        # Lines are stamped before the status flip; once FINALIZED they are sealed
        db.session.flush()

        session.status = COUNT_STATUS_FINALIZED
        session.finalized_at = utcnow()
        session.finalized_by_user_id = user_id
        db.session.flush()

        return CountFinalization(
            session=session,
            adjustment_count=len(adjustments),
            adjustments=adjustments,
        )

    result = run_in_transaction(_op)
    current_app.logger.info(
        "Finalized count session %s for store %s: %s adjustment(s)",
        session_id, store_id, result.adjustment_count,
    )
    return result


def get_session(store_id: int, session_id: int) -> StockCountSession:
    session = db.session.query(StockCountSession).filter_by(id=session_id, store_id=store_id).first()
    if not session:
        raise CountSessionNotFoundError(session_id)
    return session


def get_session_detail(store_id: int, session_id: int) -> dict:
    """
    Session with its lines plus every store product with on-hand and counted quantity.

    counted_qty is None for products not counted yet.
    """
    session = get_session(store_id, session_id)

    products = db.session.query(Product).filter_by(store_id=store_id).order_by(
        Product.created_at.desc(),
        Product.id.desc(),
    ).all()
    on_hand = get_on_hand(store_id, [p.id for p in products])
    counted = {line.product_id: line.counted_qty for line in session.lines}

    items = [
        {
            "id": p.id,
            "name": p.name,
            "sku": p.sku,
            "barcode": p.barcode,
            "reorder_level": p.reorder_level,
            "on_hand": on_hand.get(p.id, 0),
            "counted_qty": counted.get(p.id),
        }
        for p in products
    ]

    return {
        "session": session.to_dict(include_lines=True),
        "items": items,
    }


def list_sessions(store_id: int, limit: int | None = None) -> list[dict]:
    """Recent sessions, newest first, each with its line count."""
    limit = clamp_int(
        limit,
        default=current_app.config.get("RECENT_LIST_LIMIT", 50),
        maximum=current_app.config.get("MAX_LIST_LIMIT", 500),
    )

    line_counts = db.session.query(
        StockCountLine.session_id,
        func.count(StockCountLine.id).label("line_count"),
    ).group_by(StockCountLine.session_id).subquery()

    rows = db.session.query(
        StockCountSession,
        func.coalesce(line_counts.c.line_count, 0),
    ).outerjoin(
        line_counts, line_counts.c.session_id == StockCountSession.id,
    ).filter(
        StockCountSession.store_id == store_id,
    ).order_by(
        StockCountSession.created_at.desc(),
        StockCountSession.id.desc(),
    ).limit(limit).all()

    return [{**session.to_dict(), "line_count": int(count)} for session, count in rows]
