from __future__ import annotations

from sqlalchemy import event, select

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ..validation import ImmutableRecordError

# Count session status constants
COUNT_STATUS_OPEN = "OPEN"
COUNT_STATUS_FINALIZED = "FINALIZED"

class StockCountSession(db.Model):
    """
    Physical stock count session.

    LIFECYCLE (one way, no reopening):
    1. OPEN: counted quantities are being entered (upsert per product)
    2. FINALIZED: variances posted to the ledger as ADJUST movements

    Finalizing writes exactly one ADJUST per counted product whose count
    differs from on-hand, in the same DB transaction as the status flip.
    """
    __tablename__ = "stock_count_sessions"
    __table_args__ = (
        db.Index("ix_stock_count_sessions_store_created", "store_id", "created_at"),
        db.CheckConstraint(
            "status IN ('OPEN', 'FINALIZED')",
            name="ck_stock_count_sessions_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=COUNT_STATUS_OPEN, index=True)

    note = db.Column(db.String(255), nullable=True)
    reference = db.Column(db.String(128), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    finalized_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lines = db.relationship(
        "StockCountLine",
        back_populates="count_session",
        order_by="StockCountLine.id",
        lazy=True,
    )

    @property
    def is_open(self) -> bool:
        return self.status == COUNT_STATUS_OPEN

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "status": self.status,
            "note": self.note,
            "reference": self.reference,
            "created_by_user_id": self.created_by_user_id,
            "finalized_by_user_id": self.finalized_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "finalized_at": to_utc_z(self.finalized_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data

class StockCountLine(db.Model):
    """
    Counted quantity for one product within a session.

    expected_qty / variance_qty stay NULL while the session is OPEN and are
    stamped at finalize (on-hand at that moment and counted - on-hand).
    """
    __tablename__ = "stock_count_lines"
    __table_args__ = (
        db.UniqueConstraint("session_id", "product_id", name="uq_stock_count_lines_session_product"),
        db.CheckConstraint("counted_qty >= 0", name="ck_stock_count_lines_counted_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("stock_count_sessions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    counted_qty = db.Column(db.Integer, nullable=False)

    expected_qty = db.Column(db.Integer, nullable=True)
    variance_qty = db.Column(db.Integer, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )

    count_session = db.relationship("StockCountSession", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "product_id": self.product_id,
            "counted_qty": self.counted_qty,
            "expected_qty": self.expected_qty,
            "variance_qty": self.variance_qty,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


def _session_status(connection, session_id: int) -> str | None:
    # Read through the flush connection so the check sees this transaction's state
    return connection.execute(
        select(StockCountSession.status).where(StockCountSession.id == session_id)
    ).scalar()


@event.listens_for(StockCountLine, "before_update")
def _block_sealed_line_update(mapper, connection, target):
    if _session_status(connection, target.session_id) == COUNT_STATUS_FINALIZED:
        raise ImmutableRecordError("Count lines of a finalized session are immutable")


@event.listens_for(StockCountLine, "before_delete")
def _block_sealed_line_delete(mapper, connection, target):
    if _session_status(connection, target.session_id) == COUNT_STATUS_FINALIZED:
        raise ImmutableRecordError("Count lines of a finalized session cannot be deleted")
