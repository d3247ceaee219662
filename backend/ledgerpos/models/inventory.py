from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .guards import make_append_only

# Movement kinds
MOVEMENT_RECEIVE = "RECEIVE"
MOVEMENT_ADJUST = "ADJUST"
MOVEMENT_SALE = "SALE"
MOVEMENT_KINDS = (MOVEMENT_RECEIVE, MOVEMENT_ADJUST, MOVEMENT_SALE)

class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to stores via store_id.
    Store belongs to a tenant, so products are transitively tenant-scoped.

    SKU is optional but unique within a store when present:
    UniqueConstraint("store_id", "sku"). NULL SKUs never collide.

    Stock on hand is NOT a column here. It is derived from StockMovement rows.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sku", name="uq_products_store_sku"),
        db.Index("ix_products_store_name", "store_id", "name"),
        db.Index("ix_products_store_barcode", "store_id", "barcode"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonneg"),
        db.CheckConstraint("reorder_level >= 0", name="ck_products_reorder_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    # 0 means "never flagged low"
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "price_cents": self.price_cents,
            "reorder_level": self.reorder_level,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    On-hand for (store, product) is SUM(quantity_delta). Rows are historical
    facts: they are never updated or deleted once flushed.

    Sign policy (also enforced by check constraints):
    - RECEIVE: quantity_delta > 0
    - SALE:    quantity_delta < 0, sale_id set
    - ADJUST:  any non-zero delta (manual corrections, count variances)
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_store_product", "store_id", "product_id"),
        db.Index("ix_stock_movements_store_created", "store_id", "created_at"),
        db.CheckConstraint("quantity_delta <> 0", name="ck_stock_movements_delta_nonzero"),
        db.CheckConstraint(
            "kind IN ('RECEIVE', 'ADJUST', 'SALE')",
            name="ck_stock_movements_kind",
        ),
        db.CheckConstraint(
            "(kind <> 'RECEIVE' OR quantity_delta > 0) AND (kind <> 'SALE' OR quantity_delta < 0)",
            name="ck_stock_movements_sign",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)
    reference = db.Column(db.String(128), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    stock_count_session_id = db.Column(
        db.Integer, db.ForeignKey("stock_count_sessions.id"), nullable=True, index=True
    )
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product is not None else None,
            "kind": self.kind,
            "quantity_delta": self.quantity_delta,
            "note": self.note,
            "reference": self.reference,
            "sale_id": self.sale_id,
            "stock_count_session_id": self.stock_count_session_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


make_append_only(StockMovement)
