# backend/ledgerpos/services/products_service.py
"""
Products Service with Store Scoping

Every product operation takes the acting store id and filters by it.
- create_product / update_product enforce SKU uniqueness within the store
- delete_product refuses products referenced by ledger, sale or count history
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Product, SaleItem, StockCountLine, StockMovement
from ..validation import (
    DuplicateSkuError,
    ProductInUseError,
    ProductNotFoundError,
    ValidationError,
    clean_optional_text,
    coerce_int,
    validate_price_cents,
)
from .concurrency import begin_write, lock_products, run_in_transaction

PRODUCT_MUTABLE_FIELDS = {"sku", "barcode", "name", "price_cents", "reorder_level"}

LOOKUP_LIMIT = 20


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _clean_patch(patch: dict, *, creating: bool) -> dict:
    unknown = set(patch) - PRODUCT_MUTABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown or read-only fields: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    cleaned: dict = {}
    if "name" in patch or creating:
        name = clean_optional_text(patch.get("name"), "name")
        if not name:
            raise ValidationError("name is required", details={"field": "name"})
        cleaned["name"] = name
    if "sku" in patch:
        cleaned["sku"] = clean_optional_text(patch["sku"], "sku", max_length=64)
    if "barcode" in patch:
        cleaned["barcode"] = clean_optional_text(patch["barcode"], "barcode", max_length=64)
    if "price_cents" in patch:
        cleaned["price_cents"] = validate_price_cents(patch["price_cents"])
    if "reorder_level" in patch:
        level = coerce_int(patch["reorder_level"], "reorder_level")
        if level < 0:
            raise ValidationError("reorder_level cannot be negative", details={"field": "reorder_level"})
        cleaned["reorder_level"] = level
    return cleaned


def _ensure_sku_available(store_id: int, sku: str | None, exclude_product_id: int | None = None) -> None:
    if not sku:
        return
    q = db.session.query(Product.id).filter(Product.store_id == store_id, Product.sku == sku)
    if exclude_product_id is not None:
        q = q.filter(Product.id != exclude_product_id)
    if q.first() is not None:
        raise DuplicateSkuError(sku)


def get_product(store_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, store_id=store_id).first()
    if not product:
        raise ProductNotFoundError([product_id])
    return product


def list_products(store_id: int) -> list[Product]:
    return db.session.query(Product).filter_by(store_id=store_id).order_by(
        Product.created_at.desc(),
        Product.id.desc(),
    ).all()


def lookup_products(store_id: int, q: str | None) -> list[Product]:
    """
    POS product search.

    An exact barcode or SKU match comes first, followed by up to 20
    case-insensitive name matches. The term is matched literally (% and _
    are not wildcards). Blank queries return nothing.
    """
    term = (q or "").strip()
    if not term:
        return []

    exact = db.session.query(Product).filter(
        Product.store_id == store_id,
        or_(Product.barcode == term, Product.sku == term),
    ).order_by(Product.id.asc()).first()

    name_q = db.session.query(Product).filter(
        Product.store_id == store_id,
        Product.name.ilike(f"%{_escape_like(term)}%", escape="\\"),
    )
    if exact is not None:
        name_q = name_q.filter(Product.id != exact.id)

    matches = name_q.order_by(Product.created_at.desc(), Product.id.desc()).limit(LOOKUP_LIMIT).all()
    return [exact, *matches] if exact is not None else matches


def create_product(store_id: int, data: dict) -> Product:
    cleaned = _clean_patch(data, creating=True)

    def _op():
        _ensure_sku_available(store_id, cleaned.get("sku"))
        product = Product(store_id=store_id, **cleaned)
        db.session.add(product)
        db.session.flush()
        return product

    return run_in_transaction(_op)


def update_product(store_id: int, product_id: int, patch: dict) -> Product:
    """
    Apply a partial update.

    Price changes never touch existing sales: SaleItem rows snapshot the
    price at checkout.
    """
    cleaned = _clean_patch(patch, creating=False)

    def _op():
        product = get_product(store_id, product_id)
        if "sku" in cleaned:
            _ensure_sku_available(store_id, cleaned["sku"], exclude_product_id=product.id)
        for key, value in cleaned.items():
            setattr(product, key, value)
        db.session.flush()
        return product

    return run_in_transaction(_op)


def product_references(store_id: int, product_id: int) -> dict:
    return {
        "stock_movements": db.session.query(StockMovement).filter_by(
            store_id=store_id, product_id=product_id,
        ).count(),
        "sale_items": db.session.query(SaleItem).filter_by(product_id=product_id).count(),
        "count_lines": db.session.query(StockCountLine).filter_by(product_id=product_id).count(),
    }


def delete_product(store_id: int, product_id: int) -> None:
    """
    Hard-delete a product that has never been stocked, sold or counted.

    Products with history stay: the ledger must remain replayable.
    """
    def _op():
        begin_write()
        product = lock_products(store_id, [product_id]).get(product_id)
        if product is None:
            raise ProductNotFoundError([product_id])
        references = product_references(store_id, product.id)
        if any(references.values()):
            raise ProductInUseError(product.id, references)
        db.session.delete(product)
        db.session.flush()

    run_in_transaction(_op)
