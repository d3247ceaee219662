"""
Checkout Service - cart to Sale in one atomic unit

WHY: A sale, its items and the SALE movements that take the goods off the
ledger must appear together or not at all, and two registers selling the last
unit of a product must not both succeed.

FLOW:
1. Validate the cart (no DB access)
2. Open the write transaction and lock the requested products
3. Price lines at the current product price (snapshotted into SaleItem)
4. Check on-hand per product inside the same transaction
5. Insert Sale + SaleItems + SALE movements, commit
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleItem, MOVEMENT_SALE
from ..validation import (
    EmptyCartError,
    InsufficientStockError,
    ProductNotFoundError,
    SaleNotFoundError,
    ValidationError,
    clamp_int,
    coerce_int,
    require_quantity,
)
from .concurrency import begin_write, lock_products, run_in_transaction
from .inventory_service import append_movement, get_on_hand


TaxPolicy = Callable[[int], int]


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


def zero_tax(subtotal_cents: int) -> int:
    """Default policy: tax is not charged yet."""
    return 0


def basis_points_tax(rate_bps: int) -> TaxPolicy:
    """
    Flat-rate policy, e.g. 825 = 8.25%.

    Rounds to the nearest cent, half-up.
    """
    if rate_bps < 0:
        raise ValueError("rate_bps cannot be negative")

    def _policy(subtotal_cents: int) -> int:
        return (subtotal_cents * rate_bps + 5_000) // 10_000

    return _policy


def _normalize_lines(lines: Iterable[Any] | None) -> list[CartLine]:
    """
    Coerce submitted lines into CartLine objects.

    Lines without a product id are dropped (the POS sends blank rows);
    quantities must be integers > 0.
    """
    normalized: list[CartLine] = []
    for raw in lines or []:
        if isinstance(raw, CartLine):
            product_id, quantity = raw.product_id, raw.quantity
        elif isinstance(raw, Mapping):
            product_id, quantity = raw.get("product_id"), raw.get("quantity")
        else:
            try:
                product_id, quantity = raw
            except (TypeError, ValueError):
                raise ValidationError("cart lines need product_id and quantity")

        if product_id is None or product_id == "":
            continue
        product_id = coerce_int(product_id, "product_id")

        require_quantity(quantity, minimum=1)
        normalized.append(CartLine(product_id=product_id, quantity=quantity))

    if not normalized:
        raise EmptyCartError()
    return normalized


def _requested_by_product(lines: list[CartLine]) -> dict[int, int]:
    # Insertion order follows the cart, so the first shortfall reported is the
    # first affected product the cashier scanned.
    totals: dict[int, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def _validate_on_hand(store_id: int, requested: dict[int, int]) -> None:
    on_hand = get_on_hand(store_id, requested.keys())
    for product_id, qty in requested.items():
        available = on_hand.get(product_id, 0)
        if available < qty:
            current_app.logger.warning(
                "Checkout rejected: store=%s product=%s requested=%s on_hand=%s",
                store_id, product_id, qty, available,
            )
            raise InsufficientStockError(product_id, qty, available)


def checkout(
    store_id: int,
    user_id: int,
    lines: Iterable[Any],
    *,
    compute_tax: TaxPolicy = zero_tax,
) -> Sale:
    """
    Convert a cart into a Sale with compensating SALE movements.

    Each submitted line becomes its own SaleItem and movement; the stock check
    is made against the total requested per product, so repeated lines for the
    same product cannot oversell it together.

    Raises:
        EmptyCartError, InvalidQuantityError: before any DB access
        ProductNotFoundError: any requested product missing from the store
        InsufficientStockError: product_id, requested and on_hand of the first shortfall
        PersistenceError: the transaction could not commit
    """
    cart = _normalize_lines(lines)
    requested = _requested_by_product(cart)

    def _op():
        begin_write()
        products = lock_products(store_id, requested.keys())
        missing = [pid for pid in requested if pid not in products]
        if missing:
            raise ProductNotFoundError(missing)

        items = []
        for position, line in enumerate(cart, start=1):
            product = products[line.product_id]
            unit_price_cents = product.price_cents or 0
            items.append(SaleItem(
                product_id=product.id,
                position=position,
                product_name=product.name,
                quantity=line.quantity,
                unit_price_cents=unit_price_cents,
                line_total_cents=unit_price_cents * line.quantity,
            ))

        subtotal_cents = sum(item.line_total_cents for item in items)
        tax_cents = compute_tax(subtotal_cents)
        total_cents = subtotal_cents + tax_cents

        _validate_on_hand(store_id, requested)

        sale = Sale(
            store_id=store_id,
            user_id=user_id,
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            total_cents=total_cents,
            items=items,
        )
        db.session.add(sale)
        db.session.flush()  # Get sale ID

        for item in items:
            append_movement(
                store_id=store_id,
                product_id=item.product_id,
                kind=MOVEMENT_SALE,
                quantity_delta=-item.quantity,
                sale_id=sale.id,
                user_id=user_id,
            )

        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Checkout committed: sale=%s store=%s lines=%s total_cents=%s",
        sale.id, store_id, len(cart), sale.total_cents,
    )
    return sale


def get_sale(store_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, store_id=store_id).first()
    if not sale:
        raise SaleNotFoundError(sale_id)
    return sale


def list_sales(store_id: int, limit: int | None = None) -> list[Sale]:
    limit = clamp_int(
        limit,
        default=current_app.config.get("RECENT_LIST_LIMIT", 50),
        maximum=current_app.config.get("MAX_LIST_LIMIT", 500),
    )
    return db.session.query(Sale).filter_by(store_id=store_id).order_by(
        Sale.created_at.desc(),
        Sale.id.desc(),
    ).limit(limit).all()
