# backend/ledgerpos/services/demo_service.py
"""
Demo data seeding.

Upserts a fixed grocery catalogue into a store, receives initial stock once
per product (tagged DEMO-SEED-INITIAL) and, for a store without sales, rings
up a batch of random carts through the regular checkout. Safe to re-run.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, asdict

from flask import current_app

from ..extensions import db
from ..models import Product, Sale, Store, StockMovement, Tenant, User, MOVEMENT_RECEIVE
from ..validation import InsufficientStockError
from .concurrency import run_in_transaction
from .inventory_service import append_movement
from .sales_service import basis_points_tax, checkout


INITIAL_REFERENCE = "DEMO-SEED-INITIAL"
DEMO_TAX_BPS = 1500

# (sku, name, price_cents, reorder_level, barcode)
DEMO_PRODUCTS = [
    ("BEV-WATER-500", "Mineral Water 500ml", 600, 12, "6001000000011"),
    ("BEV-SODA-330", "Cola Soda 330ml", 900, 12, "6001000000028"),
    ("BEV-JUICE-1L", "Orange Juice 1L", 2200, 6, "6001000000035"),
    ("GRC-RICE-2K", "Rice 2kg", 4500, 8, "6001000000042"),
    ("GRC-SUGAR-2K", "White Sugar 2kg", 3200, 8, "6001000000059"),
    ("GRC-SALT-1K", "Table Salt 1kg", 1200, 10, "6001000000066"),
    ("DAI-MILK-1L", "Fresh Milk 1L", 1900, 10, "6001000000073"),
    ("DAI-YOG-1L", "Plain Yogurt 1L", 2400, 8, "6001000000080"),
    ("BAK-BREAD-WHT", "White Bread", 1500, 14, "6001000000097"),
    ("BAK-BUNS-6", "Burger Buns (6 pack)", 1800, 10, "6001000000103"),
    ("SNK-CHIPS-150", "Potato Chips 150g", 1700, 10, "6001000000110"),
    ("SNK-BISCUITS-200", "Tea Biscuits 200g", 1600, 10, "6001000000127"),
    ("HOU-SOAP-BAR", "Bath Soap Bar", 1100, 12, "6001000000134"),
    ("HOU-DETER-1K", "Laundry Detergent 1kg", 5200, 6, "6001000000141"),
    ("HOU-TP-9", "Toilet Paper (9 rolls)", 6500, 6, "6001000000158"),
]


@dataclass
class SeedResult:
    products_upserted: int = 0
    receive_movements_created: int = 0
    sales_created: int = 0
    sales_skipped: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def ensure_demo_store() -> tuple[Store, User]:
    """Return the demo store and its operator, creating tenant/store/user on first use."""
    def _op():
        tenant = db.session.query(Tenant).filter_by(code="DEMO").first()
        if tenant is None:
            tenant = Tenant(name="Demo Tenant", code="DEMO", is_active=True)
            db.session.add(tenant)
            db.session.flush()

        store = db.session.query(Store).filter_by(tenant_id=tenant.id, name="Demo Store").first()
        if store is None:
            store = Store(tenant_id=tenant.id, name="Demo Store", code="DEMO-01")
            db.session.add(store)
            db.session.flush()

        user = db.session.query(User).filter_by(email="demo@ledgerpos.local").first()
        if user is None:
            user = User(
                tenant_id=tenant.id,
                store_id=store.id,
                email="demo@ledgerpos.local",
                name="Demo Cashier",
                is_active=True,
            )
            db.session.add(user)
            db.session.flush()
        return store, user

    return run_in_transaction(_op)


def _upsert_catalogue(store_id: int, user_id: int | None, rng: random.Random) -> tuple[list[Product], int]:
    products = []
    for sku, name, price_cents, reorder_level, barcode in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(store_id=store_id, sku=sku).first()
        if product is None:
            product = Product(store_id=store_id, sku=sku)
            db.session.add(product)
        product.name = name
        product.barcode = barcode
        product.price_cents = price_cents
        product.reorder_level = reorder_level
        products.append(product)
    db.session.flush()

    already_received = {
        product_id
        for (product_id,) in db.session.query(StockMovement.product_id).filter_by(
            store_id=store_id,
            reference=INITIAL_REFERENCE,
        )
    }

    received = 0
    for product in products:
        if product.id in already_received:
            continue
        append_movement(
            store_id=store_id,
            product_id=product.id,
            kind=MOVEMENT_RECEIVE,
            quantity_delta=rng.randint(20, 120),
            note="Demo initial stock",
            reference=INITIAL_REFERENCE,
            user_id=user_id,
        )
        received += 1
    return products, received


def seed_store(store_id: int, user_id: int, *, rng: random.Random | None = None) -> SeedResult:
    """
    Seed one store with the demo catalogue, initial stock and sample sales.

    Sample sales only run when the store has none yet; each one is a normal
    checkout, so on-hand, sale items and SALE movements stay consistent.
    """
    rng = rng or random.Random()
    result = SeedResult()

    products, received = run_in_transaction(lambda: _upsert_catalogue(store_id, user_id, rng))
    result.products_upserted = len(products)
    result.receive_movements_created = received
    product_ids = [p.id for p in products]

    if db.session.query(Sale.id).filter_by(store_id=store_id).first() is None:
        tax_policy = basis_points_tax(DEMO_TAX_BPS)
        for _ in range(rng.randint(18, 32)):
            chosen = rng.sample(product_ids, rng.randint(1, 4))
            cart = [{"product_id": pid, "quantity": rng.randint(1, 3)} for pid in chosen]
            try:
                checkout(store_id, user_id, cart, compute_tax=tax_policy)
            except InsufficientStockError as e:
                current_app.logger.info(
                    "Demo sale skipped: product %s requested=%s on_hand=%s",
                    e.product_id, e.requested, e.on_hand,
                )
                result.sales_skipped += 1
                continue
            result.sales_created += 1

    current_app.logger.info("Seeded demo data for store %s: %s", store_id, result.to_dict())
    return result
