# Overview: Transaction boundaries and write locks for ledger-affecting operations.

"""
Concurrency model (authoritative)

Every operation that reads on-hand and then appends movements (checkout,
count finalize, manual movements) runs as one DB transaction that first takes
the write lock for the products it touches:

- SQLite: ``BEGIN IMMEDIATE`` acquires the database RESERVED lock before the
  first read, so read-then-append sequences are fully serialized.
- Other databases: ``SELECT ... FOR UPDATE`` on the product rows (always in
  ascending id order to avoid lock-order deadlocks). A concurrent transaction
  touching the same product blocks until the first one commits, and its
  subsequent on-hand read sees the committed SALE/ADJUST rows.

Failures roll back the whole transaction. There is no retry loop here:
retrying is the caller's decision.
"""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, StockCountSession
from ..validation import PersistenceError, ServiceError

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the write transaction for a read-then-append sequence.

    Must be the first statement of the transaction. On SQLite this takes the
    database write lock up front; on other dialects row locks do the work.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_products(store_id: int, product_ids: Iterable[int]) -> dict[int, Product]:
    """
    Lock and load store-scoped products in ascending id order.

    Missing ids (or ids of another store) are simply absent from the result;
    callers decide how to report them.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    query = db.session.query(Product).filter(
        Product.store_id == store_id,
        Product.id.in_(ids),
    ).order_by(Product.id.asc())
    return {p.id: p for p in lock_for_update(query).all()}


def lock_count_session(store_id: int, session_id: int) -> StockCountSession | None:
    query = db.session.query(StockCountSession).filter_by(id=session_id, store_id=store_id)
    return lock_for_update(query).first()


def run_in_transaction(func: Callable[[], T]) -> T:
    """
    Execute ``func`` and commit; roll back on any failure.

    - ServiceError subclasses propagate unchanged (no partial writes remain).
    - SQLAlchemyError is surfaced as PersistenceError with the driver message.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except ServiceError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        detail = getattr(exc, "orig", None) or exc
        raise PersistenceError(f"Database error: {detail}") from exc
    except Exception:
        db.session.rollback()
        raise
