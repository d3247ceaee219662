"""
Write guards for append-only and sealed records.

SQLAlchemy fires ``before_update`` for every instance marked dirty, including
ones whose only change is a relationship collection. The guards below only
reject real column changes.
"""
from __future__ import annotations

from sqlalchemy import event, inspect

from ..validation import ImmutableRecordError


def has_column_changes(target) -> bool:
    state = inspect(target)
    return any(
        state.attrs[attr.key].history.has_changes()
        for attr in state.mapper.column_attrs
    )


def make_append_only(model) -> None:
    """Reject ORM updates and deletes of ``model`` rows once they exist."""
    label = model.__name__

    @event.listens_for(model, "before_update")
    def _block_update(mapper, connection, target):
        if has_column_changes(target):
            raise ImmutableRecordError(f"{label} records are immutable")

    @event.listens_for(model, "before_delete")
    def _block_delete(mapper, connection, target):
        raise ImmutableRecordError(f"{label} records are immutable and cannot be deleted")
