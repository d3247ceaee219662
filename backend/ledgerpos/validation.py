from __future__ import annotations

from typing import Any


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999


class ServiceError(Exception):
    """
    Base for structured service failures.

    Every failure carries a stable ``code`` and a ``details`` dict so the
    presentation layer can render it without re-deriving the cause.
    """
    kind = "error"
    status_code = 500
    default_code = "ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(ServiceError, ValueError):
    """400-level input problem, always detected before any write."""
    kind = "validation"
    status_code = 400
    default_code = "VALIDATION_ERROR"


class NotFoundError(ServiceError, LookupError):
    """Entity missing or not owned by the caller's store."""
    kind = "not_found"
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict discovered after reading current state."""
    kind = "conflict"
    status_code = 409
    default_code = "CONFLICT"


class PersistenceError(ServiceError):
    """Transaction or connection failure, surfaced as-is (no retry in the core)."""
    kind = "persistence"
    status_code = 503
    default_code = "PERSISTENCE_ERROR"


# ---------------------------------------------------------------------------
# Validation failures
# ---------------------------------------------------------------------------

class EmptyCartError(ValidationError):
    default_code = "EMPTY_CART"

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InvalidQuantityError(ValidationError):
    default_code = "INVALID_QUANTITY"

    def __init__(self, message: str, *, field: str = "quantity", value: Any = None):
        super().__init__(message, details={"field": field, "value": _jsonable(value)})


class InvalidMovementKindError(ValidationError):
    default_code = "INVALID_MOVEMENT_KIND"

    def __init__(self, kind: Any, allowed: tuple[str, ...]):
        super().__init__(
            f"movement kind must be one of {', '.join(allowed)}",
            details={"kind": _jsonable(kind), "allowed": list(allowed)},
        )


class NoCountedItemsError(ValidationError):
    default_code = "NO_COUNTED_ITEMS"

    def __init__(self, session_id: int):
        super().__init__("No counted items", details={"session_id": session_id})


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------

class ProductNotFoundError(NotFoundError):
    default_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_ids):
        ids = sorted(product_ids)
        message = "Product not found" if len(ids) == 1 else "One or more products not found"
        super().__init__(message, details={"product_ids": ids})
        self.product_ids = ids


class CountSessionNotFoundError(NotFoundError):
    default_code = "COUNT_SESSION_NOT_FOUND"

    def __init__(self, session_id: int):
        super().__init__("Count session not found", details={"session_id": session_id})


class SaleNotFoundError(NotFoundError):
    default_code = "SALE_NOT_FOUND"

    def __init__(self, sale_id: int):
        super().__init__("Sale not found", details={"sale_id": sale_id})


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------

class InsufficientStockError(ConflictError):
    default_code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, on_hand: int):
        super().__init__(
            "Insufficient stock",
            details={
                "product_id": product_id,
                "requested": requested,
                "on_hand": on_hand,
                "shortfall": requested - on_hand,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.on_hand = on_hand


class AlreadyFinalizedError(ConflictError):
    default_code = "ALREADY_FINALIZED"

    def __init__(self, session_id: int):
        super().__init__("Session already finalized", details={"session_id": session_id})


class SessionFinalizedError(ConflictError):
    default_code = "SESSION_FINALIZED"

    def __init__(self, session_id: int):
        super().__init__("Session is finalized", details={"session_id": session_id})


class ProductInUseError(ConflictError):
    default_code = "PRODUCT_IN_USE"

    def __init__(self, product_id: int, references: dict):
        super().__init__(
            "Product has stock, sale or count history and cannot be deleted",
            details={"product_id": product_id, "references": references},
        )


class DuplicateSkuError(ConflictError):
    default_code = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        super().__init__("SKU already exists in this store", details={"sku": sku})


class ImmutableRecordError(ConflictError):
    """Raised when an append-only or sealed record is updated or deleted."""
    default_code = "IMMUTABLE_RECORD"


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return repr(value)


def is_strict_int(value: Any) -> bool:
    """True for real integers; bools are rejected even though they subclass int."""
    return isinstance(value, int) and not isinstance(value, bool)


def require_quantity(value: Any, *, field: str = "quantity", minimum: int | None = 1,
                     allow_zero: bool = False) -> int:
    """
    Strict quantity validation.

    - must be an int (floats, bools, strings are rejected)
    - ``minimum`` bounds it from below (None means unbounded)
    - ``allow_zero=False`` additionally rejects 0 (used for signed deltas)
    """
    if not is_strict_int(value):
        raise InvalidQuantityError(f"{field} must be an integer", field=field, value=value)
    if minimum is not None and value < minimum:
        raise InvalidQuantityError(f"{field} must be an integer >= {minimum}", field=field, value=value)
    if not allow_zero and value == 0:
        raise InvalidQuantityError(f"{field} must be a non-zero integer", field=field, value=value)
    return value


def coerce_int(value: Any, field: str) -> int:
    """
    Coerce request input into an int with the strict rules used for JSON payloads.

    Accepts ints and plain digit strings; rejects floats, bools, decimals and
    scientific notation.
    """
    if is_strict_int(value):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                details={"field": field},
            )
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", details={"field": field})
    raise ValidationError(f"{field} must be an integer", details={"field": field})


def clean_optional_text(value: Any, field: str, max_length: int = 255) -> str | None:
    """Strip optional free text; blank becomes None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={"field": field})
    stripped = value.strip()
    if not stripped:
        return None
    if len(stripped) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters",
            details={"field": field, "max_length": max_length},
        )
    return stripped


def validate_price_cents(value: Any, field: str = "price_cents") -> int:
    cents = coerce_int(value, field)
    if cents < 0:
        raise ValidationError(f"{field} cannot be negative", details={"field": field})
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(
            f"{field} cannot exceed {MAX_PRICE_CENTS}",
            details={"field": field, "max": MAX_PRICE_CENTS},
        )
    return cents


def clamp_int(value: int | None, *, default: int, minimum: int = 1, maximum: int) -> int:
    """Bound a paging or window argument; None falls back to ``default``."""
    if value is None:
        value = default
    return max(minimum, min(value, maximum))
