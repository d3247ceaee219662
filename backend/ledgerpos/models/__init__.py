from .tenancy import Tenant, Store, User
from .inventory import (
    Product,
    StockMovement,
    MOVEMENT_RECEIVE,
    MOVEMENT_ADJUST,
    MOVEMENT_SALE,
    MOVEMENT_KINDS,
)
from .sales import Sale, SaleItem
from .counts import StockCountSession, StockCountLine, COUNT_STATUS_OPEN, COUNT_STATUS_FINALIZED

__all__ = [
    'Tenant', 'Store', 'User',
    'Product', 'StockMovement',
    'MOVEMENT_RECEIVE', 'MOVEMENT_ADJUST', 'MOVEMENT_SALE', 'MOVEMENT_KINDS',
    'Sale', 'SaleItem',
    'StockCountSession', 'StockCountLine', 'COUNT_STATUS_OPEN', 'COUNT_STATUS_FINALIZED',
]
