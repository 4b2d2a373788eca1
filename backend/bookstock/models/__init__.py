from .catalog import Book
from .registry import Location, Vendor
from .stock import StockRecord, StockTransfer, LowStockAlert
from .procurement import PurchaseRequest, PurchaseOrder, PurchaseOrderItem
from .audit import AuditEvent

__all__ = [
    'Book',
    'Location', 'Vendor',
    'StockRecord', 'StockTransfer', 'LowStockAlert',
    'PurchaseRequest', 'PurchaseOrder', 'PurchaseOrderItem',
    'AuditEvent',
]
