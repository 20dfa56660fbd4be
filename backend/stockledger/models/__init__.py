from .catalog import Store, Product
from .inventory import Stock, StockMovement
from .sales import Sale, SaleItem
from .documents import Return, ReturnItem, StockAdjustment, StockAdjustmentItem, DocumentSequence

__all__ = [
    'Store', 'Product',
    'Stock', 'StockMovement',
    'Sale', 'SaleItem',
    'Return', 'ReturnItem',
    'StockAdjustment', 'StockAdjustmentItem',
    'DocumentSequence',
]
