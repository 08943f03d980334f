from .employees import Employee
from .inventory import Product, ProductBatch, StockAdjustment, InventoryCount, InventoryCountItem
from .sales import Sale, SaleItem, Return, ReturnItem
from .settings import SystemSettings
from .activity import UserActivity

__all__ = [
    'Employee',
    'Product', 'ProductBatch', 'StockAdjustment', 'InventoryCount', 'InventoryCountItem',
    'Sale', 'SaleItem', 'Return', 'ReturnItem',
    'SystemSettings',
    'UserActivity',
]
