from .customers import Customer
from .inventory import Product, InventoryTransaction, TRANSACTION_TYPES
from .orders import Order, OrderItem, ORDER_STATUSES
from .documents import DocumentSequence

__all__ = [
    'Customer',
    'Product', 'InventoryTransaction', 'TRANSACTION_TYPES',
    'Order', 'OrderItem', 'ORDER_STATUSES',
    'DocumentSequence',
]
