from .catalog import Category, Product
from .customers import Customer, ShippingAddress, BillingAddress
from .inventory import InventoryTransaction
from .orders import Order, OrderLine, ProductReturn
from .audit import AuditEntry

__all__ = [
    'Category', 'Product',
    'Customer', 'ShippingAddress', 'BillingAddress',
    'InventoryTransaction',
    'Order', 'OrderLine', 'ProductReturn',
    'AuditEntry',
]
