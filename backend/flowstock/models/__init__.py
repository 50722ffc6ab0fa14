from .catalog import ProductCategory, Product, Inventory
from .orders import OrderStatus, SalesOrder, SalesOrderItem
from .purchasing import (
    PurchaseOrderStatus,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderReceipt,
    PurchaseOrderReceiptItem,
)
from .suppliers import Supplier, ProductSupplier
from .audit import AuditLog
from .idempotency import ApiIdempotencyKey
from .documents import DocumentSequence
from .auth import Role, User, AuthSession, PasswordResetToken
from .security import LoginEvent

__all__ = [
    'ProductCategory', 'Product', 'Inventory',
    'OrderStatus', 'SalesOrder', 'SalesOrderItem',
    'PurchaseOrderStatus', 'PurchaseOrder', 'PurchaseOrderItem',
    'PurchaseOrderReceipt', 'PurchaseOrderReceiptItem',
    'Supplier', 'ProductSupplier',
    'AuditLog',
    'ApiIdempotencyKey',
    'DocumentSequence',
    'Role', 'User', 'AuthSession', 'PasswordResetToken',
    'LoginEvent',
]
