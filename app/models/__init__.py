from .coupon import Coupon, CouponType, CouponUsage
from .error_log import ErrorLog
from .inventory import InventoryMovement, StockAction
from .order import ORDER_STATUSES, Order, OrderItem
from .product import PRODUCT_CATEGORIES, Product
from .user import User

__all__ = [
    "Coupon",
    "CouponType",
    "CouponUsage",
    "ErrorLog",
    "InventoryMovement",
    "StockAction",
    "ORDER_STATUSES",
    "Order",
    "OrderItem",
    "PRODUCT_CATEGORIES",
    "Product",
    "User",
]
