from .coupon import CouponApplyRequest, CouponCreate, CouponUpdate, CouponValidateRequest
from .inventory import AdjustStockRequest, CheckStockRequest, RestockRequest
from .order import (
    OrderCreate,
    OrderItemIn,
    OrderReturnRequest,
    OrderSnapshot,
    OrderStatusUpdate,
    ReturnItem,
    ShippingAddress,
    SnapshotItem,
)
from .product import ProductCreate, ProductUpdate

__all__ = [
    "AdjustStockRequest",
    "CheckStockRequest",
    "CouponApplyRequest",
    "CouponCreate",
    "CouponUpdate",
    "CouponValidateRequest",
    "OrderCreate",
    "OrderItemIn",
    "OrderReturnRequest",
    "OrderSnapshot",
    "OrderStatusUpdate",
    "ProductCreate",
    "ProductUpdate",
    "RestockRequest",
    "ReturnItem",
    "ShippingAddress",
    "SnapshotItem",
]
