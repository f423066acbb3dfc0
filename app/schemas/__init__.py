from .common import PaginatedResponse, PaginationMeta
from .order import (
    ApplyDiscountRequest,
    ApplyDiscountResponse,
    OrderCreate,
    OrderDiscountResponse,
    OrderItemCreate,
    OrderItemResponse,
    OrderResponse,
)
from .promotion import PromotionCreate, PromotionResponse, PromotionUpdate
from .voucher import VoucherCreate, VoucherResponse, VoucherUpdate


__all__ = [
    # common schemas
    "PaginatedResponse",
    "PaginationMeta",

    # order schemas
    "ApplyDiscountRequest",
    "ApplyDiscountResponse",
    "OrderCreate",
    "OrderDiscountResponse",
    "OrderItemCreate",
    "OrderItemResponse",
    "OrderResponse",

    # promotion schemas
    "PromotionCreate",
    "PromotionResponse",
    "PromotionUpdate",

    # voucher schemas
    "VoucherCreate",
    "VoucherResponse",
    "VoucherUpdate",
]
