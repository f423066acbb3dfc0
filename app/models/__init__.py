from .voucher import Voucher
from .promotion import Promotion
from .order import Order
from .order_item import OrderItem
from .order_discount import OrderDiscount


__all__ = [
    "Voucher",
    "Promotion",
    "Order",
    "OrderItem",
    "OrderDiscount",
]
