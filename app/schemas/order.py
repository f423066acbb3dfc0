from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from ..enums import AppliedDiscountType, OrderStatus
from .common import DiscountCode, NonNegativeDecimal


class OrderItemCreate(BaseModel):
    """Schema for a line of a new order"""
    product_id: str = Field(..., min_length=1, max_length=100)
    product_name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    unit_price: NonNegativeDecimal
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    """Schema for creating orders"""
    items: List[OrderItemCreate] = Field(..., min_length=1)


class ApplyDiscountRequest(BaseModel):
    """Voucher or promotion code to apply"""
    code: DiscountCode

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.upper()


class OrderItemResponse(BaseModel):
    """Schema for order item responses"""
    id: str
    product_id: str
    product_name: str
    category: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal

    class Config:
        from_attributes = True


class OrderDiscountResponse(BaseModel):
    """Schema for applied discount responses"""
    discount_type: AppliedDiscountType
    discount_code: str
    discount_amount: Decimal
    applied_at: datetime

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    subtotal: Decimal
    total_discount: Decimal
    final_total: Decimal
    status: OrderStatus
    items: List[OrderItemResponse]
    discounts: List[OrderDiscountResponse]
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApplyDiscountResponse(BaseModel):
    """Schema returned after a discount has been applied"""
    order_id: str
    discount_type: AppliedDiscountType
    discount_code: str
    discount_amount: Decimal
    new_total: Decimal
    message: str
    order: OrderResponse
