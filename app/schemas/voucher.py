from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from ..enums import DiscountType
from .common import DiscountCode, NonNegativeDecimal, PositiveDecimal


class VoucherBase(BaseModel):
    """Base schema for vouchers"""
    discount_type: DiscountType
    discount_value: PositiveDecimal = Field(..., description="Percentage (0-100) or fixed amount")
    expiration_date: datetime
    usage_limit: int = Field(..., ge=1, description="Maximum number of times the voucher can be used")
    min_order_value: Optional[NonNegativeDecimal] = Field(None, description="Minimum order subtotal required")
    is_active: bool = True


class VoucherCreate(VoucherBase):
    """Schema for creating vouchers. A code is generated when none is supplied."""
    code: Optional[DiscountCode] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value


class VoucherUpdate(BaseModel):
    """Schema for updating vouchers. ``code`` is accepted only so it can be rejected as immutable."""
    code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[PositiveDecimal] = None
    expiration_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    min_order_value: Optional[NonNegativeDecimal] = None
    is_active: Optional[bool] = None


class VoucherResponse(BaseModel):
    """Schema for voucher responses"""
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    expiration_date: datetime
    usage_limit: int
    current_usage: int
    min_order_value: Optional[Decimal] = None
    is_active: bool
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
