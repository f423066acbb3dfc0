from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from ..enums import DiscountType
from .common import DiscountCode, PositiveDecimal


def _strip_blank(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return None
    return [value.strip() for value in values if value and value.strip()]


class PromotionBase(BaseModel):
    """Base schema for promotions"""
    discount_type: DiscountType
    discount_value: PositiveDecimal = Field(..., description="Percentage (0-100) or fixed amount per unit")
    expiration_date: datetime
    usage_limit: int = Field(..., ge=1, description="Maximum number of times the promotion can be used")
    eligible_categories: List[str] = Field(default_factory=list, description="Product categories, matched case-insensitively")
    eligible_items: List[str] = Field(default_factory=list, description="Exact product IDs")
    is_active: bool = True

    @field_validator("eligible_categories", "eligible_items")
    @classmethod
    def strip_blank_entries(cls, values: List[str]) -> List[str]:
        return _strip_blank(values)


class PromotionCreate(PromotionBase):
    """Schema for creating promotions"""
    code: DiscountCode

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.upper()


class PromotionUpdate(BaseModel):
    """Schema for updating promotions. ``code`` is accepted only so it can be rejected as immutable."""
    code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[PositiveDecimal] = None
    expiration_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    eligible_categories: Optional[List[str]] = None
    eligible_items: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("eligible_categories", "eligible_items")
    @classmethod
    def strip_blank_entries(cls, values: Optional[List[str]]) -> Optional[List[str]]:
        return _strip_blank(values)


class PromotionResponse(BaseModel):
    """Schema for promotion responses"""
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    expiration_date: datetime
    usage_limit: int
    current_usage: int
    eligible_categories: List[str]
    eligible_items: List[str]
    is_active: bool
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
