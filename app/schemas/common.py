from decimal import Decimal
from typing import Annotated, Generic, List, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")

CODE_PATTERN = r"^[A-Za-z0-9]+$"
CODE_MAX_LENGTH = 20

PositiveDecimal = Annotated[Decimal, Field(gt=0, max_digits=10, decimal_places=2)]
NonNegativeDecimal = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]
DiscountCode = Annotated[str, Field(min_length=1, max_length=CODE_MAX_LENGTH, pattern=CODE_PATTERN)]


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class PaginatedResponse(BaseModel, Generic[T]):
    """Schema for paginated listings"""
    data: List[T]
    meta: PaginationMeta
