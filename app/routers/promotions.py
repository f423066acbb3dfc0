from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from ..core.config import Config
from ..core.dependencies import get_db, RoleChecker
from ..enums import UserRole
from ..schemas.common import PaginatedResponse
from ..schemas.promotion import PromotionCreate, PromotionResponse, PromotionUpdate
from ..services.promotion_service import PromotionService


router = APIRouter()
admins_only = Depends(RoleChecker([UserRole.ADMIN]))
promotion_service = PromotionService()


@router.post("", dependencies=[admins_only], response_model=PromotionResponse, status_code=status.HTTP_201_CREATED)
async def create_promotion(
    promotion_data: PromotionCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    **Create Promotion**

    Create an item-level promotion. At least one eligible category or product ID is required.
    Categories match case-insensitively, product IDs exactly.
    """
    return await promotion_service.create_promotion(promotion_data, db)


@router.get("", dependencies=[admins_only], response_model=PaginatedResponse[PromotionResponse])
async def list_promotions(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(Config.DEFAULT_PAGE_SIZE, ge=1, le=Config.MAX_PAGE_SIZE, description="Items per page"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    db: AsyncSession = Depends(get_db),
):
    return await promotion_service.list_rules(db, page=page, limit=limit, is_active=is_active)


@router.get("/{code}", dependencies=[admins_only], response_model=PromotionResponse)
async def get_promotion(
    code: str = Path(..., description="Promotion code"),
    db: AsyncSession = Depends(get_db),
):
    return await promotion_service.find_by_code(code, db)


@router.patch("/{code}", dependencies=[admins_only], response_model=PromotionResponse)
async def update_promotion(
    promotion_data: PromotionUpdate,
    code: str = Path(..., description="Promotion code"),
    db: AsyncSession = Depends(get_db),
):
    """
    **Update Promotion**

    Partial update. The code cannot be changed, and the promotion must keep at least
    one eligibility criterion. Fails with 409 if it was modified concurrently.
    """
    return await promotion_service.update_promotion(code, promotion_data, db)


@router.delete("/{code}", dependencies=[admins_only], status_code=status.HTTP_204_NO_CONTENT)
async def delete_promotion(
    code: str = Path(..., description="Promotion code"),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a promotion. Promotions that have been used cannot be deleted."""
    await promotion_service.delete_promotion(code, db)
