from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from ..core.config import Config
from ..core.dependencies import get_db, RoleChecker
from ..enums import UserRole
from ..schemas.common import PaginatedResponse
from ..schemas.voucher import VoucherCreate, VoucherResponse, VoucherUpdate
from ..services.voucher_service import VoucherService


router = APIRouter()
admins_only = Depends(RoleChecker([UserRole.ADMIN]))
voucher_service = VoucherService()


@router.post("", dependencies=[admins_only], response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
async def create_voucher(
    voucher_data: VoucherCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    **Create Voucher**

    Create an order-wide voucher. When no code is given a unique 8-character code is generated.
    Percentage vouchers cannot exceed 100 and the expiration date must be in the future.
    """
    return await voucher_service.create_voucher(voucher_data, db)


@router.get("", dependencies=[admins_only], response_model=PaginatedResponse[VoucherResponse])
async def list_vouchers(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(Config.DEFAULT_PAGE_SIZE, ge=1, le=Config.MAX_PAGE_SIZE, description="Items per page"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    db: AsyncSession = Depends(get_db),
):
    return await voucher_service.list_rules(db, page=page, limit=limit, is_active=is_active)


@router.get("/{code}", dependencies=[admins_only], response_model=VoucherResponse)
async def get_voucher(
    code: str = Path(..., description="Voucher code"),
    db: AsyncSession = Depends(get_db),
):
    return await voucher_service.find_by_code(code, db)


@router.patch("/{code}", dependencies=[admins_only], response_model=VoucherResponse)
async def update_voucher(
    voucher_data: VoucherUpdate,
    code: str = Path(..., description="Voucher code"),
    db: AsyncSession = Depends(get_db),
):
    """
    **Update Voucher**

    Partial update. The code cannot be changed. Fails with 409 if the voucher
    was modified concurrently.
    """
    return await voucher_service.update_voucher(code, voucher_data, db)


@router.delete("/{code}", dependencies=[admins_only], status_code=status.HTTP_204_NO_CONTENT)
async def delete_voucher(
    code: str = Path(..., description="Voucher code"),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a voucher. Vouchers that have been used cannot be deleted."""
    await voucher_service.delete_voucher(code, db)
