from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import CurrentUser, get_current_user, get_db
from ..schemas.order import ApplyDiscountRequest, ApplyDiscountResponse, OrderCreate, OrderResponse
from ..services.order_service import OrderService


router = APIRouter()
order_service = OrderService()


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    **Create New Order**

    Create a pending order for the current user. Line totals and the subtotal are
    computed from the submitted items and never change afterwards.

    **Request Body:**
    - **items**: At least one item with product_id, product_name, category, unit_price and quantity

    **Returns:**
    - The order with subtotal, total_discount (0.00), final_total and status PENDING
    """
    return await order_service.create_order(current_user.id, order_data, db)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str = Path(..., description="ID of the order"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    **Get Order Details**

    Retrieve an order with its items and applied discounts.
    Callers can only see their own orders.
    """
    return await order_service.get_order(order_id, current_user.id, db)


@router.post("/{order_id}/apply-discount", response_model=ApplyDiscountResponse)
async def apply_discount(
    request: ApplyDiscountRequest,
    order_id: str = Path(..., description="ID of the order"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    **Apply Voucher or Promotion**

    Apply a discount code to a pending order. Voucher codes are checked first,
    then promotion codes.

    **Rules:**
    - A code can only be applied once per order
    - Total discount on an order never exceeds 50% of its subtotal; a discount
      that would cross the limit is reduced to what remains
    - Promotions only discount the items they are eligible for

    **Errors:**
    - 404 `NOT_FOUND`: no voucher or promotion has this code
    - 400 `RULE_UNUSABLE`: inactive, expired, usage limit reached, below minimum order or no eligible items
    - 400 `CAP_EXHAUSTED`: the order has already reached the maximum discount
    - 409 `CONFLICT`: already applied, or a concurrent update won the race
    """
    return await order_service.apply_discount(order_id, current_user.id, request.code, db)


@router.delete("/{order_id}/discounts/{code}", response_model=OrderResponse)
async def remove_discount(
    order_id: str = Path(..., description="ID of the order"),
    code: str = Path(..., description="Code of the applied discount"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    **Remove Applied Discount**

    Remove a discount from a pending order. The order total is restored by the amount
    that was actually recorded, and the rule's usage count is released.
    """
    return await order_service.remove_discount(order_id, current_user.id, code, db)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str = Path(..., description="ID of the order"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    **Cancel Order**

    Cancel a pending order and release the usage of every discount applied to it.
    Confirmed or already cancelled orders cannot be cancelled.
    """
    return await order_service.cancel_order(order_id, current_user.id, db)
