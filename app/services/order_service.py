import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from ..core.config import Config
from ..models import Order, OrderDiscount, OrderItem, Promotion, Voucher
from ..schemas.order import OrderCreate
from ..enums import AppliedDiscountType, OrderStatus
from ..exceptions import (
    CodeNotFoundException,
    DiscountNotFoundException,
    DuplicateDiscountException,
    NoEligibleItemsException,
    OrderNotCancellableException,
    OrderNotFoundException,
    OrderNotPendingException,
    PromotionNotFoundException,
    ResourceNotFoundException,
    RuleUnusableException,
    VersionConflictException,
    VoucherNotFoundException,
    ZeroDiscountException,
)
from .discount_calculator import (
    calculate_promotion_discount,
    calculate_voucher_discount,
    enforce_discount_cap,
    quantize_amount,
)
from .promotion_service import PromotionService
from .rule_store import DiscountRuleStore
from .voucher_service import VoucherService


logger = logging.getLogger(__name__)


@dataclass
class ResolvedDiscount:
    """A usable rule selected for an order, with its raw (uncapped) discount."""
    discount_type: AppliedDiscountType
    rule: Any
    store: DiscountRuleStore
    amount: Decimal


class OrderService:
    """
    Orders and the discounts applied to them.

    Each mutation (apply, remove, cancel) validates first and then writes the discount
    record, the order totals and the rule usage counter in a single transaction.
    """

    def __init__(
        self,
        voucher_service: Optional[VoucherService] = None,
        promotion_service: Optional[PromotionService] = None,
        cap_ratio: Optional[Decimal] = None,
    ):
        self.voucher_service = voucher_service or VoucherService()
        self.promotion_service = promotion_service or PromotionService()
        self.cap_ratio = Config.DISCOUNT_CAP_RATIO if cap_ratio is None else Decimal(cap_ratio)

    async def create_order(self, customer_id: str, order_data: OrderCreate, db: AsyncSession) -> Order:
        """Create a pending order. Items and subtotal are fixed from here on."""

        subtotal = Decimal("0.00")
        items: List[OrderItem] = []

        for position, item in enumerate(order_data.items):
            line_total = quantize_amount(item.unit_price * item.quantity)
            subtotal += line_total
            items.append(OrderItem(
                position=position,
                product_id=item.product_id,
                product_name=item.product_name,
                category=item.category,
                unit_price=item.unit_price,
                quantity=item.quantity,
                line_total=line_total,
            ))

        order = Order(
            customer_id=customer_id,
            subtotal=subtotal,
            total_discount=Decimal("0.00"),
            final_total=subtotal,
            status=OrderStatus.PENDING,
            items=items,
        )
        db.add(order)

        try:
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        order_id = order.id
        logger.info("Order %s created for customer %s (subtotal %s)", order_id, customer_id, subtotal)
        return await self.get_order(order_id, None, db)


    async def get_order(self, order_id: str, customer_id: Optional[str], db: AsyncSession) -> Order:
        """
        Get order by ID, with its items and discounts loaded.
        If customer_id is provided, ensure the order belongs to that customer.
        """
        query = (
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.discounts))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )

        if customer_id is not None:
            query = query.where(Order.customer_id == customer_id)

        order = (await db.execute(query)).scalars().first()

        if not order:
            raise OrderNotFoundException(f"Order with ID {order_id} not found")

        return order


    async def apply_discount(self, order_id: str, customer_id: str, code: str, db: AsyncSession) -> Dict[str, Any]:
        """
        Apply a voucher or promotion code to a pending order.

        Returns the updated order together with the discount type, code, amount and new total.
        """
        code = DiscountRuleStore.normalize_code(code)

        order = await self.get_order(order_id, customer_id, db)
        self._ensure_pending(order, "Can only apply discounts to pending orders")

        if any(discount.discount_code == code for discount in order.discounts):
            raise DuplicateDiscountException(f"Discount code {code} has already been applied to this order")

        resolved = await self.resolve_discount(order, code, db)

        capped = enforce_discount_cap(order.subtotal, order.total_discount, resolved.amount, self.cap_ratio)
        amount = quantize_amount(capped)
        if amount <= 0:
            raise ZeroDiscountException(f"Discount code {code} gives no discount on this order")
        new_total_discount = order.total_discount + amount

        rule_id, rule_version = resolved.rule.id, resolved.rule.version
        rule_code = resolved.rule.code

        try:
            db.add(OrderDiscount(
                order_id=order.id,
                discount_type=resolved.discount_type,
                discount_code=rule_code,
                discount_amount=amount,
            ))
            await db.flush()

            await self._update_order(order, db, total_discount=new_total_discount)
            await resolved.store.increment_usage(rule_id, rule_version, db)

            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise DuplicateDiscountException(f"Discount code {code} has already been applied to this order")
        except Exception:
            await db.rollback()
            raise

        if amount < resolved.amount:
            logger.info("Discount %s on order %s capped from %s to %s", rule_code, order_id, resolved.amount, amount)
        logger.info("%s %s applied to order %s: -%s", resolved.discount_type.value, rule_code, order_id, amount)

        updated = await self.get_order(order_id, None, db)
        label = "Voucher" if resolved.discount_type == AppliedDiscountType.VOUCHER else "Promotion"

        return {
            "order_id": updated.id,
            "discount_type": resolved.discount_type,
            "discount_code": rule_code,
            "discount_amount": amount,
            "new_total": updated.final_total,
            "message": f"{label} {rule_code} applied successfully",
            "order": updated,
        }


    async def remove_discount(self, order_id: str, customer_id: str, code: str, db: AsyncSession) -> Order:
        """Remove an applied discount from a pending order and release its usage."""
        code = DiscountRuleStore.normalize_code(code)

        order = await self.get_order(order_id, customer_id, db)
        self._ensure_pending(order, "Can only remove discounts from pending orders")

        discount = next((d for d in order.discounts if d.discount_code == code), None)
        if discount is None:
            raise DiscountNotFoundException(f"Discount code {code} not found on this order")

        amount = discount.discount_amount
        discount_type = discount.discount_type
        new_total_discount = order.total_discount - amount

        try:
            # delete-orphan cascade removes the row on flush
            order.discounts.remove(discount)
            await db.flush()

            await self._update_order(order, db, total_discount=new_total_discount)
            await self._release_usage(discount_type, code, db)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("%s %s removed from order %s: +%s", discount_type.value, code, order_id, amount)
        return await self.get_order(order_id, None, db)


    async def cancel_order(self, order_id: str, customer_id: str, db: AsyncSession) -> Order:
        """
        Cancel a pending order and release the usage of every discount applied to it.

        Order totals are kept as they were, as a historical record.
        """
        order = await self.get_order(order_id, customer_id, db)

        if order.status == OrderStatus.CANCELLED:
            raise OrderNotCancellableException("Order is already cancelled")
        if order.status != OrderStatus.PENDING:
            raise OrderNotCancellableException(f"Cannot cancel {order.status.value.lower()} orders")

        # fixed release order so concurrent cancels lock rules in the same sequence
        applied: List[Tuple[AppliedDiscountType, str]] = sorted(
            ((discount.discount_type, discount.discount_code) for discount in order.discounts),
            key=lambda pair: (pair[0].value, pair[1]),
        )

        try:
            await self._update_order(order, db, status=OrderStatus.CANCELLED)
            for discount_type, discount_code in applied:
                await self._release_usage(discount_type, discount_code, db)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Order %s cancelled, released %d discount(s)", order_id, len(applied))
        return await self.get_order(order_id, None, db)


    async def resolve_discount(self, order: Order, code: str, db: AsyncSession) -> ResolvedDiscount:
        """
        Find the rule a code refers to and compute its raw discount for the order.

        Vouchers are tried first, then promotions. A missing or unusable voucher falls
        through to the promotion store. When both attempts fail:

        - neither store knows the code: ``CodeNotFoundException``;
        - exactly one store knows it: that store's error;
        - both know it: the voucher error.
        """
        try:
            return await self._resolve_voucher(order, code, db)
        except (VoucherNotFoundException, RuleUnusableException) as error:
            voucher_error = error

        try:
            return await self._resolve_promotion(order, code, db)
        except (PromotionNotFoundException, RuleUnusableException) as error:
            promotion_error = error

        voucher_missing = isinstance(voucher_error, ResourceNotFoundException)
        promotion_missing = isinstance(promotion_error, ResourceNotFoundException)

        if voucher_missing and promotion_missing:
            raise CodeNotFoundException(f"No voucher or promotion found with code {code}")

        failure = promotion_error if voucher_missing else voucher_error
        logger.info("Code %s rejected for order %s: %s", code, order.id, failure.reason)
        raise failure


    async def _resolve_voucher(self, order: Order, code: str, db: AsyncSession) -> ResolvedDiscount:
        voucher: Voucher = await self.voucher_service.validate_voucher(code, order.subtotal, db)
        amount = calculate_voucher_discount(voucher, order.subtotal)

        return ResolvedDiscount(AppliedDiscountType.VOUCHER, voucher, self.voucher_service, amount)


    async def _resolve_promotion(self, order: Order, code: str, db: AsyncSession) -> ResolvedDiscount:
        promotion: Promotion = await self.promotion_service.validate_promotion(code, db)

        eligible_items = self.promotion_service.check_eligibility(promotion, order.items)
        if not eligible_items:
            raise NoEligibleItemsException("No items in this order are eligible for this promotion")

        amount = calculate_promotion_discount(promotion, eligible_items)
        return ResolvedDiscount(AppliedDiscountType.PROMOTION, promotion, self.promotion_service, amount)


    async def _update_order(
        self,
        order: Order,
        db: AsyncSession,
        total_discount: Optional[Decimal] = None,
        status: Optional[OrderStatus] = None,
    ) -> None:
        """
        Write new totals and/or status, guarded by the version and PENDING status the order was read with.

        Raises:
            VersionConflictException: If the order changed since it was loaded.
        """
        values: Dict[str, Any] = {"version": Order.version + 1}

        if total_discount is not None:
            values["total_discount"] = total_discount
            values["final_total"] = order.subtotal - total_discount
        if status is not None:
            values["status"] = status

        stmt = (
            update(Order)
            .where(
                Order.id == order.id,
                Order.version == order.version,
                Order.status == OrderStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)

        if result.rowcount == 0:
            logger.warning("Order %s changed concurrently (expected version %s)", order.id, order.version)
            raise VersionConflictException("Order was updated by another request. Please try again.")


    async def _release_usage(self, discount_type: AppliedDiscountType, code: str, db: AsyncSession) -> None:
        store = self.voucher_service if discount_type == AppliedDiscountType.VOUCHER else self.promotion_service

        try:
            rule = await store.find_by_code(code, db)
        except ResourceNotFoundException:
            logger.warning("%s %s no longer exists, usage not released", discount_type.value, code)
            return

        await store.decrement_usage(rule.id, db)


    @staticmethod
    def _ensure_pending(order: Order, message: str) -> None:
        if order.status != OrderStatus.PENDING:
            raise OrderNotPendingException(message)
