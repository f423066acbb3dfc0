import logging
import secrets
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Config
from ..models import Voucher
from ..schemas.voucher import VoucherCreate, VoucherUpdate
from ..exceptions import (
    BelowMinimumOrderException,
    DuplicateCodeException,
    ImmutableCodeException,
    VoucherNotFoundException,
)
from .rule_store import DiscountRuleStore


logger = logging.getLogger(__name__)

# readable characters only: no 0/O, 1/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MAX_CODE_ATTEMPTS = 10


class VoucherService(DiscountRuleStore):
    """
    Service class for voucher administration and validation.
    """

    model = Voucher
    not_found_exception = VoucherNotFoundException
    label = "Voucher"
    nullable_fields = ("min_order_value",)

    async def create_voucher(self, voucher_data: VoucherCreate, db: AsyncSession) -> Voucher:
        """Create a voucher, generating a unique code when none is supplied."""

        self._check_discount_value(voucher_data.discount_type, voucher_data.discount_value)
        expiration_date = self._check_expiration(voucher_data.expiration_date)

        if voucher_data.code:
            code = self.normalize_code(voucher_data.code)
            if await self._code_exists(code, db):
                raise DuplicateCodeException(f"Voucher with code {code} already exists")
        else:
            code = await self._generate_unique_code(db)

        voucher = Voucher(
            code=code,
            discount_type=voucher_data.discount_type,
            discount_value=voucher_data.discount_value,
            expiration_date=expiration_date,
            usage_limit=voucher_data.usage_limit,
            min_order_value=voucher_data.min_order_value,
            is_active=voucher_data.is_active,
        )
        db.add(voucher)

        try:
            await db.commit()
        except IntegrityError:
            # lost a race with a concurrent create of the same code
            await db.rollback()
            raise DuplicateCodeException(f"Voucher with code {code} already exists")

        await db.refresh(voucher)
        logger.info("Voucher %s created (%s %s)", voucher.code, voucher.discount_type.value, voucher.discount_value)
        return voucher


    async def update_voucher(self, code: str, voucher_data: VoucherUpdate, db: AsyncSession) -> Voucher:
        """Update a voucher under optimistic locking. The code itself is immutable."""

        voucher = await self.find_by_code(code, db)
        changes = voucher_data.model_dump(exclude_unset=True)

        if "code" in changes:
            raise ImmutableCodeException("Voucher code cannot be updated")

        self._check_required_fields(changes)

        discount_type = changes.get("discount_type", voucher.discount_type)
        discount_value = changes.get("discount_value", voucher.discount_value)
        self._check_discount_value(discount_type, discount_value)

        if changes.get("expiration_date") is not None:
            changes["expiration_date"] = self._check_expiration(changes["expiration_date"])

        if not changes:
            return voucher

        updated = await self._versioned_update(voucher, changes, db)
        logger.info("Voucher %s updated: %s", updated.code, ", ".join(sorted(changes)))
        return updated


    async def delete_voucher(self, code: str, db: AsyncSession) -> None:
        await self.soft_delete(code, db)


    async def validate_voucher(self, code: str, order_subtotal: Decimal, db: AsyncSession) -> Voucher:
        """
        Get a voucher that can be applied to an order with the given subtotal.

        Raises:
            VoucherNotFoundException: No live voucher has this code.
            RuleUnusableException: Inactive, expired, exhausted or below the minimum order value.
        """

        voucher = await self.find_by_code(code, db)
        self._check_usable(voucher)

        if voucher.min_order_value is not None and Decimal(order_subtotal) < voucher.min_order_value:
            raise BelowMinimumOrderException(
                f"Order value is below minimum required ({voucher.min_order_value})"
            )

        return voucher


    async def _generate_unique_code(self, db: AsyncSession) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(Config.VOUCHER_CODE_LENGTH))
            if not await self._code_exists(code, db):
                return code

        raise RuntimeError("Failed to generate unique voucher code")
