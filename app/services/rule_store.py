import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ..enums import DiscountType
from ..exceptions import (
    InvalidDiscountValueException,
    InvalidExpirationDateException,
    RequiredFieldException,
    ResourceNotFoundException,
    RuleExpiredException,
    RuleInactiveException,
    RuleInUseException,
    UsageLimitReachedException,
    VersionConflictException,
)
from ..utils.dates import to_naive_utc, utcnow


logger = logging.getLogger(__name__)


class DiscountRuleStore:
    """
    Persistence and usage bookkeeping shared by vouchers and promotions.

    Subclasses set ``model`` and ``not_found_exception``. Codes are stored upper-case
    and soft-deleted rows are invisible to every lookup. Every mutating update bumps
    ``version``; usage increments only succeed against the version the caller observed.
    """

    model: Any = None
    not_found_exception = ResourceNotFoundException
    label = "Rule"
    # update fields that may be cleared with an explicit null
    nullable_fields: tuple = ()

    @staticmethod
    def normalize_code(code: str) -> str:
        return code.strip().upper()


    async def find_by_code(self, code: str, db: AsyncSession):
        """Get a live (not soft-deleted) rule by code, case-insensitively."""
        normalized = self.normalize_code(code)
        stmt = select(self.model).where(
            self.model.code == normalized,
            self.model.deleted_at.is_(None),
        )
        rule = (await db.execute(stmt)).scalars().first()

        if not rule:
            raise self.not_found_exception(f"{self.label} with code {normalized} not found")

        return rule


    async def list_rules(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 20,
        is_active: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Paginated listing of live rules, newest first."""
        filters = [self.model.deleted_at.is_(None)]
        if is_active is not None:
            filters.append(self.model.is_active == is_active)

        total = (await db.execute(
            select(func.count()).select_from(self.model).where(*filters)
        )).scalar_one()

        query = (
            select(self.model)
            .where(*filters)
            .order_by(self.model.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rules = (await db.execute(query)).scalars().all()

        return {
            "data": rules,
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }


    async def increment_usage(self, rule_id: str, expected_version: int, db: AsyncSession):
        """
        Count one more use of the rule, provided nobody changed it since ``expected_version`` was read.

        Runs inside the caller's transaction and does not commit.

        Raises:
            VersionConflictException: If the stored version no longer matches.
        """
        stmt = (
            update(self.model)
            .where(
                self.model.id == rule_id,
                self.model.version == expected_version,
                self.model.deleted_at.is_(None),
            )
            .values(
                current_usage=self.model.current_usage + 1,
                version=self.model.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)

        if result.rowcount == 0:
            logger.warning(
                "%s %s usage increment lost the race (expected version %s)",
                self.label, rule_id, expected_version,
            )
            raise VersionConflictException(f"{self.label} usage was updated by another process")

        return await self._reload(rule_id, db)


    async def decrement_usage(self, rule_id: str, db: AsyncSession):
        """
        Release one use of the rule.

        Not version-guarded: release must succeed under contention. The ``current_usage > 0``
        guard keeps the counter from going negative, and the call is a no-op when it is
        already zero. Runs inside the caller's transaction and does not commit.
        """
        stmt = (
            update(self.model)
            .where(self.model.id == rule_id, self.model.current_usage > 0)
            .values(
                current_usage=self.model.current_usage - 1,
                version=self.model.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)

        rule = await self._reload(rule_id, db)
        if rule is None:
            raise self.not_found_exception(f"{self.label} not found")

        if result.rowcount == 0:
            logger.info("%s %s usage already at zero, nothing to release", self.label, rule.code)

        return rule


    async def soft_delete(self, code: str, db: AsyncSession) -> None:
        """Mark a rule as deleted and inactive. Rules that have been used cannot be deleted."""
        rule = await self.find_by_code(code, db)

        if rule.current_usage > 0:
            raise RuleInUseException(f"Cannot delete {self.label.lower()} that has been used")

        await self._versioned_update(rule, {"deleted_at": utcnow(), "is_active": False}, db)
        logger.info("%s %s soft-deleted", self.label, rule.code)


    async def _code_exists(self, code: str, db: AsyncSession) -> bool:
        # soft-deleted rows still own their code
        stmt = select(self.model.id).where(self.model.code == code)
        return (await db.execute(stmt)).first() is not None


    async def _reload(self, rule_id: str, db: AsyncSession):
        return await db.get(self.model, rule_id, populate_existing=True)


    async def _versioned_update(self, rule, changes: Dict[str, Any], db: AsyncSession):
        """Write ``changes`` only if the row still has the version ``rule`` was read at, then commit."""
        stmt = (
            update(self.model)
            .where(
                self.model.id == rule.id,
                self.model.version == rule.version,
                self.model.deleted_at.is_(None),
            )
            .values(**changes, version=self.model.version + 1)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await db.execute(stmt)
            if result.rowcount == 0:
                raise VersionConflictException(
                    f"{self.label} was updated by another process. Please try again."
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return await self._reload(rule.id, db)


    def _check_required_fields(self, changes: Dict[str, Any]) -> None:
        for field, value in changes.items():
            if value is None and field not in self.nullable_fields:
                raise RequiredFieldException(f"{field} cannot be null")


    def _check_discount_value(self, discount_type: DiscountType, discount_value: Decimal) -> None:
        if discount_type == DiscountType.PERCENTAGE and Decimal(discount_value) > 100:
            raise InvalidDiscountValueException("Percentage discount cannot exceed 100")


    def _check_expiration(self, expiration_date: datetime) -> datetime:
        expiration_date = to_naive_utc(expiration_date)
        if expiration_date <= utcnow():
            raise InvalidExpirationDateException("Expiration date must be in the future")
        return expiration_date


    def _check_usable(self, rule) -> None:
        """Raise the specific RuleUnusable error when a rule cannot be applied right now."""
        if not rule.is_active:
            raise RuleInactiveException(f"{self.label} {rule.code} is not active")

        if rule.expiration_date <= utcnow():
            raise RuleExpiredException(f"{self.label} {rule.code} has expired")

        if rule.current_usage >= rule.usage_limit:
            raise UsageLimitReachedException(f"{self.label} {rule.code} has reached its usage limit")
