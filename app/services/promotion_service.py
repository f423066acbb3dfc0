import logging
from typing import Iterable, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import OrderItem, Promotion
from ..schemas.promotion import PromotionCreate, PromotionUpdate
from ..exceptions import (
    DuplicateCodeException,
    ImmutableCodeException,
    MissingEligibilityCriteriaException,
    PromotionNotFoundException,
)
from .eligibility import get_eligible_items
from .rule_store import DiscountRuleStore


logger = logging.getLogger(__name__)


class PromotionService(DiscountRuleStore):
    """
    Service class for promotion administration, validation and item eligibility.
    """

    model = Promotion
    not_found_exception = PromotionNotFoundException
    label = "Promotion"

    async def create_promotion(self, promotion_data: PromotionCreate, db: AsyncSession) -> Promotion:
        """Create a promotion. At least one category or item must be eligible."""

        self._check_eligibility_criteria(promotion_data.eligible_categories, promotion_data.eligible_items)
        self._check_discount_value(promotion_data.discount_type, promotion_data.discount_value)
        expiration_date = self._check_expiration(promotion_data.expiration_date)

        code = self.normalize_code(promotion_data.code)
        if await self._code_exists(code, db):
            raise DuplicateCodeException(f"Promotion with code {code} already exists")

        promotion = Promotion(
            code=code,
            discount_type=promotion_data.discount_type,
            discount_value=promotion_data.discount_value,
            expiration_date=expiration_date,
            usage_limit=promotion_data.usage_limit,
            eligible_categories=list(promotion_data.eligible_categories),
            eligible_items=list(promotion_data.eligible_items),
            is_active=promotion_data.is_active,
        )
        db.add(promotion)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise DuplicateCodeException(f"Promotion with code {code} already exists")

        await db.refresh(promotion)
        logger.info("Promotion %s created (%s %s)", promotion.code, promotion.discount_type.value, promotion.discount_value)
        return promotion


    async def update_promotion(self, code: str, promotion_data: PromotionUpdate, db: AsyncSession) -> Promotion:
        """Update a promotion under optimistic locking, keeping at least one eligibility criterion."""

        promotion = await self.find_by_code(code, db)
        changes = promotion_data.model_dump(exclude_unset=True)

        if "code" in changes:
            raise ImmutableCodeException("Promotion code cannot be updated")

        categories = changes.get("eligible_categories")
        if categories is None:
            categories = promotion.eligible_categories
        items = changes.get("eligible_items")
        if items is None:
            items = promotion.eligible_items
        self._check_eligibility_criteria(categories, items)

        # JSON columns are NOT NULL
        for field in ("eligible_categories", "eligible_items"):
            if field in changes and changes[field] is None:
                changes.pop(field)
        self._check_required_fields(changes)

        discount_type = changes.get("discount_type", promotion.discount_type)
        discount_value = changes.get("discount_value", promotion.discount_value)
        self._check_discount_value(discount_type, discount_value)

        if changes.get("expiration_date") is not None:
            changes["expiration_date"] = self._check_expiration(changes["expiration_date"])

        if not changes:
            return promotion

        updated = await self._versioned_update(promotion, changes, db)
        logger.info("Promotion %s updated: %s", updated.code, ", ".join(sorted(changes)))
        return updated


    async def delete_promotion(self, code: str, db: AsyncSession) -> None:
        await self.soft_delete(code, db)


    async def validate_promotion(self, code: str, db: AsyncSession) -> Promotion:
        """
        Get a promotion that can currently be applied.

        Raises:
            PromotionNotFoundException: No live promotion has this code.
            RuleUnusableException: Inactive, expired or exhausted.
        """

        promotion = await self.find_by_code(code, db)
        self._check_usable(promotion)
        return promotion


    def check_eligibility(self, promotion: Promotion, order_items: Iterable[OrderItem]) -> List[OrderItem]:
        """Order items the promotion applies to (category OR product id match)."""
        return get_eligible_items(promotion.eligible_categories, promotion.eligible_items, order_items)


    def _check_eligibility_criteria(self, categories, items) -> None:
        if not categories and not items:
            raise MissingEligibilityCriteriaException(
                "At least one eligibility criterion (categories or items) must be specified"
            )
