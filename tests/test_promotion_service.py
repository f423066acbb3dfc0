from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.enums import DiscountType
from app.exceptions import (
    DuplicateCodeException,
    MissingEligibilityCriteriaException,
    PromotionNotFoundException,
    RuleExpiredException,
    RuleInactiveException,
    UsageLimitReachedException,
)
from app.schemas.promotion import PromotionCreate, PromotionUpdate
from app.services.promotion_service import PromotionService
from app.utils.dates import utcnow


service = PromotionService()


def promotion_data(**overrides) -> PromotionCreate:
    values = {
        "code": "promo20",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("20"),
        "expiration_date": utcnow() + timedelta(days=7),
        "usage_limit": 10,
        "eligible_categories": ["clothing"],
    }
    values.update(overrides)
    return PromotionCreate(**values)


class TestCreatePromotion:
    async def test_create(self, db) -> None:
        promotion = await service.create_promotion(promotion_data(eligible_items=["mug-1", "  "]), db)

        assert promotion.code == "PROMO20"
        assert promotion.eligible_categories == ["clothing"]
        assert promotion.eligible_items == ["mug-1"]
        assert promotion.current_usage == 0

    async def test_requires_eligibility_criteria(self, db) -> None:
        with pytest.raises(MissingEligibilityCriteriaException):
            await service.create_promotion(promotion_data(eligible_categories=[], eligible_items=[]), db)

    async def test_blank_criteria_count_as_missing(self, db) -> None:
        with pytest.raises(MissingEligibilityCriteriaException):
            await service.create_promotion(promotion_data(eligible_categories=[" "]), db)

    async def test_duplicate_code(self, db, create_promotion) -> None:
        await create_promotion(code="PROMO20")

        with pytest.raises(DuplicateCodeException):
            await service.create_promotion(promotion_data(), db)


class TestUpdatePromotion:
    async def test_cannot_remove_all_criteria(self, db, create_promotion) -> None:
        await create_promotion(code="P1", eligible_categories=["clothing"], eligible_items=[])

        with pytest.raises(MissingEligibilityCriteriaException):
            await service.update_promotion("P1", PromotionUpdate(eligible_categories=[]), db)

    async def test_swap_criteria(self, db, create_promotion) -> None:
        await create_promotion(code="P1", eligible_categories=["clothing"], eligible_items=[])

        updated = await service.update_promotion(
            "P1", PromotionUpdate(eligible_categories=[], eligible_items=["laptop-1"]), db
        )

        assert updated.eligible_categories == []
        assert updated.eligible_items == ["laptop-1"]
        assert updated.version == 1


class TestValidatePromotion:
    async def test_valid(self, db, create_promotion) -> None:
        await create_promotion(code="P1")
        assert (await service.validate_promotion("p1", db)).code == "P1"

    async def test_unknown(self, db) -> None:
        with pytest.raises(PromotionNotFoundException):
            await service.validate_promotion("NOPE", db)

    async def test_inactive(self, db, create_promotion) -> None:
        await create_promotion(code="P1", is_active=False)
        with pytest.raises(RuleInactiveException):
            await service.validate_promotion("P1", db)

    async def test_expired(self, db, create_promotion) -> None:
        await create_promotion(code="P1", expiration_date=utcnow() - timedelta(seconds=1))
        with pytest.raises(RuleExpiredException):
            await service.validate_promotion("P1", db)

    async def test_exhausted(self, db, create_promotion) -> None:
        await create_promotion(code="P1", usage_limit=1, current_usage=1)
        with pytest.raises(UsageLimitReachedException):
            await service.validate_promotion("P1", db)

    async def test_deleted_promotion_not_found(self, db, create_promotion) -> None:
        await create_promotion(code="P1")
        await service.delete_promotion("P1", db)

        with pytest.raises(PromotionNotFoundException):
            await service.validate_promotion("P1", db)


class TestCheckEligibility:
    async def test_uses_promotion_criteria(self, db, create_promotion) -> None:
        promotion = await create_promotion(code="P1", eligible_categories=["Clothing"], eligible_items=["laptop-1"])
        items = [
            SimpleNamespace(product_id="laptop-1", category="electronics"),
            SimpleNamespace(product_id="shirt-1", category="clothing"),
            SimpleNamespace(product_id="mug-1", category="kitchen"),
        ]

        eligible = service.check_eligibility(promotion, items)

        assert [i.product_id for i in eligible] == ["laptop-1", "shirt-1"]
