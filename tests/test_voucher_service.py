from datetime import timedelta
from decimal import Decimal

import pytest

from app.enums import DiscountType
from app.exceptions import (
    BelowMinimumOrderException,
    DuplicateCodeException,
    ImmutableCodeException,
    InvalidDiscountValueException,
    InvalidExpirationDateException,
    RuleExpiredException,
    RuleInactiveException,
    RuleInUseException,
    UsageLimitReachedException,
    VersionConflictException,
    VoucherNotFoundException,
)
from app.schemas.voucher import VoucherCreate, VoucherUpdate
from app.services.voucher_service import CODE_ALPHABET, VoucherService
from app.utils.dates import utcnow


service = VoucherService()


def voucher_data(**overrides) -> VoucherCreate:
    values = {
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("10"),
        "expiration_date": utcnow() + timedelta(days=7),
        "usage_limit": 5,
    }
    values.update(overrides)
    return VoucherCreate(**values)


class TestCreateVoucher:
    async def test_create_with_code_normalizes_case(self, db) -> None:
        voucher = await service.create_voucher(voucher_data(code="summer10"), db)

        assert voucher.code == "SUMMER10"
        assert voucher.current_usage == 0
        assert voucher.version == 0
        assert voucher.is_active is True

    async def test_create_without_code_generates_one(self, db) -> None:
        voucher = await service.create_voucher(voucher_data(), db)

        assert len(voucher.code) == 8
        assert set(voucher.code) <= set(CODE_ALPHABET)

    async def test_percentage_over_100_rejected(self, db) -> None:
        with pytest.raises(InvalidDiscountValueException):
            await service.create_voucher(voucher_data(discount_value=Decimal("101")), db)

    async def test_fixed_over_100_allowed(self, db) -> None:
        voucher = await service.create_voucher(
            voucher_data(discount_type=DiscountType.FIXED, discount_value=Decimal("250")), db
        )
        assert voucher.discount_value == Decimal("250.00")

    async def test_past_expiration_rejected(self, db) -> None:
        with pytest.raises(InvalidExpirationDateException):
            await service.create_voucher(voucher_data(expiration_date=utcnow() - timedelta(minutes=1)), db)

    async def test_duplicate_code_rejected(self, db) -> None:
        await service.create_voucher(voucher_data(code="DUP"), db)

        with pytest.raises(DuplicateCodeException):
            await service.create_voucher(voucher_data(code="dup"), db)

    async def test_code_of_deleted_voucher_stays_reserved(self, db) -> None:
        await service.create_voucher(voucher_data(code="GONE"), db)
        await service.delete_voucher("GONE", db)

        with pytest.raises(DuplicateCodeException):
            await service.create_voucher(voucher_data(code="GONE"), db)


class TestUpdateVoucher:
    async def test_update_bumps_version(self, db, create_voucher) -> None:
        await create_voucher(code="EDIT")

        updated = await service.update_voucher("edit", VoucherUpdate(usage_limit=50, is_active=False), db)

        assert updated.usage_limit == 50
        assert updated.is_active is False
        assert updated.version == 1

    async def test_code_is_immutable(self, db, create_voucher) -> None:
        await create_voucher(code="EDIT")

        with pytest.raises(ImmutableCodeException):
            await service.update_voucher("EDIT", VoucherUpdate(code="OTHER"), db)

    async def test_percentage_checked_against_effective_type(self, db, create_voucher) -> None:
        await create_voucher(code="EDIT", discount_type=DiscountType.FIXED, discount_value=Decimal("150"))

        with pytest.raises(InvalidDiscountValueException):
            await service.update_voucher("EDIT", VoucherUpdate(discount_type=DiscountType.PERCENTAGE), db)

    async def test_stale_version_conflicts(self, db, create_voucher, session_factory) -> None:
        voucher = await create_voucher(code="EDIT")

        async with session_factory() as other:
            await service.update_voucher("EDIT", VoucherUpdate(usage_limit=7), other)

        # ``voucher`` still carries version 0
        with pytest.raises(VersionConflictException):
            await service._versioned_update(voucher, {"usage_limit": 9}, db)


class TestDeleteVoucher:
    async def test_soft_delete_hides_voucher(self, db, create_voucher) -> None:
        await create_voucher(code="BYE")

        await service.delete_voucher("BYE", db)

        with pytest.raises(VoucherNotFoundException):
            await service.find_by_code("BYE", db)

    async def test_used_voucher_cannot_be_deleted(self, db, create_voucher) -> None:
        await create_voucher(code="USED", current_usage=1)

        with pytest.raises(RuleInUseException):
            await service.delete_voucher("USED", db)


class TestValidateVoucher:
    async def test_valid_voucher_returned(self, db, create_voucher) -> None:
        await create_voucher(code="OK", min_order_value=Decimal("100"))

        voucher = await service.validate_voucher("ok", Decimal("150"), db)
        assert voucher.code == "OK"

    async def test_unknown_code(self, db) -> None:
        with pytest.raises(VoucherNotFoundException):
            await service.validate_voucher("NOPE", Decimal("150"), db)

    async def test_inactive(self, db, create_voucher) -> None:
        await create_voucher(code="OFF", is_active=False)

        with pytest.raises(RuleInactiveException):
            await service.validate_voucher("OFF", Decimal("150"), db)

    async def test_expired(self, db, create_voucher) -> None:
        await create_voucher(code="OLD", expiration_date=utcnow() - timedelta(days=1))

        with pytest.raises(RuleExpiredException):
            await service.validate_voucher("OLD", Decimal("150"), db)

    async def test_usage_limit_reached(self, db, create_voucher) -> None:
        await create_voucher(code="FULL", usage_limit=2, current_usage=2)

        with pytest.raises(UsageLimitReachedException):
            await service.validate_voucher("FULL", Decimal("150"), db)

    async def test_below_minimum_order_value(self, db, create_voucher) -> None:
        await create_voucher(code="BIG", min_order_value=Decimal("200"))

        with pytest.raises(BelowMinimumOrderException) as exc_info:
            await service.validate_voucher("BIG", Decimal("150"), db)

        assert exc_info.value.reason == "BELOW_MIN_ORDER"


class TestUsageCounters:
    async def test_increment_requires_observed_version(self, db, create_voucher) -> None:
        voucher = await create_voucher(code="COUNT")

        updated = await service.increment_usage(voucher.id, 0, db)
        await db.commit()
        assert updated.current_usage == 1
        assert updated.version == 1

        with pytest.raises(VersionConflictException):
            await service.increment_usage(voucher.id, 0, db)
        await db.rollback()

    async def test_decrement_never_goes_negative(self, db, create_voucher) -> None:
        voucher = await create_voucher(code="COUNT", current_usage=1)

        first = await service.decrement_usage(voucher.id, db)
        second = await service.decrement_usage(voucher.id, db)
        await db.commit()

        assert first.current_usage == 0
        assert second.current_usage == 0

    async def test_list_excludes_deleted_and_filters_active(self, db, create_voucher) -> None:
        await create_voucher(code="A1")
        await create_voucher(code="A2", is_active=False)
        await create_voucher(code="A3")
        await service.delete_voucher("A3", db)

        everything = await service.list_rules(db)
        active = await service.list_rules(db, is_active=True)

        assert {v.code for v in everything["data"]} == {"A1", "A2"}
        assert everything["meta"] == {"total": 2, "page": 1, "limit": 20, "total_pages": 1}
        assert [v.code for v in active["data"]] == ["A1"]
