from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.enums import DiscountType
from app.exceptions import DiscountCapReachedException
from app.services.discount_calculator import (
    calculate_promotion_discount,
    calculate_voucher_discount,
    enforce_discount_cap,
    quantize_amount,
)


def rule(discount_type, value):
    return SimpleNamespace(discount_type=discount_type, discount_value=Decimal(value))


def item(unit_price, quantity):
    return SimpleNamespace(unit_price=Decimal(unit_price), quantity=quantity)


class TestVoucherDiscount:
    """Order-wide voucher discounts."""

    def test_percentage_of_subtotal(self) -> None:
        assert calculate_voucher_discount(rule(DiscountType.PERCENTAGE, "10"), Decimal("150.00")) == Decimal("15")

    def test_percentage_keeps_full_precision(self) -> None:
        amount = calculate_voucher_discount(rule(DiscountType.PERCENTAGE, "15"), Decimal("33.33"))
        assert amount == Decimal("4.9995")

    def test_fixed_amount(self) -> None:
        assert calculate_voucher_discount(rule(DiscountType.FIXED, "50"), Decimal("150.00")) == Decimal("50")

    def test_fixed_never_exceeds_subtotal(self) -> None:
        assert calculate_voucher_discount(rule(DiscountType.FIXED, "80"), Decimal("30.00")) == Decimal("30.00")


class TestPromotionDiscount:
    """Item-level promotion discounts over eligible items."""

    def test_percentage_of_eligible_total(self) -> None:
        items = [item("25.00", 2), item("10.00", 1)]
        assert calculate_promotion_discount(rule(DiscountType.PERCENTAGE, "20"), items) == Decimal("12")

    def test_fixed_is_per_unit(self) -> None:
        items = [item("100.00", 1), item("25.00", 2)]
        # 5 off each unit: 5 + 2 * 5
        assert calculate_promotion_discount(rule(DiscountType.FIXED, "5"), items) == Decimal("15")

    def test_fixed_capped_at_each_line_value(self) -> None:
        items = [item("100.00", 1), item("25.00", 2)]
        # laptop: min(30, 100) = 30, shirts: min(60, 50) = 50
        assert calculate_promotion_discount(rule(DiscountType.FIXED, "30"), items) == Decimal("80")

    def test_no_items_gives_zero(self) -> None:
        assert calculate_promotion_discount(rule(DiscountType.PERCENTAGE, "20"), []) == Decimal("0")


class TestDiscountCap:
    """Cumulative discount limited to half of the subtotal."""

    def test_discount_within_cap_is_unchanged(self) -> None:
        assert enforce_discount_cap(Decimal("150"), Decimal("0"), Decimal("50")) == Decimal("50")

    def test_discount_exactly_at_cap_is_unchanged(self) -> None:
        assert enforce_discount_cap(Decimal("150"), Decimal("50"), Decimal("25")) == Decimal("25")

    def test_discount_reduced_to_remaining_headroom(self) -> None:
        assert enforce_discount_cap(Decimal("150"), Decimal("50"), Decimal("60")) == Decimal("25.00")

    def test_no_headroom_raises(self) -> None:
        with pytest.raises(DiscountCapReachedException) as exc_info:
            enforce_discount_cap(Decimal("150"), Decimal("75"), Decimal("10"))

        assert exc_info.value.error_code == "CAP_EXHAUSTED"
        assert "50%" in exc_info.value.detail

    def test_ceiling_rounds_down_to_cents(self) -> None:
        # half of 99.99 is 49.995; the ceiling is 49.99
        assert enforce_discount_cap(Decimal("99.99"), Decimal("0"), Decimal("60")) == Decimal("49.99")

    def test_custom_ratio(self) -> None:
        assert enforce_discount_cap(Decimal("100"), Decimal("0"), Decimal("50"), Decimal("0.3")) == Decimal("30.00")

    def test_sequential_scenario_stops_at_half(self) -> None:
        """50 fixed, then 40% of 150 (60) capped to 25, then nothing left."""
        subtotal = Decimal("150.00")

        first = enforce_discount_cap(subtotal, Decimal("0"), Decimal("50"))
        second = enforce_discount_cap(subtotal, first, subtotal * Decimal("40") / 100)

        assert first == Decimal("50")
        assert second == Decimal("25.00")
        assert first + second == Decimal("75.00")

        with pytest.raises(DiscountCapReachedException):
            enforce_discount_cap(subtotal, first + second, Decimal("1"))


class TestQuantizeAmount:
    def test_rounds_half_up(self) -> None:
        assert quantize_amount(Decimal("4.9995")) == Decimal("5.00")
        assert quantize_amount(Decimal("0.125")) == Decimal("0.13")
        assert quantize_amount(Decimal("0.124")) == Decimal("0.12")
