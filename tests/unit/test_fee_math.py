"""
Тесты целочисленной арифметики custom fees

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
- royalty = floor(V * n / d)
- royalty <= V для любой допустимой доли
- доля > 1 отклоняется
"""

from fractions import Fraction

import pytest

from src.core.math import (
    as_fraction,
    format_fraction,
    royalty_amount,
    validate_fraction,
    validate_non_negative_amount,
    validate_positive_amount,
)


# =============================================================================
# VALIDATION
# =============================================================================


class TestAmountValidation:
    def test_positive_accepts(self) -> None:
        validate_positive_amount(1, "amount")

    @pytest.mark.parametrize("value", [0, -5])
    def test_positive_rejects_non_positive(self, value: int) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            validate_positive_amount(value, "amount")

    @pytest.mark.parametrize("value", [1.5, "10", True])
    def test_rejects_non_integers(self, value) -> None:
        """float, str и bool не являются суммами"""
        with pytest.raises(ValueError, match="must be an integer"):
            validate_positive_amount(value, "amount")

    def test_non_negative_accepts_zero(self) -> None:
        validate_non_negative_amount(0, "value")

    def test_non_negative_rejects_negative(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            validate_non_negative_amount(-1, "value")


class TestFractionValidation:
    @pytest.mark.parametrize("numerator,denominator", [(1, 10), (5, 10), (100, 100)])
    def test_valid_fractions(self, numerator: int, denominator: int) -> None:
        validate_fraction(numerator, denominator)

    def test_fraction_above_one_rejected(self) -> None:
        """200/100 — royalty не может превышать consideration"""
        with pytest.raises(ValueError, match="exceeds 1"):
            validate_fraction(200, 100, "royalty fraction")

    @pytest.mark.parametrize("numerator,denominator", [(0, 10), (5, 0), (-1, 10)])
    def test_non_positive_parts_rejected(self, numerator: int, denominator: int) -> None:
        with pytest.raises(ValueError):
            validate_fraction(numerator, denominator)


# =============================================================================
# ROYALTY
# =============================================================================


class TestRoyaltyAmount:
    def test_half_of_ten(self) -> None:
        assert royalty_amount(10, 5, 10) == 5

    def test_floor_rounding(self) -> None:
        """Дробная часть отбрасывается"""
        assert royalty_amount(7, 1, 2) == 3
        assert royalty_amount(1, 1, 3) == 0
        assert royalty_amount(999, 1, 10) == 99

    def test_zero_value(self) -> None:
        assert royalty_amount(0, 5, 10) == 0

    def test_full_fraction_returns_value(self) -> None:
        assert royalty_amount(1_000_000_000, 1, 1) == 1_000_000_000

    @pytest.mark.parametrize("value", [0, 1, 3, 17, 10**8, 10**18 + 7])
    @pytest.mark.parametrize("numerator,denominator", [(1, 3), (5, 10), (99, 100), (7, 7)])
    def test_never_exceeds_value(self, value: int, numerator: int, denominator: int) -> None:
        amount = royalty_amount(value, numerator, denominator)
        assert 0 <= amount <= value
        assert amount == (value * numerator) // denominator

    def test_negative_value_rejected(self) -> None:
        with pytest.raises(ValueError):
            royalty_amount(-1, 1, 2)


class TestFractionHelpers:
    def test_as_fraction(self) -> None:
        assert as_fraction(5, 10) == Fraction(1, 2)

    def test_format_fraction(self) -> None:
        assert format_fraction(5, 10) == "5/10 (50%)"
        assert format_fraction(1, 3).startswith("1/3 (33.33")
