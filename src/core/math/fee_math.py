"""
Fee Math — целочисленная арифметика custom fees

Все вычисления ведутся в целых минимальных единицах, без float:
- royalty = floor(V * numerator / denominator)
- доля royalty ограничена: 0 < numerator / denominator <= 1

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. royalty_amount(V, n, d) <= V для любой допустимой доли
2. Результат детерминирован (никакого округления float)
"""

from fractions import Fraction


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def validate_positive_amount(value: int, name: str) -> None:
    """
    Валидация, что сумма — положительное целое.

    Args:
        value: Проверяемое значение
        name: Имя параметра (для сообщения об ошибке)

    Raises:
        ValueError: Если value не int или value <= 0
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")

    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def validate_non_negative_amount(value: int, name: str) -> None:
    """
    Валидация, что сумма — неотрицательное целое.

    Raises:
        ValueError: Если value не int или value < 0
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")

    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def validate_fraction(numerator: int, denominator: int, name: str = "fraction") -> None:
    """
    Валидация доли royalty: 0 < numerator / denominator <= 1.

    Args:
        numerator: Числитель
        denominator: Знаменатель
        name: Имя параметра (для сообщения об ошибке)

    Raises:
        ValueError: Если доля вне (0, 1]
    """
    validate_positive_amount(numerator, f"{name}.numerator")
    validate_positive_amount(denominator, f"{name}.denominator")

    if numerator > denominator:
        raise ValueError(
            f"{name} {numerator}/{denominator} exceeds 1 (royalty fraction cannot exceed one)"
        )


# =============================================================================
# ВЫЧИСЛЕНИЯ
# =============================================================================


def royalty_amount(value: int, numerator: int, denominator: int) -> int:
    """
    Royalty с суммы consideration.

    Формула: floor(value * numerator / denominator)

    Args:
        value: Сумма consideration (минимальные единицы)
        numerator: Числитель доли
        denominator: Знаменатель доли

    Returns:
        Сумма royalty, 0 <= result <= value

    Raises:
        ValueError: Если value < 0 или доля некорректна
    """
    validate_non_negative_amount(value, "value")
    validate_fraction(numerator, denominator)
    return (value * numerator) // denominator


def as_fraction(numerator: int, denominator: int) -> Fraction:
    """Доля как Fraction (для отображения и сравнения)."""
    return Fraction(numerator, denominator)


def format_fraction(numerator: int, denominator: int) -> str:
    """
    Форматирование доли для логов.

    Returns:
        Строка вида "5/10 (50%)"
    """
    pct = 100 * numerator / denominator
    return f"{numerator}/{denominator} ({pct:g}%)"
