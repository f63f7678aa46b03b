"""
Core math modules

Целочисленная арифметика custom fees с гарантией детерминизма.
"""

from src.core.math.fee_math import (
    as_fraction,
    format_fraction,
    royalty_amount,
    validate_fraction,
    validate_non_negative_amount,
    validate_positive_amount,
)

__all__ = [
    "as_fraction",
    "format_fraction",
    "royalty_amount",
    "validate_fraction",
    "validate_non_negative_amount",
    "validate_positive_amount",
]
