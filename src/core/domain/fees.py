"""
Custom Fees — модели custom fee schedule токена

Immutable Pydantic модели (tagged union по полю kind):
- FixedFee: фиксированная сумма в HBAR или в fungible токене
- RoyaltyFee: доля numerator/denominator от consideration + опциональный fallback

Fee schedule собирается одной валидирующей фабрикой build_fee_schedule
(dict или модели на входе, упорядоченный tuple на выходе).
"""

from fractions import Fraction
from typing import Annotated, Any, Final, Iterable, Literal, Mapping, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from src.core.domain.errors import InvalidCustomFee
from src.core.domain.units import EntityId, asset_label, format_hbar
from src.core.math.fee_math import (
    as_fraction,
    format_fraction,
    royalty_amount,
    validate_fraction,
)


# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Максимальное количество custom fees в schedule одного токена
MAX_CUSTOM_FEES: Final[int] = 10


# =============================================================================
# FIXED FEE
# =============================================================================


class FixedFee(BaseModel):
    """
    Фиксированная комиссия.

    denominating_token_id = None означает HBAR (сумма в tinybars).
    fee_collector_account_id может отсутствовать только у fallback fee:
    тогда collector наследуется от RoyaltyFee.
    """

    kind: Literal["fixed"] = "fixed"
    amount: int = Field(..., gt=0, description="Сумма комиссии (минимальные единицы)")
    denominating_token_id: EntityId | None = Field(
        None, description="Fungible токен комиссии (None = HBAR)"
    )
    fee_collector_account_id: EntityId | None = Field(
        None, description="Получатель комиссии"
    )

    model_config = {"frozen": True}

    def is_native(self) -> bool:
        """True если комиссия номинирована в HBAR."""
        return self.denominating_token_id is None

    def describe(self) -> str:
        if self.is_native():
            amount = format_hbar(self.amount)
        else:
            amount = f"{self.amount} of {asset_label(self.denominating_token_id)}"
        collector = self.fee_collector_account_id or "<royalty collector>"
        return f"fixed {amount} -> {collector}"


# =============================================================================
# ROYALTY FEE
# =============================================================================


class RoyaltyFee(BaseModel):
    """
    Royalty комиссия для non-fungible токенов.

    Взимается с consideration (HBAR / fungible), полученной отправителем NFT.
    Если consideration нет — вместо неё получатель NFT платит fallback_fee.
    """

    kind: Literal["royalty"] = "royalty"
    numerator: int = Field(..., gt=0, description="Числитель доли")
    denominator: int = Field(..., gt=0, description="Знаменатель доли")
    fee_collector_account_id: EntityId = Field(..., description="Получатель royalty")
    fallback_fee: FixedFee | None = Field(
        None, description="Комиссия при отсутствии consideration"
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_fraction_bounds(self) -> "RoyaltyFee":
        """Проверка 0 < numerator/denominator <= 1."""
        validate_fraction(self.numerator, self.denominator, "royalty fraction")
        return self

    def fraction(self) -> Fraction:
        return as_fraction(self.numerator, self.denominator)

    def amount_for(self, value: int) -> int:
        """
        Royalty с consideration.

        Args:
            value: Сумма consideration в минимальных единицах

        Returns:
            floor(value * numerator / denominator)
        """
        return royalty_amount(value, self.numerator, self.denominator)

    def resolved_fallback(self) -> FixedFee | None:
        """
        Fallback fee с заполненным collector.

        Returns:
            fallback_fee (collector по умолчанию — collector royalty) или None
        """
        if self.fallback_fee is None:
            return None
        if self.fallback_fee.fee_collector_account_id is None:
            return self.fallback_fee.model_copy(
                update={"fee_collector_account_id": self.fee_collector_account_id}
            )
        return self.fallback_fee

    def describe(self) -> str:
        text = (
            f"royalty {format_fraction(self.numerator, self.denominator)} "
            f"-> {self.fee_collector_account_id}"
        )
        fallback = self.resolved_fallback()
        if fallback is not None:
            text += f", fallback {fallback.describe()}"
        return text


CustomFee = Annotated[Union[FixedFee, RoyaltyFee], Field(discriminator="kind")]

_FEE_SCHEDULE_ADAPTER: TypeAdapter[list[CustomFee]] = TypeAdapter(list[CustomFee])


# =============================================================================
# FACTORY
# =============================================================================


def build_fee_schedule(
    fees: Iterable[CustomFee | Mapping[str, Any]],
    max_custom_fees: int = MAX_CUSTOM_FEES,
) -> tuple[CustomFee, ...]:
    """
    Сборка и валидация fee schedule.

    Args:
        fees: Комиссии (модели или dict с полем kind), в порядке взимания
        max_custom_fees: Максимальная длина schedule

    Returns:
        Упорядоченный tuple комиссий

    Raises:
        InvalidCustomFee: Если хотя бы одна комиссия некорректна,
            у фиксированной комиссии нет collector или schedule слишком длинный
    """
    raw = [fee.model_dump() if isinstance(fee, BaseModel) else dict(fee) for fee in fees]

    if len(raw) > max_custom_fees:
        raise InvalidCustomFee(
            f"fee schedule has {len(raw)} fees, maximum is {max_custom_fees}"
        )

    try:
        schedule = _FEE_SCHEDULE_ADAPTER.validate_python(raw)
    except ValidationError as e:
        raise InvalidCustomFee(f"invalid custom fee: {e}") from e

    for index, fee in enumerate(schedule):
        if isinstance(fee, FixedFee) and fee.fee_collector_account_id is None:
            raise InvalidCustomFee(f"custom_fees[{index}]: fixed fee requires a fee collector")

    return tuple(schedule)


def fee_collectors(fees: Iterable[CustomFee]) -> list[str]:
    """Все collector аккаунты schedule (включая fallback), без повторов, в порядке schedule."""
    collectors: list[str] = []
    for fee in fees:
        candidates = [fee.fee_collector_account_id]
        if isinstance(fee, RoyaltyFee):
            fallback = fee.resolved_fallback()
            if fallback is not None:
                candidates.append(fallback.fee_collector_account_id)
        for collector in candidates:
            if collector is not None and collector not in collectors:
                collectors.append(collector)
    return collectors
