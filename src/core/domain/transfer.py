"""
Transfer — модели намерения перевода и его результата

- ConsiderationLeg: сопутствующий перевод HBAR / fungible токена в той же транзакции
- TransferIntent: перевод serial NFT или количества fungible токена
- BalanceDelta: одно движение баланса (владение или custom fee)
- TransferOutcome: атомарный набор движений или причина отказа
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from src.core.domain.errors import LedgerError, ResponseCode, error_for_code
from src.core.domain.units import EntityId, asset_label


# =============================================================================
# ENUMS
# =============================================================================


class DeltaKind(str, Enum):
    """Вид движения баланса"""

    OWNERSHIP = "OWNERSHIP"
    ROYALTY_FEE = "ROYALTY_FEE"
    FALLBACK_FEE = "FALLBACK_FEE"
    FIXED_FEE = "FIXED_FEE"


# =============================================================================
# INPUT MODELS
# =============================================================================


class ConsiderationLeg(BaseModel):
    """
    Сопутствующий перевод ценности в той же транзакции.

    token_id = None означает HBAR (amount в tinybars).
    """

    token_id: EntityId | None = Field(None, description="Fungible токен (None = HBAR)")
    sender_account_id: EntityId = Field(..., description="Плательщик")
    receiver_account_id: EntityId = Field(..., description="Получатель")
    amount: int = Field(..., gt=0, description="Сумма (минимальные единицы)")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_distinct_parties(self) -> "ConsiderationLeg":
        if self.sender_account_id == self.receiver_account_id:
            raise ValueError("consideration leg sender and receiver must differ")
        return self


class TransferIntent(BaseModel):
    """
    Намерение перевода токена.

    Для NFT задаётся serial_number, для fungible — amount (ровно одно из двух).
    """

    token_id: EntityId = Field(..., description="Переводимый токен")
    serial_number: int | None = Field(None, gt=0, description="Serial NFT")
    amount: int | None = Field(None, gt=0, description="Количество fungible токена")
    sender_account_id: EntityId = Field(..., description="Отправитель")
    receiver_account_id: EntityId = Field(..., description="Получатель")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_shape(self) -> "TransferIntent":
        """Ровно одно из serial_number / amount, разные стороны."""
        if (self.serial_number is None) == (self.amount is None):
            raise ValueError("exactly one of serial_number or amount must be set")
        if self.sender_account_id == self.receiver_account_id:
            raise ValueError("sender and receiver must differ")
        return self

    def is_nft(self) -> bool:
        return self.serial_number is not None

    def quantity(self) -> int:
        """Количество единиц токена, меняющих владельца (1 для NFT)."""
        return 1 if self.amount is None else self.amount


# =============================================================================
# OUTPUT MODELS
# =============================================================================


class BalanceDelta(BaseModel):
    """Одно движение баланса между двумя аккаунтами."""

    kind: DeltaKind
    token_id: EntityId | None = Field(None, description="Актив (None = HBAR)")
    serial_number: int | None = Field(None, gt=0, description="Serial для OWNERSHIP NFT")
    amount: int = Field(..., gt=0)
    from_account_id: EntityId
    to_account_id: EntityId
    fee_index: int | None = Field(None, ge=0, description="Позиция комиссии в schedule")

    model_config = {"frozen": True}

    def is_fee(self) -> bool:
        return self.kind != DeltaKind.OWNERSHIP

    def describe(self) -> str:
        if self.serial_number is not None:
            what = f"{asset_label(self.token_id)}#{self.serial_number}"
        else:
            what = f"{self.amount} {asset_label(self.token_id)}"
        return f"{self.kind.value}: {what} {self.from_account_id} -> {self.to_account_id}"


class AutoAssociation(BaseModel):
    """Автоматическая ассоциация, выданная переводом."""

    account_id: EntityId
    token_id: EntityId

    model_config = {"frozen": True}


class TransferOutcome(BaseModel):
    """
    Результат оценки перевода.

    При SUCCESS deltas содержит движение владения (первым) и движения custom fees
    в порядке schedule. При отказе deltas пуст — частичных результатов нет.
    consideration_legs хранятся как поданы (gross): royalty отражена отдельным
    движением от отправителя NFT к collector.
    """

    status: ResponseCode
    token_id: EntityId
    intent: TransferIntent
    consideration_legs: tuple[ConsiderationLeg, ...] = Field(default_factory=tuple)
    deltas: tuple[BalanceDelta, ...] = Field(default_factory=tuple)
    automatic_associations: tuple[AutoAssociation, ...] = Field(default_factory=tuple)
    treasury_exempt: bool = False
    details: str = ""

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_rejection_has_no_deltas(self) -> "TransferOutcome":
        if self.status != ResponseCode.SUCCESS and (self.deltas or self.automatic_associations):
            raise ValueError("rejected outcome must not carry deltas")
        return self

    @classmethod
    def rejected(
        cls,
        intent: TransferIntent,
        legs: tuple[ConsiderationLeg, ...],
        error: LedgerError,
    ) -> "TransferOutcome":
        """Создание outcome отказа из ошибки."""
        return cls(
            status=error.code,
            token_id=intent.token_id,
            intent=intent,
            consideration_legs=legs,
            details=error.message,
        )

    @property
    def accepted(self) -> bool:
        return self.status == ResponseCode.SUCCESS

    def ownership_delta(self) -> BalanceDelta | None:
        for delta in self.deltas:
            if delta.kind == DeltaKind.OWNERSHIP:
                return delta
        return None

    def fee_deltas(self) -> tuple[BalanceDelta, ...]:
        return tuple(delta for delta in self.deltas if delta.is_fee())

    def net_changes(self) -> dict[tuple[str, str | None], int]:
        """
        Чистое изменение fungible / HBAR балансов.

        Учитывает consideration legs и все движения, кроме владения serial NFT.

        Returns:
            {(account_id, token_id | None): изменение}, нулевые изменения опущены
        """
        changes: dict[tuple[str, str | None], int] = {}
        if not self.accepted:
            return changes

        movements = [
            (leg.token_id, leg.amount, leg.sender_account_id, leg.receiver_account_id)
            for leg in self.consideration_legs
        ]
        movements.extend(
            (delta.token_id, delta.amount, delta.from_account_id, delta.to_account_id)
            for delta in self.deltas
            if delta.serial_number is None
        )

        for token_id, amount, payer, payee in movements:
            changes[(payer, token_id)] = changes.get((payer, token_id), 0) - amount
            changes[(payee, token_id)] = changes.get((payee, token_id), 0) + amount

        return {key: value for key, value in changes.items() if value != 0}

    def raise_for_status(self) -> None:
        """
        Поднять ошибку отказа.

        Raises:
            LedgerError: Подкласс, соответствующий status, если перевод отклонён
        """
        if not self.accepted:
            raise error_for_code(self.status, self.details)
