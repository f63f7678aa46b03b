"""
TokenDefinition — Модель определения токена

Immutable Pydantic модель: тип токена, treasury, supply, custom fee schedule,
ключи авторизации и выпущенные serials.

Инварианты:
- total_supply <= max_supply для FINITE supply
- royalty fees разрешены только для NON_FUNGIBLE_UNIQUE
- не больше MAX_CUSTOM_FEES комиссий
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from src.core.domain.fees import MAX_CUSTOM_FEES, CustomFee, RoyaltyFee
from src.core.domain.units import EntityId


# =============================================================================
# ENUMS
# =============================================================================


class TokenType(str, Enum):
    """Тип токена"""

    FUNGIBLE_COMMON = "FUNGIBLE_COMMON"
    NON_FUNGIBLE_UNIQUE = "NON_FUNGIBLE_UNIQUE"


class SupplyType(str, Enum):
    """Тип эмиссии"""

    INFINITE = "INFINITE"
    FINITE = "FINITE"


# =============================================================================
# NESTED MODELS
# =============================================================================


class TokenKeys(BaseModel):
    """
    Ключи авторизации токена.

    Ключи — непрозрачные строки. Операция, требующая ключ, проверяет только
    то, что вызывающая сторона предъявила ту же строку.
    """

    admin_key: str | None = Field(None, description="Удаление / изменение токена")
    supply_key: str | None = Field(None, description="Mint / burn")
    fee_schedule_key: str | None = Field(None, description="Обновление fee schedule")

    model_config = {"frozen": True}


# =============================================================================
# TOKEN DEFINITION
# =============================================================================


class TokenDefinition(BaseModel):
    """
    Модель определения токена.

    Immutable модель (frozen=True). Изменения (mint, обновление fee schedule,
    удаление) создают новый экземпляр через model_copy.
    """

    # Идентификация
    token_id: EntityId = Field(..., description="Идентификатор токена")
    name: str = Field(..., min_length=1, description="Имя токена")
    symbol: str = Field(..., min_length=1, description="Тикер токена")
    token_type: TokenType = Field(..., description="Fungible или NFT")
    decimals: int = Field(0, ge=0, description="Десятичные знаки (0 для NFT)")

    # Treasury и supply
    treasury_account_id: EntityId = Field(..., description="Treasury аккаунт")
    supply_type: SupplyType = Field(SupplyType.INFINITE, description="Тип эмиссии")
    max_supply: int = Field(0, ge=0, description="Максимальная эмиссия (FINITE)")
    total_supply: int = Field(0, ge=0, description="Текущая эмиссия")

    # Комиссии и ключи
    custom_fees: tuple[CustomFee, ...] = Field(
        default_factory=tuple, description="Custom fee schedule в порядке взимания"
    )
    keys: TokenKeys = Field(default_factory=TokenKeys, description="Ключи авторизации")

    # Метаданные выпущенных NFT (serial → metadata, например IPFS CID)
    nft_metadata: dict[int, str] = Field(default_factory=dict)

    deleted: bool = Field(False, description="Токен удалён")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_token_invariants(self) -> "TokenDefinition":
        """Проверка supply, decimals и состава fee schedule."""
        if self.supply_type == SupplyType.FINITE:
            if self.max_supply <= 0:
                raise ValueError("FINITE supply requires max_supply > 0")
            if self.total_supply > self.max_supply:
                raise ValueError(
                    f"total_supply {self.total_supply} exceeds max_supply {self.max_supply}"
                )

        if self.token_type == TokenType.NON_FUNGIBLE_UNIQUE and self.decimals != 0:
            raise ValueError("NON_FUNGIBLE_UNIQUE token must have decimals = 0")

        if len(self.custom_fees) > MAX_CUSTOM_FEES:
            raise ValueError(
                f"custom_fees has {len(self.custom_fees)} entries, maximum is {MAX_CUSTOM_FEES}"
            )

        if self.token_type == TokenType.FUNGIBLE_COMMON and any(
            isinstance(fee, RoyaltyFee) for fee in self.custom_fees
        ):
            raise ValueError("royalty fees are only allowed for NON_FUNGIBLE_UNIQUE tokens")

        return self

    def is_unique(self) -> bool:
        return self.token_type == TokenType.NON_FUNGIBLE_UNIQUE

    def is_treasury(self, account_id: str) -> bool:
        """True если account_id — treasury токена."""
        return account_id == self.treasury_account_id

    def remaining_supply(self) -> int | None:
        """
        Остаток эмиссии.

        Returns:
            max_supply - total_supply для FINITE, None для INFINITE
        """
        if self.supply_type == SupplyType.INFINITE:
            return None
        return self.max_supply - self.total_supply

    def next_serial(self) -> int:
        """Следующий serial NFT (нумерация с 1)."""
        return max(self.nft_metadata, default=0) + 1
