"""
Account — Модель аккаунта ledger

Immutable Pydantic модель, представляющая снапшот балансов аккаунта:
- HBAR баланс (tinybars)
- балансы fungible токенов (base units)
- serials NFT
- ассоциации с токенами (явные и автоматические)
"""

from pydantic import BaseModel, Field, model_validator

from src.core.domain.units import EntityId


class Account(BaseModel):
    """
    Модель аккаунта.

    Immutable модель (frozen=True). Балансы меняются только применением
    TransferOutcome к LedgerSnapshot, что создаёт новый экземпляр.
    """

    account_id: EntityId = Field(..., description="Идентификатор аккаунта")
    hbar_balance: int = Field(0, ge=0, description="Баланс HBAR (tinybars)")

    token_balances: dict[str, int] = Field(
        default_factory=dict, description="Fungible token id → количество"
    )
    nft_serials: dict[str, frozenset[int]] = Field(
        default_factory=dict, description="NFT token id → serials"
    )

    # Ассоциации
    associations: frozenset[str] = Field(
        default_factory=frozenset, description="Ассоциированные токены"
    )
    max_automatic_associations: int = Field(
        0, ge=0, description="Лимит автоматических ассоциаций"
    )
    used_automatic_associations: int = Field(
        0, ge=0, description="Использовано автоматических ассоциаций"
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_balances(self) -> "Account":
        """Неотрицательные балансы и used <= max для auto-associations."""
        for token_id, quantity in self.token_balances.items():
            if quantity < 0:
                raise ValueError(f"token balance for {token_id} is negative: {quantity}")
        if self.used_automatic_associations > self.max_automatic_associations:
            raise ValueError(
                f"used_automatic_associations {self.used_automatic_associations} "
                f"exceeds max_automatic_associations {self.max_automatic_associations}"
            )
        return self

    def is_associated(self, token_id: str) -> bool:
        return token_id in self.associations

    def can_auto_associate(self) -> bool:
        """True если остался свободный слот автоматической ассоциации."""
        return self.used_automatic_associations < self.max_automatic_associations

    def balance_of(self, token_id: str | None) -> int:
        """
        Баланс актива.

        Args:
            token_id: Fungible токен или None для HBAR

        Returns:
            Баланс в минимальных единицах (0 если токена нет)
        """
        if token_id is None:
            return self.hbar_balance
        return self.token_balances.get(token_id, 0)

    def holds_serial(self, token_id: str, serial_number: int) -> bool:
        return serial_number in self.nft_serials.get(token_id, frozenset())

    def nft_count(self, token_id: str) -> int:
        return len(self.nft_serials.get(token_id, frozenset()))
