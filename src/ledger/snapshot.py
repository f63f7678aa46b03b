"""
LedgerSnapshot — неизменяемый снапшот аккаунтов и токенов

Реализует LedgerView для FeeAssessmentEngine (поиск аккаунтов, токенов,
ассоциаций) и атомарно применяет принятый TransferOutcome, возвращая новый
снапшот. Исходный снапшот никогда не изменяется.
"""

from pydantic import BaseModel, Field, model_validator

from src.core.domain.account import Account
from src.core.domain.errors import AccountNotFound, InsufficientBalance, TokenNotFound
from src.core.domain.token import TokenDefinition
from src.core.domain.transfer import TransferOutcome


class LedgerSnapshot(BaseModel):
    """
    Снапшот ledger.

    Immutable модель (frozen=True). Все изменения создают новый экземпляр.
    """

    accounts: dict[str, Account] = Field(default_factory=dict, description="account_id → Account")
    tokens: dict[str, TokenDefinition] = Field(
        default_factory=dict, description="token_id → TokenDefinition"
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_keys(self) -> "LedgerSnapshot":
        """Ключ словаря совпадает с account_id / token_id записи."""
        for key, account in self.accounts.items():
            if key != account.account_id:
                raise ValueError(f"accounts[{key}] holds account {account.account_id}")
        for key, token in self.tokens.items():
            if key != token.token_id:
                raise ValueError(f"tokens[{key}] holds token {token.token_id}")
        return self

    # -------------------------------------------------------------------------
    # LOOKUPS
    # -------------------------------------------------------------------------

    def get_account(self, account_id: str) -> Account:
        """
        Raises:
            AccountNotFound: Если аккаунта нет в снапшоте
        """
        try:
            return self.accounts[account_id]
        except KeyError:
            raise AccountNotFound(f"account {account_id} not found") from None

    def get_token(self, token_id: str) -> TokenDefinition:
        """
        Raises:
            TokenNotFound: Если токена нет в снапшоте
        """
        try:
            return self.tokens[token_id]
        except KeyError:
            raise TokenNotFound(f"token {token_id} not found") from None

    def can_receive(self, account_id: str, token_id: str) -> bool:
        """
        Может ли аккаунт получить токен: ассоциирован, treasury или есть auto-слот.

        Raises:
            AccountNotFound / TokenNotFound
        """
        account = self.get_account(account_id)
        token = self.get_token(token_id)
        return (
            token.is_treasury(account_id)
            or account.is_associated(token_id)
            or account.can_auto_associate()
        )

    # -------------------------------------------------------------------------
    # COPY-ON-WRITE
    # -------------------------------------------------------------------------

    def with_account(self, account: Account) -> "LedgerSnapshot":
        accounts = dict(self.accounts)
        accounts[account.account_id] = account
        return self.model_copy(update={"accounts": accounts})

    def with_token(self, token: TokenDefinition) -> "LedgerSnapshot":
        tokens = dict(self.tokens)
        tokens[token.token_id] = token
        return self.model_copy(update={"tokens": tokens})

    def apply(self, outcome: TransferOutcome) -> "LedgerSnapshot":
        """
        Применение принятого перевода.

        Все движения (consideration legs, владение, комиссии) и автоматические
        ассоциации применяются одним новым снапшотом.

        Args:
            outcome: Результат FeeAssessmentEngine.assess

        Returns:
            Новый LedgerSnapshot

        Raises:
            LedgerError: Если outcome — отказ (ошибка по его status)
            AccountNotFound: Если аккаунт движения отсутствует в снапшоте
            InsufficientBalance: Если outcome не соответствует снапшоту
                (отправитель не владеет serial, баланс уходит в минус),
                например outcome уже применён или устарел
        """
        outcome.raise_for_status()

        hbar: dict[str, int] = {}
        fungible: dict[str, dict[str, int]] = {}
        serials: dict[str, dict[str, set[int]]] = {}
        associations: dict[str, set[str]] = {}
        used_auto: dict[str, int] = {}

        def touch(account_id: str) -> None:
            if account_id in hbar:
                return
            account = self.get_account(account_id)
            hbar[account_id] = account.hbar_balance
            fungible[account_id] = dict(account.token_balances)
            serials[account_id] = {k: set(v) for k, v in account.nft_serials.items()}
            associations[account_id] = set(account.associations)
            used_auto[account_id] = account.used_automatic_associations

        def move(token_id: str | None, amount: int, payer: str, payee: str) -> None:
            touch(payer)
            touch(payee)
            if token_id is None:
                hbar[payer] -= amount
                hbar[payee] += amount
            else:
                fungible[payer][token_id] = fungible[payer].get(token_id, 0) - amount
                fungible[payee][token_id] = fungible[payee].get(token_id, 0) + amount

        for grant in outcome.automatic_associations:
            touch(grant.account_id)
            associations[grant.account_id].add(grant.token_id)
            used_auto[grant.account_id] += 1

        for leg in outcome.consideration_legs:
            move(leg.token_id, leg.amount, leg.sender_account_id, leg.receiver_account_id)

        for delta in outcome.deltas:
            if delta.serial_number is not None:
                touch(delta.from_account_id)
                touch(delta.to_account_id)
                held = serials[delta.from_account_id].get(delta.token_id, set())
                if delta.serial_number not in held:
                    raise InsufficientBalance(
                        f"{delta.from_account_id} does not hold "
                        f"{delta.token_id} #{delta.serial_number}"
                    )
                held.remove(delta.serial_number)
                serials[delta.to_account_id].setdefault(delta.token_id, set()).add(
                    delta.serial_number
                )
            else:
                move(delta.token_id, delta.amount, delta.from_account_id, delta.to_account_id)

        for account_id, balance in hbar.items():
            if balance < 0:
                raise InsufficientBalance(f"{account_id} HBAR balance would be {balance}")
            for token_id, quantity in fungible[account_id].items():
                if quantity < 0:
                    raise InsufficientBalance(
                        f"{account_id} balance of {token_id} would be {quantity}"
                    )

        accounts = dict(self.accounts)
        for account_id in hbar:
            accounts[account_id] = Account(
                account_id=account_id,
                hbar_balance=hbar[account_id],
                token_balances=fungible[account_id],
                nft_serials={
                    token_id: frozenset(held)
                    for token_id, held in serials[account_id].items()
                    if held
                },
                associations=frozenset(associations[account_id]),
                max_automatic_associations=self.accounts[account_id].max_automatic_associations,
                used_automatic_associations=used_auto[account_id],
            )

        return self.model_copy(update={"accounts": accounts})
