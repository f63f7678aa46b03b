"""LedgerService — in-memory ledger поверх LedgerSnapshot.

Заменяет удалённую сеть для операций демонстрационных сценариев:
создание аккаунтов и токенов, mint, ассоциации, обновление fee schedule,
удаление токена, переводы через FeeAssessmentEngine и запросы балансов.

Все операции read-modify-write сериализованы одним RLock: в каждый момент
не больше одного assess + apply меняет состав держателей токена.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from src.core.domain.account import Account
from src.core.domain.errors import (
    InvalidCustomFee,
    LedgerError,
    MaxSupplyReached,
    NotAssociated,
    TokenAlreadyAssociated,
    TokenWasDeleted,
    Unauthorized,
)
from src.core.domain.fees import (
    MAX_CUSTOM_FEES,
    CustomFee,
    FixedFee,
    RoyaltyFee,
    build_fee_schedule,
)
from src.core.domain.token import SupplyType, TokenDefinition, TokenKeys, TokenType
from src.core.domain.transfer import ConsiderationLeg, TransferIntent, TransferOutcome
from src.core.domain.units import format_entity_id, format_hbar, parse_entity_id
from src.ledger.snapshot import LedgerSnapshot
from src.settlement.engine import FeeAssessmentEngine

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class LedgerServiceConfig:
    """Конфигурация LedgerService.

    max_custom_fees: лимит длины fee schedule
    max_automatic_associations_cap: верхняя граница auto-association слотов аккаунта
    first_entity_num: номер первой выделяемой сущности 0.0.<n>
    """

    max_custom_fees: int = MAX_CUSTOM_FEES
    max_automatic_associations_cap: int = 5000
    first_entity_num: int = 1001


# =============================================================================
# RESULT
# =============================================================================


@dataclass(frozen=True)
class AccountBalance:
    """Результат запроса баланса: HBAR и количество каждого токена (NFT — число serials)."""

    account_id: str
    hbars: int
    tokens: dict[str, int] = field(default_factory=dict)

    def of(self, token_id: str) -> int:
        return self.tokens.get(token_id, 0)

    def describe(self) -> str:
        parts = [format_hbar(self.hbars)]
        parts.extend(f"{quantity} of {token_id}" for token_id, quantity in sorted(self.tokens.items()))
        return f"{self.account_id}: " + ", ".join(parts)


# =============================================================================
# SERVICE
# =============================================================================


class LedgerService:
    """In-memory ledger с сериализованными операциями."""

    def __init__(
        self,
        config: LedgerServiceConfig | None = None,
        engine: FeeAssessmentEngine | None = None,
        snapshot: LedgerSnapshot | None = None,
    ):
        """
        Args:
            config: конфигурация сервиса
            engine: engine оценки переводов
            snapshot: начальный снапшот (по умолчанию пустой)
        """
        self.config = config or LedgerServiceConfig()
        self.engine = engine or FeeAssessmentEngine()
        self._snapshot = snapshot or LedgerSnapshot()
        self._lock = threading.RLock()

        existing = [
            parse_entity_id(entity_id)[2]
            for entity_id in [*self._snapshot.accounts, *self._snapshot.tokens]
        ]
        self._next_num = max([self.config.first_entity_num, *(num + 1 for num in existing)])

    @property
    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return self._snapshot

    # -------------------------------------------------------------------------
    # ACCOUNTS
    # -------------------------------------------------------------------------

    def create_account(self, initial_balance: int = 0, max_automatic_associations: int = 0) -> str:
        """
        Создание аккаунта.

        Args:
            initial_balance: начальный баланс (tinybars)
            max_automatic_associations: лимит автоматических ассоциаций

        Returns:
            Идентификатор нового аккаунта
        """
        self._check_auto_association_limit(max_automatic_associations)
        with self._lock:
            account_id = self._allocate_id()
            account = Account(
                account_id=account_id,
                hbar_balance=initial_balance,
                max_automatic_associations=max_automatic_associations,
            )
            self._snapshot = self._snapshot.with_account(account)

        logger.info("Created account %s with %s", account_id, format_hbar(initial_balance))
        return account_id

    def set_max_automatic_associations(self, account_id: str, limit: int) -> None:
        """
        Изменение лимита автоматических ассоциаций.

        Raises:
            ValueError: Если limit ниже уже использованных слотов или выше cap
            AccountNotFound
        """
        self._check_auto_association_limit(limit)
        with self._lock:
            account = self._snapshot.get_account(account_id)
            if limit < account.used_automatic_associations:
                raise ValueError(
                    f"limit {limit} is below used automatic associations "
                    f"{account.used_automatic_associations}"
                )
            self._snapshot = self._snapshot.with_account(
                account.model_copy(update={"max_automatic_associations": limit})
            )

        logger.info("Account %s max automatic associations set to %d", account_id, limit)

    def associate(self, account_id: str, token_ids: Iterable[str]) -> None:
        """
        Явная ассоциация аккаунта с токенами (всё или ничего).

        Raises:
            AccountNotFound / TokenNotFound / TokenWasDeleted
            TokenAlreadyAssociated: Если аккаунт уже ассоциирован с одним из токенов
        """
        token_ids = list(token_ids)
        with self._lock:
            account = self._snapshot.get_account(account_id)
            for token_id in token_ids:
                token = self._live_token(token_id)
                if account.is_associated(token_id) or token.is_treasury(account_id):
                    raise TokenAlreadyAssociated(
                        f"{account_id} is already associated with {token_id}"
                    )
            self._snapshot = self._snapshot.with_account(
                account.model_copy(
                    update={"associations": account.associations | frozenset(token_ids)}
                )
            )

        logger.info("Associated %s with %s", account_id, ", ".join(token_ids))

    # -------------------------------------------------------------------------
    # TOKENS
    # -------------------------------------------------------------------------

    def create_token(
        self,
        name: str,
        symbol: str,
        treasury_account_id: str,
        token_type: TokenType = TokenType.FUNGIBLE_COMMON,
        *,
        decimals: int = 0,
        initial_supply: int = 0,
        supply_type: SupplyType = SupplyType.INFINITE,
        max_supply: int = 0,
        custom_fees: Iterable[CustomFee | Mapping[str, Any]] = (),
        admin_key: str | None = None,
        supply_key: str | None = None,
        fee_schedule_key: str | None = None,
    ) -> str:
        """
        Создание токена.

        Treasury ассоциируется с токеном; начальная эмиссия fungible токена
        зачисляется на treasury.

        Returns:
            Идентификатор нового токена

        Raises:
            AccountNotFound: treasury или fee collector не найден
            InvalidCustomFee / NotAssociated / TokenNotFound / TokenWasDeleted:
                fee schedule не проходит валидацию
            ValueError: Некорректные параметры эмиссии
        """
        if token_type == TokenType.NON_FUNGIBLE_UNIQUE and initial_supply != 0:
            raise ValueError("NON_FUNGIBLE_UNIQUE token must start with initial_supply = 0")
        if initial_supply < 0:
            raise ValueError(f"initial_supply must be non-negative, got {initial_supply}")

        with self._lock:
            treasury = self._snapshot.get_account(treasury_account_id)
            fees = self._validated_fee_schedule(custom_fees, token_type)

            token_id = self._allocate_id()
            token = TokenDefinition(
                token_id=token_id,
                name=name,
                symbol=symbol,
                token_type=token_type,
                decimals=decimals,
                treasury_account_id=treasury_account_id,
                supply_type=supply_type,
                max_supply=max_supply,
                total_supply=initial_supply,
                custom_fees=fees,
                keys=TokenKeys(
                    admin_key=admin_key,
                    supply_key=supply_key,
                    fee_schedule_key=fee_schedule_key,
                ),
            )

            balances = dict(treasury.token_balances)
            if token_type == TokenType.FUNGIBLE_COMMON:
                balances[token_id] = initial_supply
            treasury = treasury.model_copy(
                update={
                    "associations": treasury.associations | {token_id},
                    "token_balances": balances,
                }
            )
            self._snapshot = self._snapshot.with_token(token).with_account(treasury)

        logger.info(
            "Created %s token %s (%s) with treasury %s and %d custom fee(s)",
            token_type.value, token_id, symbol, treasury_account_id, len(fees),
        )
        for index, fee in enumerate(fees):
            logger.info("  custom_fees[%d]: %s", index, fee.describe())
        return token_id

    def mint(
        self,
        token_id: str,
        metadata: Sequence[str] = (),
        amount: int = 0,
        signer_keys: Iterable[str] = (),
    ) -> tuple[int, ...]:
        """
        Выпуск токенов на treasury.

        Args:
            token_id: токен
            metadata: метаданные NFT (по одному serial на элемент)
            amount: количество для fungible токена
            signer_keys: предъявленные ключи (нужен supply key)

        Returns:
            Serials выпущенных NFT (пустой tuple для fungible)

        Raises:
            Unauthorized: supply key не задан или не предъявлен
            MaxSupplyReached: эмиссия превышает max_supply
            ValueError: пустой mint
        """
        with self._lock:
            token = self._live_token(token_id)
            self._require_key(token, "supply_key", signer_keys)

            count = len(metadata) if token.is_unique() else amount
            if count <= 0:
                raise ValueError(f"mint of {token_id} must issue at least one unit")

            remaining = token.remaining_supply()
            if remaining is not None and count > remaining:
                raise MaxSupplyReached(
                    f"minting {count} of {token_id} exceeds max supply {token.max_supply}"
                )

            treasury = self._snapshot.get_account(token.treasury_account_id)
            if token.is_unique():
                first = token.next_serial()
                serials = tuple(range(first, first + count))
                nft_metadata = dict(token.nft_metadata)
                nft_metadata.update(zip(serials, metadata))
                token = token.model_copy(
                    update={"nft_metadata": nft_metadata, "total_supply": token.total_supply + count}
                )
                held = dict(treasury.nft_serials)
                held[token_id] = held.get(token_id, frozenset()) | frozenset(serials)
                treasury = treasury.model_copy(update={"nft_serials": held})
            else:
                serials = ()
                token = token.model_copy(update={"total_supply": token.total_supply + count})
                balances = dict(treasury.token_balances)
                balances[token_id] = balances.get(token_id, 0) + count
                treasury = treasury.model_copy(update={"token_balances": balances})

            self._snapshot = self._snapshot.with_token(token).with_account(treasury)

        logger.info("Minted %d of %s, total supply %d", count, token_id, token.total_supply)
        return serials

    def update_fee_schedule(
        self,
        token_id: str,
        custom_fees: Iterable[CustomFee | Mapping[str, Any]],
        signer_keys: Iterable[str] = (),
    ) -> TokenDefinition:
        """
        Замена fee schedule токена.

        Raises:
            Unauthorized: fee schedule key не задан или не предъявлен
            InvalidCustomFee / NotAssociated / TokenNotFound / AccountNotFound
        """
        with self._lock:
            token = self._live_token(token_id)
            self._require_key(token, "fee_schedule_key", signer_keys)
            fees = self._validated_fee_schedule(custom_fees, token.token_type)
            token = token.model_copy(update={"custom_fees": fees})
            self._snapshot = self._snapshot.with_token(token)

        logger.info("Updated fee schedule of %s: %d custom fee(s)", token_id, len(fees))
        return token

    def delete_token(self, token_id: str, signer_keys: Iterable[str] = ()) -> None:
        """
        Удаление токена.

        Raises:
            Unauthorized: admin key не задан (токен immutable) или не предъявлен
        """
        with self._lock:
            token = self._live_token(token_id)
            self._require_key(token, "admin_key", signer_keys)
            self._snapshot = self._snapshot.with_token(token.model_copy(update={"deleted": True}))

        logger.info("Deleted token %s", token_id)

    # -------------------------------------------------------------------------
    # TRANSFERS & QUERIES
    # -------------------------------------------------------------------------

    def transfer(
        self, intent: TransferIntent, legs: Iterable[ConsiderationLeg] = ()
    ) -> TransferOutcome:
        """
        Перевод токена: оценка engine и применение при успехе.

        Returns:
            TransferOutcome (при отказе состояние ledger не меняется)
        """
        legs = tuple(legs)
        with self._lock:
            try:
                token = self._snapshot.get_token(intent.token_id)
            except LedgerError as e:
                return TransferOutcome.rejected(intent, legs, e)

            outcome = self.engine.assess(token, intent, legs, self._snapshot)
            if outcome.accepted:
                self._snapshot = self._snapshot.apply(outcome)

        logger.info(
            "Transfer of %s %s -> %s: %s",
            intent.token_id, intent.sender_account_id, intent.receiver_account_id,
            outcome.status.value,
        )
        return outcome

    def balance(self, account_id: str) -> AccountBalance:
        """Балансы аккаунта: HBAR, fungible количества и число NFT по токенам."""
        account = self.snapshot.get_account(account_id)
        tokens = dict(account.token_balances)
        for token_id, serials in account.nft_serials.items():
            tokens[token_id] = len(serials)
        return AccountBalance(account_id=account_id, hbars=account.hbar_balance, tokens=tokens)

    def token_info(self, token_id: str) -> TokenDefinition:
        return self.snapshot.get_token(token_id)

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    def _allocate_id(self) -> str:
        entity_id = format_entity_id(self._next_num)
        self._next_num += 1
        return entity_id

    def _check_auto_association_limit(self, limit: int) -> None:
        if limit < 0 or limit > self.config.max_automatic_associations_cap:
            raise ValueError(
                f"max_automatic_associations must be in [0, "
                f"{self.config.max_automatic_associations_cap}], got {limit}"
            )

    def _live_token(self, token_id: str) -> TokenDefinition:
        token = self._snapshot.get_token(token_id)
        if token.deleted:
            raise TokenWasDeleted(f"token {token_id} was deleted")
        return token

    @staticmethod
    def _require_key(token: TokenDefinition, key_name: str, signer_keys: Iterable[str]) -> None:
        key = getattr(token.keys, key_name)
        if key is None:
            raise Unauthorized(f"token {token.token_id} has no {key_name}")
        if key not in set(signer_keys):
            raise Unauthorized(f"{key_name} of {token.token_id} did not sign")

    def _validated_fee_schedule(
        self,
        custom_fees: Iterable[CustomFee | Mapping[str, Any]],
        token_type: TokenType,
    ) -> tuple[CustomFee, ...]:
        """Валидация fee schedule относительно текущего снапшота."""
        fees = build_fee_schedule(custom_fees, self.config.max_custom_fees)

        for index, fee in enumerate(fees):
            if isinstance(fee, RoyaltyFee):
                if token_type != TokenType.NON_FUNGIBLE_UNIQUE:
                    raise InvalidCustomFee(
                        f"custom_fees[{index}]: royalty fee requires a NON_FUNGIBLE_UNIQUE token"
                    )
                self._snapshot.get_account(fee.fee_collector_account_id)
                fallback = fee.resolved_fallback()
                if fallback is not None:
                    self._check_fixed_fee(fallback, index)
            elif isinstance(fee, FixedFee):
                self._check_fixed_fee(fee, index)

        return fees

    def _check_fixed_fee(self, fee: FixedFee, index: int) -> None:
        collector = fee.fee_collector_account_id
        account = self._snapshot.get_account(collector)
        if fee.denominating_token_id is None:
            return

        fee_token = self._live_token(fee.denominating_token_id)
        if fee_token.is_unique():
            raise InvalidCustomFee(
                f"custom_fees[{index}]: fee must be denominated in a fungible token, "
                f"{fee_token.token_id} is NON_FUNGIBLE_UNIQUE"
            )
        if not (account.is_associated(fee_token.token_id) or fee_token.is_treasury(collector)):
            raise NotAssociated(
                f"custom_fees[{index}]: fee collector {collector} is not associated "
                f"with {fee_token.token_id}"
            )
