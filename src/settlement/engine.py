"""FeeAssessmentEngine — оценка custom fees при переводе токена.

Для одного TransferIntent и сопутствующих consideration legs вычисляет полный
упорядоченный список движений балансов: смена владельца, royalty, fallback и
fixed fees.

Порядок проверок:
0. Сущности: токен, аккаунты, токены legs (TokenNotFound / AccountNotFound / TokenWasDeleted)
1. Ассоциации получателей (NotAssociated), с учётом auto-association слотов
2. Балансы: serial / количество, суммы legs (InsufficientBalance)
3. Treasury exemption: treasury — сторона перевода → только движение владения
4. Custom fees в порядке schedule (InsufficientBalanceForCustomFee / NotAssociated)

Engine stateless: снапшот ledger не изменяется, вся работа ведётся на рабочей
копии балансов. Любая ошибка отменяет оценку целиком.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from src.core.domain.account import Account
from src.core.domain.errors import (
    InsufficientBalance,
    InsufficientBalanceForCustomFee,
    InvalidCustomFee,
    InvalidTransfer,
    LedgerError,
    NotAssociated,
    ResponseCode,
    TokenWasDeleted,
)
from src.core.domain.fees import FixedFee, RoyaltyFee
from src.core.domain.token import TokenDefinition
from src.core.domain.transfer import (
    AutoAssociation,
    BalanceDelta,
    ConsiderationLeg,
    DeltaKind,
    TransferIntent,
    TransferOutcome,
)
from src.core.domain.units import asset_label

logger = logging.getLogger(__name__)


# =============================================================================
# EXTERNAL COLLABORATORS
# =============================================================================


class LedgerView(Protocol):
    """Источник аккаунтов и токенов (снапшот ledger)."""

    def get_account(self, account_id: str) -> Account:
        """Raises AccountNotFound."""
        ...

    def get_token(self, token_id: str) -> TokenDefinition:
        """Raises TokenNotFound."""
        ...


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class FeeEngineConfig:
    """Конфигурация FeeAssessmentEngine.

    exempt_fee_collectors: collector не платит комиссию, которую сам собирает
    """

    exempt_fee_collectors: bool = True


# =============================================================================
# WORKING BALANCE SHEET
# =============================================================================


class _BalanceSheet:
    """Рабочая копия балансов и ассоциаций на время одной оценки."""

    def __init__(self, ledger: LedgerView):
        self._ledger = ledger
        self._accounts: dict[str, Account] = {}
        self._balances: dict[tuple[str, str | None], int] = {}
        self._granted: dict[str, set[str]] = {}
        self.auto_associations: list[AutoAssociation] = []

    def account(self, account_id: str) -> Account:
        if account_id not in self._accounts:
            self._accounts[account_id] = self._ledger.get_account(account_id)
        return self._accounts[account_id]

    def balance(self, account_id: str, token_id: str | None) -> int:
        key = (account_id, token_id)
        if key not in self._balances:
            self._balances[key] = self.account(account_id).balance_of(token_id)
        return self._balances[key]

    def move(
        self,
        token_id: str | None,
        amount: int,
        payer: str,
        payee: str,
        error_cls: type[LedgerError],
        context: str,
    ) -> None:
        """Перенос суммы; при нехватке средств — error_cls."""
        available = self.balance(payer, token_id)
        if available < amount:
            raise error_cls(
                f"{context}: {payer} holds {available} {asset_label(token_id)}, needs {amount}"
            )
        self._balances[(payer, token_id)] = available - amount
        self._balances[(payee, token_id)] = self.balance(payee, token_id) + amount

    def is_associated(self, account_id: str, token: TokenDefinition) -> bool:
        """Treasury всегда ассоциирован со своим токеном."""
        if token.is_treasury(account_id):
            return True
        if token.token_id in self._granted.get(account_id, set()):
            return True
        return self.account(account_id).is_associated(token.token_id)

    def ensure_can_receive(self, account_id: str, token: TokenDefinition) -> None:
        """
        Проверка, что аккаунт может получить токен.

        Если явной ассоциации нет, занимает свободный auto-association слот.

        Raises:
            NotAssociated: Если ассоциации нет и свободных слотов не осталось
        """
        if self.is_associated(account_id, token):
            return

        account = self.account(account_id)
        granted = self._granted.setdefault(account_id, set())
        if account.used_automatic_associations + len(granted) >= account.max_automatic_associations:
            raise NotAssociated(
                f"{account_id} is not associated with {token.token_id} "
                f"and has no free automatic association slots"
            )

        granted.add(token.token_id)
        self.auto_associations.append(
            AutoAssociation(account_id=account_id, token_id=token.token_id)
        )


# =============================================================================
# ENGINE
# =============================================================================


class FeeAssessmentEngine:
    """Расчёт движений балансов перевода с учётом custom fee schedule.

    Политика плательщиков:
    - FixedFee платит отправитель токена
    - RoyaltyFee удерживается из consideration, полученной отправителем
      (движение отправитель → collector в активе consideration)
    - fallback fee платит получатель токена, если consideration нет
    """

    def __init__(self, config: FeeEngineConfig | None = None):
        """
        Args:
            config: конфигурация engine (опционально, используется default)
        """
        self.config = config or FeeEngineConfig()

    def assess(
        self,
        token: TokenDefinition,
        intent: TransferIntent,
        legs: Iterable[ConsiderationLeg],
        ledger: LedgerView,
    ) -> TransferOutcome:
        """Оценка перевода.

        Args:
            token: определение переводимого токена (актуальный fee schedule)
            intent: намерение перевода
            legs: сопутствующие переводы HBAR / fungible токенов
            ledger: снапшот аккаунтов и токенов

        Returns:
            TransferOutcome со status=SUCCESS и движениями, либо отказ с кодом
            ошибки и пустым списком движений
        """
        legs = tuple(legs)
        try:
            deltas, treasury_exempt, auto_associations = self._evaluate(
                token, intent, legs, ledger
            )
        except LedgerError as e:
            logger.info(
                "Transfer %s rejected: %s (%s)", _describe_intent(intent), e.code.value, e.message
            )
            return TransferOutcome.rejected(intent, legs, e)

        fee_count = sum(1 for delta in deltas if delta.is_fee())
        if treasury_exempt:
            details = "treasury exempt: custom fees skipped"
        else:
            details = f"{fee_count} custom fee movement(s) assessed"

        logger.debug("Transfer %s accepted: %s", _describe_intent(intent), details)

        return TransferOutcome(
            status=ResponseCode.SUCCESS,
            token_id=token.token_id,
            intent=intent,
            consideration_legs=legs,
            deltas=tuple(deltas),
            automatic_associations=tuple(auto_associations),
            treasury_exempt=treasury_exempt,
            details=details,
        )

    def _evaluate(
        self,
        token: TokenDefinition,
        intent: TransferIntent,
        legs: tuple[ConsiderationLeg, ...],
        ledger: LedgerView,
    ) -> tuple[list[BalanceDelta], bool, list[AutoAssociation]]:
        sender_id = intent.sender_account_id
        receiver_id = intent.receiver_account_id

        # 0. Сущности
        if token.token_id != intent.token_id:
            raise InvalidTransfer(
                f"intent token {intent.token_id} does not match definition {token.token_id}"
            )
        if token.deleted:
            raise TokenWasDeleted(f"token {token.token_id} was deleted")
        if intent.is_nft() != token.is_unique():
            raise InvalidTransfer(
                f"{token.token_type.value} token {token.token_id} requires "
                f"{'serial_number' if token.is_unique() else 'amount'}"
            )

        sheet = _BalanceSheet(ledger)
        sheet.account(sender_id)
        sheet.account(receiver_id)

        leg_tokens: dict[str, TokenDefinition] = {}
        for leg in legs:
            sheet.account(leg.sender_account_id)
            sheet.account(leg.receiver_account_id)
            if leg.token_id is not None and leg.token_id not in leg_tokens:
                leg_token = self._live_token(ledger, leg.token_id)
                if leg_token.is_unique():
                    raise InvalidTransfer(
                        f"consideration leg token {leg.token_id} must be fungible"
                    )
                leg_tokens[leg.token_id] = leg_token

        # 1. Ассоциации
        if not sheet.is_associated(sender_id, token):
            raise NotAssociated(f"sender {sender_id} is not associated with {token.token_id}")
        sheet.ensure_can_receive(receiver_id, token)

        for leg in legs:
            if leg.token_id is None:
                continue
            leg_token = leg_tokens[leg.token_id]
            if not sheet.is_associated(leg.sender_account_id, leg_token):
                raise NotAssociated(
                    f"consideration payer {leg.sender_account_id} is not associated with {leg.token_id}"
                )
            sheet.ensure_can_receive(leg.receiver_account_id, leg_token)

        # 2. Балансы
        ownership = self._move_ownership(sheet, token, intent)
        for leg in legs:
            sheet.move(
                leg.token_id,
                leg.amount,
                leg.sender_account_id,
                leg.receiver_account_id,
                InsufficientBalance,
                "consideration leg",
            )

        # 3. Treasury exemption
        if token.is_treasury(sender_id) or token.is_treasury(receiver_id):
            return [ownership], True, sheet.auto_associations

        # 4. Custom fees в порядке schedule
        deltas = [ownership]
        for index, fee in enumerate(token.custom_fees):
            if isinstance(fee, FixedFee):
                delta = self._charge_fixed(
                    sheet, ledger, fee, index, payer=sender_id, kind=DeltaKind.FIXED_FEE
                )
                if delta is not None:
                    deltas.append(delta)
            elif isinstance(fee, RoyaltyFee):
                deltas.extend(
                    self._charge_royalty(sheet, ledger, fee, index, intent, legs, leg_tokens)
                )

        return deltas, False, sheet.auto_associations

    def _move_ownership(
        self, sheet: _BalanceSheet, token: TokenDefinition, intent: TransferIntent
    ) -> BalanceDelta:
        sender_id = intent.sender_account_id
        receiver_id = intent.receiver_account_id

        if intent.serial_number is not None:
            if not sheet.account(sender_id).holds_serial(token.token_id, intent.serial_number):
                raise InsufficientBalance(
                    f"{sender_id} does not own {token.token_id}#{intent.serial_number}"
                )
        else:
            sheet.move(
                token.token_id,
                intent.quantity(),
                sender_id,
                receiver_id,
                InsufficientBalance,
                "token transfer",
            )

        return BalanceDelta(
            kind=DeltaKind.OWNERSHIP,
            token_id=token.token_id,
            serial_number=intent.serial_number,
            amount=intent.quantity(),
            from_account_id=sender_id,
            to_account_id=receiver_id,
        )

    def _charge_fixed(
        self,
        sheet: _BalanceSheet,
        ledger: LedgerView,
        fee: FixedFee,
        index: int,
        payer: str,
        kind: DeltaKind,
    ) -> BalanceDelta | None:
        """Взимание фиксированной комиссии (или fallback) с payer."""
        collector = fee.fee_collector_account_id
        if collector is None:
            raise InvalidCustomFee(f"custom_fees[{index}] has no fee collector")
        sheet.account(collector)

        if self.config.exempt_fee_collectors and payer == collector:
            logger.debug("custom_fees[%d]: payer %s is the collector, exempt", index, payer)
            return None

        if fee.denominating_token_id is not None:
            fee_token = self._live_token(ledger, fee.denominating_token_id)
            if not sheet.is_associated(payer, fee_token):
                raise NotAssociated(
                    f"custom_fees[{index}]: fee payer {payer} is not associated "
                    f"with {fee_token.token_id}"
                )
            if not sheet.is_associated(collector, fee_token):
                raise NotAssociated(
                    f"custom_fees[{index}]: fee collector {collector} is not associated "
                    f"with {fee_token.token_id}"
                )

        sheet.move(
            fee.denominating_token_id,
            fee.amount,
            payer,
            collector,
            InsufficientBalanceForCustomFee,
            f"custom_fees[{index}]",
        )
        logger.debug(
            "custom_fees[%d]: %s %d %s %s -> %s",
            index, kind.value, fee.amount, asset_label(fee.denominating_token_id), payer, collector,
        )

        return BalanceDelta(
            kind=kind,
            token_id=fee.denominating_token_id,
            amount=fee.amount,
            from_account_id=payer,
            to_account_id=collector,
            fee_index=index,
        )

    def _charge_royalty(
        self,
        sheet: _BalanceSheet,
        ledger: LedgerView,
        fee: RoyaltyFee,
        index: int,
        intent: TransferIntent,
        legs: tuple[ConsiderationLeg, ...],
        leg_tokens: dict[str, TokenDefinition],
    ) -> list[BalanceDelta]:
        """Royalty с consideration либо fallback fee с получателя."""
        sender_id = intent.sender_account_id
        receiver_id = intent.receiver_account_id

        # Consideration: legs получатель → отправитель, суммы по активам
        considerations: dict[str | None, int] = {}
        for leg in legs:
            if leg.sender_account_id == receiver_id and leg.receiver_account_id == sender_id:
                considerations[leg.token_id] = considerations.get(leg.token_id, 0) + leg.amount

        if not considerations:
            fallback = fee.resolved_fallback()
            if fallback is None:
                return []
            delta = self._charge_fixed(
                sheet, ledger, fallback, index, payer=receiver_id, kind=DeltaKind.FALLBACK_FEE
            )
            return [] if delta is None else [delta]

        collector = fee.fee_collector_account_id
        sheet.account(collector)
        if self.config.exempt_fee_collectors and sender_id == collector:
            logger.debug("custom_fees[%d]: sender %s is the collector, exempt", index, sender_id)
            return []

        deltas = []
        for token_id, value in considerations.items():
            amount = fee.amount_for(value)
            if amount == 0:
                continue
            if token_id is not None and not sheet.is_associated(collector, leg_tokens[token_id]):
                raise NotAssociated(
                    f"custom_fees[{index}]: fee collector {collector} is not associated with {token_id}"
                )
            sheet.move(
                token_id,
                amount,
                sender_id,
                collector,
                InsufficientBalanceForCustomFee,
                f"custom_fees[{index}]",
            )
            logger.debug(
                "custom_fees[%d]: royalty %d of %d %s %s -> %s",
                index, amount, value, asset_label(token_id), sender_id, collector,
            )
            deltas.append(
                BalanceDelta(
                    kind=DeltaKind.ROYALTY_FEE,
                    token_id=token_id,
                    amount=amount,
                    from_account_id=sender_id,
                    to_account_id=collector,
                    fee_index=index,
                )
            )
        return deltas

    @staticmethod
    def _live_token(ledger: LedgerView, token_id: str) -> TokenDefinition:
        token = ledger.get_token(token_id)
        if token.deleted:
            raise TokenWasDeleted(f"token {token_id} was deleted")
        return token


def _describe_intent(intent: TransferIntent) -> str:
    if intent.serial_number is not None:
        what = f"{intent.token_id}#{intent.serial_number}"
    else:
        what = f"{intent.amount} of {intent.token_id}"
    return f"{what} {intent.sender_account_id} -> {intent.receiver_account_id}"
