"""Сценарии — офлайн-воспроизведение демонстраций custom fees для NFT.

Каждый сценарий создаёт свежий LedgerService, выполняет шаги демонстрации
(аккаунты, токены, mint, ассоциации, переводы) и возвращает ScenarioReport
с кодом ответа каждого шага и проверками балансов.

Сценарии:
- royalty_hbar_fallback: fallback 1 HBAR, платит получатель NFT
- royalty_with_consideration: royalty 5/10 с 10 HBAR consideration
- fallback_collector_not_associated: collector fallback не ассоциирован с токеном fallback
- fallback_token_deleted: токен fallback удалён до перевода
- fee_schedule_update: обновление fee schedule по fee schedule key
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Final, Iterable

from src.config import AppConfig
from src.core.domain.errors import LedgerError, ResponseCode
from src.core.domain.fees import FixedFee, RoyaltyFee
from src.core.domain.token import SupplyType, TokenType
from src.core.domain.transfer import ConsiderationLeg, TransferIntent, TransferOutcome
from src.core.domain.units import hbar_to_tinybar
from src.ledger.service import LedgerService
from src.ledger.snapshot import LedgerSnapshot
from src.settlement.engine import FeeAssessmentEngine

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# IPFS CID метаданных NFT коллекции
NFT_METADATA: Final[tuple[str, ...]] = (
    "QmNPCiNA3Dsu3K5FxDPMG5Q3fZRwVTg14EXA92uqEeSRXn",
    "QmZ4dgAgt8owvnULxnKxNe8YqpavtVCXmc1Lt2XajFpJs9",
    "QmPzY5GxevjyfMUF5vEAjtyRoigzWp47MiKAtLBduLMC1T",
    "Qmd3kGgSrAwwSrhesYcY7K54f3qD7MDo38r7Po2dChtQx5",
    "QmWgkKz3ozgqtnvbCLeh7EaR1H8u5Sshx3ZJzxkcrT3jbw",
)

ADMIN_KEY: Final[str] = "admin-key"
SUPPLY_KEY: Final[str] = "supply-key"
TREASURY_KEY: Final[str] = "treasury-key"
FEE_SCHEDULE_KEY: Final[str] = "fee-schedule-key"

# Serial, который переходит между аккаунтами в демонстрациях
DEMO_SERIAL: Final[int] = 2


# =============================================================================
# REPORT
# =============================================================================


@dataclass(frozen=True)
class ScenarioStep:
    """Шаг сценария: описание, код ответа, балансы (для проверок балансов)."""

    description: str
    status: str
    balances: tuple[str, ...] = ()


@dataclass
class ScenarioReport:
    """Отчёт сценария."""

    name: str
    steps: list[ScenarioStep] = field(default_factory=list)
    accounts: dict[str, str] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)
    snapshot: LedgerSnapshot | None = None

    def status_of(self, description: str) -> str:
        """
        Код ответа шага.

        Raises:
            KeyError: Если шага нет
        """
        for step in self.steps:
            if step.description == description:
                return step.status
        raise KeyError(description)

    def lines(self) -> list[str]:
        out = [f"== {self.name}"]
        for step in self.steps:
            out.append(f"- {step.description}: {step.status}")
            out.extend(f"    {line}" for line in step.balances)
        return out


# =============================================================================
# RUNNER
# =============================================================================


class _Run:
    """Обвязка сценария: сервис, запись шагов, проверки балансов."""

    def __init__(self, name: str, config: AppConfig | None):
        config = config or AppConfig()
        self.service = LedgerService(config.ledger, FeeAssessmentEngine(config.engine))
        self.report = ScenarioReport(name=name)

    def account(self, label: str, hbar: float, max_automatic_associations: int = 0) -> str:
        account_id = self.service.create_account(
            hbar_to_tinybar(hbar), max_automatic_associations
        )
        self.report.accounts[label] = account_id
        self._record(f"create account {label}", ResponseCode.SUCCESS.value)
        return account_id

    def attempt(self, description: str, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """Выполнение шага; ошибка ledger записывается как код ответа шага."""
        try:
            result = operation(*args, **kwargs)
        except LedgerError as e:
            logger.info("%s: %s (%s)", description, e.code.value, e.message)
            self._record(description, e.code.value)
            return None

        if isinstance(result, TransferOutcome):
            status = result.status.value
        else:
            status = ResponseCode.SUCCESS.value
        self._record(description, status)
        return result

    def check_balances(self, description: str, labels: Iterable[str]) -> None:
        balances = tuple(
            f"{label} {self.service.balance(self.report.accounts[label]).describe()}"
            for label in labels
        )
        self.report.steps.append(
            ScenarioStep(description=description, status=ResponseCode.SUCCESS.value, balances=balances)
        )

    def finish(self) -> ScenarioReport:
        self.report.snapshot = self.service.snapshot
        return self.report

    def _record(self, description: str, status: str) -> None:
        self.report.steps.append(ScenarioStep(description=description, status=status))

    def create_leaf_collection(self, treasury: str, fees: list[Any]) -> str | None:
        """NFT коллекция "Fall Collection" (LEAF) с FINITE supply по числу CID."""
        token_id = self.attempt(
            "create NFT LEAF",
            self.service.create_token,
            "Fall Collection",
            "LEAF",
            treasury,
            TokenType.NON_FUNGIBLE_UNIQUE,
            supply_type=SupplyType.FINITE,
            max_supply=len(NFT_METADATA),
            custom_fees=fees,
            admin_key=ADMIN_KEY,
            supply_key=SUPPLY_KEY,
        )
        if token_id is not None:
            self.report.tokens["LEAF"] = token_id
        return token_id

    def mint_collection(self, token_id: str) -> None:
        for cid in NFT_METADATA:
            self.attempt(f"mint {cid}", self.service.mint, token_id, [cid], signer_keys=[SUPPLY_KEY])

    def nft_transfer(
        self,
        token_id: str,
        sender: str,
        receiver: str,
        legs: Iterable[ConsiderationLeg] = (),
    ) -> TransferOutcome | None:
        intent = TransferIntent(
            token_id=token_id,
            serial_number=DEMO_SERIAL,
            sender_account_id=self.report.accounts[sender],
            receiver_account_id=self.report.accounts[receiver],
        )
        return self.attempt(
            f"transfer {sender}->{receiver}", self.service.transfer, intent, legs
        )


# =============================================================================
# SCENARIOS
# =============================================================================


def royalty_hbar_fallback(config: AppConfig | None = None) -> ScenarioReport:
    """Royalty 5/10 с fallback 1 HBAR; без consideration fallback платит Bob."""
    run = _Run("royalty_hbar_fallback", config)
    treasury = run.account("treasury", 5)
    alice = run.account("alice", 30)
    bob = run.account("bob", 30)

    fee = RoyaltyFee(
        numerator=5,
        denominator=10,
        fee_collector_account_id=treasury,
        fallback_fee=FixedFee(amount=hbar_to_tinybar(1)),
    )
    token_id = run.create_leaf_collection(treasury, [fee])
    if token_id is None:
        return run.finish()
    run.mint_collection(token_id)

    run.attempt("bob auto-association", run.service.set_max_automatic_associations, bob, 100)
    run.attempt("alice manual association", run.service.associate, alice, [token_id])
    run.check_balances("balance check 1", ["treasury", "alice", "bob"])

    # Treasury освобождён от custom fees
    run.nft_transfer(token_id, "treasury", "alice")
    run.check_balances("balance check 2", ["treasury", "alice", "bob"])

    run.nft_transfer(token_id, "alice", "bob")
    run.check_balances("balance check 3", ["treasury", "alice", "bob"])

    # Возврат в treasury: подпись treasury для комиссий не нужна
    run.nft_transfer(token_id, "bob", "treasury")
    run.check_balances("balance check 4", ["treasury", "alice", "bob"])
    return run.finish()


def royalty_with_consideration(config: AppConfig | None = None) -> ScenarioReport:
    """Royalty 5/10 с 10 HBAR от Bob к Alice: Alice получает 5, treasury 5."""
    run = _Run("royalty_with_consideration", config)
    treasury = run.account("treasury", 5)
    alice = run.account("alice", 30, max_automatic_associations=100)
    bob = run.account("bob", 30)

    fee = RoyaltyFee(
        numerator=5,
        denominator=10,
        fee_collector_account_id=treasury,
        fallback_fee=FixedFee(amount=hbar_to_tinybar(1)),
    )
    token_id = run.create_leaf_collection(treasury, [fee])
    if token_id is None:
        return run.finish()
    run.mint_collection(token_id)

    run.attempt("bob manual association", run.service.associate, bob, [token_id])
    run.nft_transfer(token_id, "treasury", "alice")
    run.check_balances("balance check 1", ["treasury", "alice", "bob"])

    payment = ConsiderationLeg(
        sender_account_id=bob, receiver_account_id=alice, amount=hbar_to_tinybar(10)
    )
    run.nft_transfer(token_id, "alice", "bob", [payment])
    run.check_balances("balance check 2", ["treasury", "alice", "bob"])
    return run.finish()


def fallback_collector_not_associated(config: AppConfig | None = None) -> ScenarioReport:
    """Fallback в токене, с которым treasury (collector) не ассоциирован."""
    run = _Run("fallback_collector_not_associated", config)
    issuer = run.account("issuer", 50)
    treasury = run.account("treasury", 5)
    run.account("alice", 30)
    run.account("bob", 30)

    random_token = run.attempt(
        "create token RAND",
        run.service.create_token,
        "USDRandom",
        "RAND",
        issuer,
        TokenType.FUNGIBLE_COMMON,
        decimals=1,
        initial_supply=1000,
        admin_key=ADMIN_KEY,
    )
    if random_token is None:
        return run.finish()
    run.report.tokens["RAND"] = random_token

    fee = RoyaltyFee(
        numerator=5,
        denominator=10,
        fee_collector_account_id=treasury,
        fallback_fee=FixedFee(
            amount=10,
            denominating_token_id=random_token,
            fee_collector_account_id=treasury,
        ),
    )
    # Ожидается NotAssociated: treasury не ассоциирован с RAND
    if run.create_leaf_collection(treasury, [fee]) is not None:
        return run.finish()

    run.attempt("associate treasury with RAND", run.service.associate, treasury, [random_token])
    token_id = run.attempt(
        "create NFT LEAF after association",
        run.service.create_token,
        "Fall Collection",
        "LEAF",
        treasury,
        TokenType.NON_FUNGIBLE_UNIQUE,
        supply_type=SupplyType.FINITE,
        max_supply=len(NFT_METADATA),
        custom_fees=[fee],
        admin_key=ADMIN_KEY,
        supply_key=SUPPLY_KEY,
    )
    if token_id is not None:
        run.report.tokens["LEAF"] = token_id
    return run.finish()


def fallback_token_deleted(config: AppConfig | None = None) -> ScenarioReport:
    """Fallback 5 RAND; RAND удалён до перевода Alice → Bob без consideration."""
    run = _Run("fallback_token_deleted", config)
    treasury = run.account("treasury", 5)
    alice = run.account("alice", 20, max_automatic_associations=100)
    bob = run.account("bob", 20)

    random_token = run.attempt(
        "create token RAND",
        run.service.create_token,
        "USDRandom",
        "RAND",
        treasury,
        TokenType.FUNGIBLE_COMMON,
        decimals=1,
        initial_supply=1000,
        admin_key=TREASURY_KEY,
    )
    run.report.tokens["RAND"] = random_token
    run.attempt("alice associates RAND", run.service.associate, alice, [random_token])
    run.attempt("bob associates RAND", run.service.associate, bob, [random_token])

    for label, account_id in (("alice", alice), ("bob", bob)):
        run.attempt(
            f"distribute RAND treasury->{label}",
            run.service.transfer,
            TransferIntent(
                token_id=random_token,
                amount=10,
                sender_account_id=treasury,
                receiver_account_id=account_id,
            ),
        )

    fee = RoyaltyFee(
        numerator=5,
        denominator=10,
        fee_collector_account_id=treasury,
        fallback_fee=FixedFee(
            amount=5,
            denominating_token_id=random_token,
            fee_collector_account_id=treasury,
        ),
    )
    token_id = run.create_leaf_collection(treasury, [fee])
    if token_id is None:
        return run.finish()
    run.mint_collection(token_id)

    run.attempt("bob manual association", run.service.associate, bob, [token_id])
    run.nft_transfer(token_id, "treasury", "alice")
    run.check_balances("balance check 1", ["treasury", "alice", "bob"])

    run.attempt(
        "delete token RAND", run.service.delete_token, random_token, signer_keys=[TREASURY_KEY]
    )
    run.nft_transfer(token_id, "alice", "bob")
    run.check_balances("balance check 2", ["treasury", "alice", "bob"])
    return run.finish()


def fee_schedule_update(config: AppConfig | None = None) -> ScenarioReport:
    """Обновление fee schedule: доля > 1 отклоняется, нужен fee schedule key."""
    run = _Run("fee_schedule_update", config)
    operator = run.account("operator", 100)
    run.account("fee_schedule_holder", 10)

    token_id = run.attempt(
        "create NFT NMF",
        run.service.create_token,
        "NFT Max Fee",
        "NMF",
        operator,
        TokenType.NON_FUNGIBLE_UNIQUE,
        supply_type=SupplyType.FINITE,
        max_supply=10,
        custom_fees=[
            RoyaltyFee(
                numerator=5,
                denominator=10,
                fee_collector_account_id=operator,
                fallback_fee=FixedFee(amount=hbar_to_tinybar(1)),
            )
        ],
        supply_key=SUPPLY_KEY,
        fee_schedule_key=FEE_SCHEDULE_KEY,
    )
    if token_id is None:
        return run.finish()
    run.report.tokens["NMF"] = token_id

    def royalty(numerator: int, denominator: int) -> dict[str, Any]:
        return {
            "kind": "royalty",
            "numerator": numerator,
            "denominator": denominator,
            "fee_collector_account_id": operator,
            "fallback_fee": {"kind": "fixed", "amount": hbar_to_tinybar(1)},
        }

    run.attempt(
        "update fee schedule to 200/100",
        run.service.update_fee_schedule,
        token_id,
        [royalty(200, 100)],
        signer_keys=[FEE_SCHEDULE_KEY],
    )
    run.attempt(
        "update fee schedule without fee schedule key",
        run.service.update_fee_schedule,
        token_id,
        [royalty(1, 10)],
    )
    run.attempt(
        "update fee schedule to 1/10",
        run.service.update_fee_schedule,
        token_id,
        [royalty(1, 10)],
        signer_keys=[FEE_SCHEDULE_KEY],
    )
    return run.finish()


SCENARIOS: Final[dict[str, Callable[[AppConfig | None], ScenarioReport]]] = {
    "royalty_hbar_fallback": royalty_hbar_fallback,
    "royalty_with_consideration": royalty_with_consideration,
    "fallback_collector_not_associated": fallback_collector_not_associated,
    "fallback_token_deleted": fallback_token_deleted,
    "fee_schedule_update": fee_schedule_update,
}


def run_scenarios(
    names: Iterable[str] | None = None, config: AppConfig | None = None
) -> list[ScenarioReport]:
    """
    Запуск сценариев по именам (все, если names не задан).

    Raises:
        KeyError: Неизвестное имя сценария
    """
    selected = list(names) if names else list(SCENARIOS)
    unknown = [name for name in selected if name not in SCENARIOS]
    if unknown:
        raise KeyError(f"unknown scenario(s): {', '.join(unknown)}")
    return [SCENARIOS[name](config) for name in selected]
