"""
Tests for demonstration scenarios

Каждый сценарий выполняется на свежем in-memory ledger; проверяются коды
ответов шагов и итоговые балансы.
"""

import pytest

from src.config import AppConfig
from src.core.domain import ResponseCode, Unauthorized, hbar_to_tinybar
from src.ledger import LedgerService, LedgerServiceConfig
from src.scenarios import (
    SCENARIOS,
    fallback_collector_not_associated,
    fallback_token_deleted,
    fee_schedule_update,
    royalty_hbar_fallback,
    royalty_with_consideration,
    run_scenarios,
)

SUCCESS = ResponseCode.SUCCESS.value


def hbars(report, label: str) -> int:
    return report.snapshot.get_account(report.accounts[label]).hbar_balance


def holds(report, label: str, serial: int = 2) -> bool:
    account = report.snapshot.get_account(report.accounts[label])
    return account.holds_serial(report.tokens["LEAF"], serial)


class TestRoyaltyHbarFallback:
    @pytest.fixture(scope="class")
    def report(self):
        return royalty_hbar_fallback()

    def test_all_steps_succeed(self, report) -> None:
        assert all(step.status == SUCCESS for step in report.steps)

    def test_receiver_paid_fallback(self, report) -> None:
        """Bob заплатил 1 HBAR fallback, возврат в treasury бесплатный"""
        assert hbars(report, "bob") == hbar_to_tinybar(29)
        assert hbars(report, "treasury") == hbar_to_tinybar(6)
        assert hbars(report, "alice") == hbar_to_tinybar(30)

    def test_serial_back_in_treasury(self, report) -> None:
        assert holds(report, "treasury")
        assert not holds(report, "bob")

    def test_bob_auto_associated(self, report) -> None:
        bob = report.snapshot.get_account(report.accounts["bob"])
        assert bob.used_automatic_associations == 1

    def test_balance_checks_recorded(self, report) -> None:
        check = next(step for step in report.steps if step.description == "balance check 3")
        assert any("29 ℏ" in line for line in check.balances)


class TestRoyaltyWithConsideration:
    def test_royalty_split(self) -> None:
        report = royalty_with_consideration()

        assert report.status_of("transfer alice->bob") == SUCCESS
        assert hbars(report, "alice") == hbar_to_tinybar(35)
        assert hbars(report, "bob") == hbar_to_tinybar(20)
        assert hbars(report, "treasury") == hbar_to_tinybar(10)
        assert holds(report, "bob")


class TestFallbackCollectorNotAssociated:
    def test_creation_needs_association(self) -> None:
        report = fallback_collector_not_associated()

        assert report.status_of("create NFT LEAF") == ResponseCode.NOT_ASSOCIATED.value
        assert report.status_of("associate treasury with RAND") == SUCCESS
        assert report.status_of("create NFT LEAF after association") == SUCCESS
        assert report.tokens["LEAF"] in report.snapshot.tokens

    def test_stops_when_fee_token_not_created(self, monkeypatch) -> None:
        """Без RAND нет fallback в RAND: сценарий завершается после отказа"""

        def reject(self, *args, **kwargs):
            raise Unauthorized("token creation disabled")

        monkeypatch.setattr(LedgerService, "create_token", reject)
        report = fallback_collector_not_associated()

        assert report.status_of("create token RAND") == ResponseCode.UNAUTHORIZED.value
        assert "RAND" not in report.tokens
        assert report.snapshot.tokens == {}
        with pytest.raises(KeyError):
            report.status_of("create NFT LEAF")


class TestFallbackTokenDeleted:
    def test_transfer_rejected(self) -> None:
        report = fallback_token_deleted()

        assert report.status_of("delete token RAND") == SUCCESS
        assert report.status_of("transfer alice->bob") == ResponseCode.TOKEN_WAS_DELETED.value
        assert holds(report, "alice")
        assert not holds(report, "bob")
        rand = report.tokens["RAND"]
        bob = report.snapshot.get_account(report.accounts["bob"])
        assert bob.balance_of(rand) == 10


class TestFeeScheduleUpdate:
    def test_update_rules(self) -> None:
        report = fee_schedule_update()

        assert report.status_of("update fee schedule to 200/100") == ResponseCode.INVALID_CUSTOM_FEE.value
        assert (
            report.status_of("update fee schedule without fee schedule key")
            == ResponseCode.UNAUTHORIZED.value
        )
        assert report.status_of("update fee schedule to 1/10") == SUCCESS
        token = report.snapshot.get_token(report.tokens["NMF"])
        assert (token.custom_fees[0].numerator, token.custom_fees[0].denominator) == (1, 10)


class TestRunner:
    def test_run_all(self) -> None:
        reports = run_scenarios()
        assert [report.name for report in reports] == list(SCENARIOS)

    def test_run_selected_with_config(self) -> None:
        config = AppConfig(ledger=LedgerServiceConfig(first_entity_num=7000))
        (report,) = run_scenarios(["royalty_hbar_fallback"], config)
        assert report.accounts["treasury"] == "0.0.7000"

    def test_unknown_scenario(self) -> None:
        with pytest.raises(KeyError, match="unknown scenario"):
            run_scenarios(["case-9"])

    def test_status_of_unknown_step(self) -> None:
        with pytest.raises(KeyError):
            fee_schedule_update().status_of("mint")

    def test_lines(self) -> None:
        lines = fee_schedule_update().lines()
        assert lines[0] == "== fee_schedule_update"
        assert "- update fee schedule to 1/10: SUCCESS" in lines
