"""
Tests for LedgerService

Проверяет операции in-memory ledger:
- аккаунты, ассоциации (явные и автоматические)
- создание токенов и валидацию fee schedule
- mint (supply key, max supply), обновление fee schedule, удаление
- переводы через FeeAssessmentEngine
- сериализацию конкурентных переводов
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.core.domain import (
    AccountNotFound,
    ConsiderationLeg,
    FixedFee,
    InvalidCustomFee,
    MaxSupplyReached,
    NotAssociated,
    ResponseCode,
    RoyaltyFee,
    SupplyType,
    TokenAlreadyAssociated,
    TokenNotFound,
    TokenType,
    TokenWasDeleted,
    TransferIntent,
    Unauthorized,
    hbar_to_tinybar,
)
from src.ledger import LedgerService, LedgerServiceConfig, LedgerSnapshot

SUPPLY_KEY = "supply-key"
ADMIN_KEY = "admin-key"
FEE_KEY = "fee-schedule-key"


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def service() -> LedgerService:
    return LedgerService()


@pytest.fixture
def parties(service: LedgerService) -> dict[str, str]:
    return {
        "treasury": service.create_account(hbar_to_tinybar(5)),
        "alice": service.create_account(hbar_to_tinybar(30)),
        "bob": service.create_account(hbar_to_tinybar(30)),
    }


@pytest.fixture
def leaf(service: LedgerService, parties: dict[str, str]) -> str:
    """NFT с royalty 5/10 и fallback 1 HBAR, 3 serials у treasury."""
    token_id = service.create_token(
        "Fall Collection",
        "LEAF",
        parties["treasury"],
        TokenType.NON_FUNGIBLE_UNIQUE,
        supply_type=SupplyType.FINITE,
        max_supply=3,
        custom_fees=[
            RoyaltyFee(
                numerator=5,
                denominator=10,
                fee_collector_account_id=parties["treasury"],
                fallback_fee=FixedFee(amount=hbar_to_tinybar(1)),
            )
        ],
        admin_key=ADMIN_KEY,
        supply_key=SUPPLY_KEY,
        fee_schedule_key=FEE_KEY,
    )
    service.mint(token_id, ["cid-1", "cid-2", "cid-3"], signer_keys=[SUPPLY_KEY])
    return token_id


def nft_intent(token_id: str, sender: str, receiver: str, serial: int = 2) -> TransferIntent:
    return TransferIntent(
        token_id=token_id, serial_number=serial, sender_account_id=sender, receiver_account_id=receiver
    )


# =============================================================================
# ACCOUNTS
# =============================================================================


class TestAccounts:
    def test_sequential_ids(self, service: LedgerService) -> None:
        assert service.create_account() == "0.0.1001"
        assert service.create_account() == "0.0.1002"

    def test_configured_first_entity(self) -> None:
        service = LedgerService(LedgerServiceConfig(first_entity_num=5000))
        assert service.create_account() == "0.0.5000"

    def test_ids_continue_after_snapshot(self, service: LedgerService) -> None:
        service.create_account()
        resumed = LedgerService(snapshot=service.snapshot)
        assert resumed.create_account() == "0.0.1002"

    def test_balance(self, service: LedgerService) -> None:
        account_id = service.create_account(hbar_to_tinybar(30))
        balance = service.balance(account_id)
        assert balance.hbars == hbar_to_tinybar(30)
        assert balance.tokens == {}
        assert balance.describe() == f"{account_id}: 30 ℏ"

    def test_auto_association_limit(self, service: LedgerService) -> None:
        account_id = service.create_account()
        service.set_max_automatic_associations(account_id, 100)
        assert service.snapshot.get_account(account_id).max_automatic_associations == 100

    def test_auto_association_cap(self, service: LedgerService) -> None:
        with pytest.raises(ValueError, match="max_automatic_associations"):
            service.create_account(max_automatic_associations=5001)

    def test_unknown_account(self, service: LedgerService) -> None:
        with pytest.raises(AccountNotFound):
            service.balance("0.0.42")


class TestAssociations:
    def test_associate(self, service, parties, leaf) -> None:
        service.associate(parties["alice"], [leaf])
        assert service.snapshot.get_account(parties["alice"]).is_associated(leaf)

    def test_already_associated(self, service, parties, leaf) -> None:
        service.associate(parties["alice"], [leaf])
        with pytest.raises(TokenAlreadyAssociated):
            service.associate(parties["alice"], [leaf])

    def test_treasury_already_associated(self, service, parties, leaf) -> None:
        with pytest.raises(TokenAlreadyAssociated):
            service.associate(parties["treasury"], [leaf])

    def test_all_or_nothing(self, service, parties, leaf) -> None:
        with pytest.raises(TokenNotFound):
            service.associate(parties["alice"], [leaf, "0.0.9999"])
        assert not service.snapshot.get_account(parties["alice"]).is_associated(leaf)


# =============================================================================
# TOKENS
# =============================================================================


class TestTokens:
    def test_fungible_initial_supply(self, service, parties) -> None:
        token_id = service.create_token(
            "USDRandom", "RAND", parties["treasury"], decimals=1, initial_supply=1000
        )
        assert service.balance(parties["treasury"]).of(token_id) == 1000
        info = service.token_info(token_id)
        assert info.total_supply == 1000
        assert info.token_type == TokenType.FUNGIBLE_COMMON

    def test_nft_initial_supply_rejected(self, service, parties) -> None:
        with pytest.raises(ValueError):
            service.create_token(
                "x", "X", parties["treasury"], TokenType.NON_FUNGIBLE_UNIQUE, initial_supply=1
            )

    def test_royalty_on_fungible_rejected(self, service, parties) -> None:
        with pytest.raises(InvalidCustomFee, match="NON_FUNGIBLE_UNIQUE"):
            service.create_token(
                "x",
                "X",
                parties["treasury"],
                custom_fees=[
                    RoyaltyFee(numerator=1, denominator=10, fee_collector_account_id=parties["treasury"])
                ],
            )

    def test_fallback_collector_not_associated(self, service, parties) -> None:
        issuer = service.create_account()
        rand = service.create_token("USDRandom", "RAND", issuer, initial_supply=1000)
        fee = RoyaltyFee(
            numerator=5,
            denominator=10,
            fee_collector_account_id=parties["treasury"],
            fallback_fee=FixedFee(amount=10, denominating_token_id=rand),
        )
        with pytest.raises(NotAssociated):
            service.create_token(
                "Fall Collection", "LEAF", parties["treasury"], TokenType.NON_FUNGIBLE_UNIQUE,
                custom_fees=[fee],
            )

        service.associate(parties["treasury"], [rand])
        token_id = service.create_token(
            "Fall Collection", "LEAF", parties["treasury"], TokenType.NON_FUNGIBLE_UNIQUE,
            custom_fees=[fee],
        )
        assert service.token_info(token_id).custom_fees[0] == fee

    def test_fee_denominated_in_nft_rejected(self, service, parties, leaf) -> None:
        with pytest.raises(InvalidCustomFee, match="fungible"):
            service.create_token(
                "x",
                "X",
                parties["treasury"],
                custom_fees=[
                    FixedFee(
                        amount=1,
                        denominating_token_id=leaf,
                        fee_collector_account_id=parties["treasury"],
                    )
                ],
            )

    def test_mint_serials(self, service, leaf, parties) -> None:
        info = service.token_info(leaf)
        assert info.total_supply == 3
        assert info.nft_metadata == {1: "cid-1", 2: "cid-2", 3: "cid-3"}
        assert service.balance(parties["treasury"]).of(leaf) == 3

    def test_mint_beyond_max_supply(self, service, leaf) -> None:
        with pytest.raises(MaxSupplyReached):
            service.mint(leaf, ["cid-4"], signer_keys=[SUPPLY_KEY])

    def test_mint_requires_supply_key(self, service, parties) -> None:
        token_id = service.create_token(
            "x", "X", parties["treasury"], TokenType.NON_FUNGIBLE_UNIQUE, supply_key=SUPPLY_KEY
        )
        with pytest.raises(Unauthorized, match="did not sign"):
            service.mint(token_id, ["cid"])
        assert service.mint(token_id, ["cid"], signer_keys=[SUPPLY_KEY]) == (1,)

    def test_mint_fungible(self, service, parties) -> None:
        token_id = service.create_token("x", "X", parties["treasury"], supply_key=SUPPLY_KEY)
        assert service.mint(token_id, amount=50, signer_keys=[SUPPLY_KEY]) == ()
        assert service.balance(parties["treasury"]).of(token_id) == 50

    def test_update_fee_schedule(self, service, leaf, parties) -> None:
        too_high = {
            "kind": "royalty",
            "numerator": 200,
            "denominator": 100,
            "fee_collector_account_id": parties["treasury"],
        }
        with pytest.raises(InvalidCustomFee):
            service.update_fee_schedule(leaf, [too_high], signer_keys=[FEE_KEY])

        lower = dict(too_high, numerator=1, denominator=10)
        with pytest.raises(Unauthorized):
            service.update_fee_schedule(leaf, [lower])

        token = service.update_fee_schedule(leaf, [lower], signer_keys=[FEE_KEY])
        assert token.custom_fees[0].numerator == 1
        assert service.token_info(leaf).custom_fees == token.custom_fees

    def test_update_without_fee_schedule_key(self, service, parties) -> None:
        token_id = service.create_token("x", "X", parties["treasury"])
        with pytest.raises(Unauthorized, match="has no fee_schedule_key"):
            service.update_fee_schedule(token_id, [], signer_keys=[FEE_KEY])

    def test_delete_token(self, service, leaf, parties) -> None:
        with pytest.raises(Unauthorized):
            service.delete_token(leaf)
        service.delete_token(leaf, signer_keys=[ADMIN_KEY])
        assert service.token_info(leaf).deleted
        with pytest.raises(TokenWasDeleted):
            service.associate(parties["alice"], [leaf])


# =============================================================================
# TRANSFERS
# =============================================================================


class TestTransfers:
    def test_fallback_flow(self, service, leaf, parties) -> None:
        """Treasury → Alice бесплатно, Alice → Bob: Bob платит 1 HBAR fallback"""
        treasury, alice, bob = parties["treasury"], parties["alice"], parties["bob"]
        service.associate(alice, [leaf])
        service.set_max_automatic_associations(bob, 100)

        first = service.transfer(nft_intent(leaf, treasury, alice))
        assert first.accepted and first.treasury_exempt

        second = service.transfer(nft_intent(leaf, alice, bob))
        assert second.accepted
        assert service.balance(bob).hbars == hbar_to_tinybar(29)
        assert service.balance(bob).of(leaf) == 1
        assert service.balance(treasury).hbars == hbar_to_tinybar(6)

        third = service.transfer(nft_intent(leaf, bob, treasury))
        assert third.accepted and third.treasury_exempt
        assert service.balance(bob).hbars == hbar_to_tinybar(29)
        assert service.balance(treasury).of(leaf) == 3

    def test_consideration_flow(self, service, leaf, parties) -> None:
        treasury, alice, bob = parties["treasury"], parties["alice"], parties["bob"]
        service.associate(alice, [leaf])
        service.associate(bob, [leaf])
        service.transfer(nft_intent(leaf, treasury, alice))

        leg = ConsiderationLeg(
            sender_account_id=bob, receiver_account_id=alice, amount=hbar_to_tinybar(10)
        )
        outcome = service.transfer(nft_intent(leaf, alice, bob), [leg])

        assert outcome.accepted
        assert service.balance(alice).hbars == hbar_to_tinybar(35)
        assert service.balance(bob).hbars == hbar_to_tinybar(20)
        assert service.balance(treasury).hbars == hbar_to_tinybar(10)

    def test_rejected_transfer_leaves_ledger(self, service, leaf, parties) -> None:
        before = service.snapshot
        outcome = service.transfer(nft_intent(leaf, parties["treasury"], parties["alice"]))

        assert outcome.status == ResponseCode.NOT_ASSOCIATED
        assert service.snapshot is before

    def test_unknown_token(self, service, parties) -> None:
        outcome = service.transfer(nft_intent("0.0.9999", parties["alice"], parties["bob"]))
        assert outcome.status == ResponseCode.TOKEN_NOT_FOUND

    def test_snapshot_property_is_immutable_view(self, service, parties) -> None:
        assert isinstance(service.snapshot, LedgerSnapshot)
        assert set(service.snapshot.accounts) == set(parties.values())


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrency:
    def test_same_serial_sold_once(self, service, leaf, parties) -> None:
        """Несколько потоков переводят #2 от Alice: успешен ровно один"""
        treasury, alice = parties["treasury"], parties["alice"]
        service.associate(alice, [leaf])
        service.transfer(nft_intent(leaf, treasury, alice))
        buyers = [service.create_account(hbar_to_tinybar(30), 1) for _ in range(8)]
        hbar_before = sum(a.hbar_balance for a in service.snapshot.accounts.values())

        with ThreadPoolExecutor(max_workers=len(buyers)) as pool:
            outcomes = list(
                pool.map(lambda buyer: service.transfer(nft_intent(leaf, alice, buyer)), buyers)
            )

        accepted = [outcome for outcome in outcomes if outcome.accepted]
        assert len(accepted) == 1
        assert all(
            outcome.status == ResponseCode.INSUFFICIENT_BALANCE
            for outcome in outcomes
            if not outcome.accepted
        )

        snapshot = service.snapshot
        holders = [
            account.account_id
            for account in snapshot.accounts.values()
            if account.holds_serial(leaf, 2)
        ]
        assert holders == [accepted[0].intent.receiver_account_id]
        assert sum(len(a.nft_serials.get(leaf, ())) for a in snapshot.accounts.values()) == 3
        assert sum(a.hbar_balance for a in snapshot.accounts.values()) == hbar_before
