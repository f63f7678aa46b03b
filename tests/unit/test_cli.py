"""
Tests for CLI entry point
"""

import json

import pytest

from src.cli import EXIT_ACCEPTED, EXIT_INVALID, EXIT_REJECTED, main
from src.core.domain import hbar_to_tinybar

TREASURY = "0.0.1001"
ALICE = "0.0.1002"
BOB = "0.0.1003"
NFT = "0.0.2001"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("LOG_LEVEL", "FEE_ENGINE_EXEMPT_COLLECTORS", "LEDGER_MAX_CUSTOM_FEES"):
        monkeypatch.delenv(name, raising=False)


def request_data(bob_hbars: int) -> dict:
    """Alice → Bob без consideration, fallback 1 HBAR."""
    return {
        "snapshot": {
            "accounts": {
                TREASURY: {"account_id": TREASURY, "associations": [NFT]},
                ALICE: {"account_id": ALICE, "nft_serials": {NFT: [2]}, "associations": [NFT]},
                BOB: {"account_id": BOB, "hbar_balance": bob_hbars, "associations": [NFT]},
            },
            "tokens": {
                NFT: {
                    "token_id": NFT,
                    "name": "Fall Collection",
                    "symbol": "LEAF",
                    "token_type": "NON_FUNGIBLE_UNIQUE",
                    "treasury_account_id": TREASURY,
                    "custom_fees": [
                        {
                            "kind": "royalty",
                            "numerator": 5,
                            "denominator": 10,
                            "fee_collector_account_id": TREASURY,
                            "fallback_fee": {"kind": "fixed", "amount": hbar_to_tinybar(1)},
                        }
                    ],
                }
            },
        },
        "intent": {
            "token_id": NFT,
            "serial_number": 2,
            "sender_account_id": ALICE,
            "receiver_account_id": BOB,
        },
    }


def write_request(tmp_path, data) -> str:
    path = tmp_path / "request.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestAssessCommand:
    def test_accepted(self, tmp_path, capsys) -> None:
        path = write_request(tmp_path, request_data(hbar_to_tinybar(30)))

        assert main(["assess", path]) == EXIT_ACCEPTED

        outcome = json.loads(capsys.readouterr().out)
        assert outcome["status"] == "SUCCESS"
        assert [delta["kind"] for delta in outcome["deltas"]] == ["OWNERSHIP", "FALLBACK_FEE"]
        assert outcome["deltas"][1]["from_account_id"] == BOB

    def test_rejected(self, tmp_path, capsys) -> None:
        path = write_request(tmp_path, request_data(0))

        assert main(["assess", path]) == EXIT_REJECTED

        outcome = json.loads(capsys.readouterr().out)
        assert outcome["status"] == "InsufficientBalanceForCustomFee"
        assert outcome["deltas"] == []

    def test_contract_violation(self, tmp_path, capsys) -> None:
        data = request_data(0)
        del data["intent"]
        assert main(["assess", write_request(tmp_path, data)]) == EXIT_INVALID
        assert capsys.readouterr().out == ""

    def test_model_violation(self, tmp_path) -> None:
        data = request_data(0)
        data["intent"]["receiver_account_id"] = ALICE
        assert main(["assess", write_request(tmp_path, data)]) == EXIT_INVALID

    def test_not_json(self, tmp_path) -> None:
        path = tmp_path / "request.json"
        path.write_text("{not json", encoding="utf-8")
        assert main(["assess", str(path)]) == EXIT_INVALID

    def test_missing_file(self, tmp_path) -> None:
        assert main(["assess", str(tmp_path / "absent.json")]) == EXIT_INVALID


class TestScenarioCommand:
    def test_single_scenario(self) -> None:
        assert main(["scenario", "fee_schedule_update"]) == 0

    def test_unknown_scenario(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["scenario", "case-9"])
        assert exc_info.value.code == 2

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            main([])
