"""Scenarios — демонстрации custom fees NFT на in-memory ledger."""

from .cases import (
    SCENARIOS,
    ScenarioReport,
    ScenarioStep,
    fallback_collector_not_associated,
    fallback_token_deleted,
    fee_schedule_update,
    royalty_hbar_fallback,
    royalty_with_consideration,
    run_scenarios,
)

__all__ = [
    "SCENARIOS",
    "ScenarioReport",
    "ScenarioStep",
    "run_scenarios",
    "royalty_hbar_fallback",
    "royalty_with_consideration",
    "fallback_collector_not_associated",
    "fallback_token_deleted",
    "fee_schedule_update",
]
