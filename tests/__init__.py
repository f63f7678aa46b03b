"""
Test suite for the custom-fee-aware NFT transfer simulator

Contains:
- tests/unit/          : Unit tests for domain models, fee engine, ledger, scenarios and CLI
"""
