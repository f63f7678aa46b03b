"""
Core domain models, fee arithmetic, and JSON contracts.

This module contains the foundational building blocks that are independent
of external systems (ledger network, storage, CLI).
"""
