"""Ledger — in-memory представление внешней ledger-сети.

- LedgerSnapshot: неизменяемый снапшот аккаунтов и токенов (LedgerView для engine)
- LedgerService: сериализованные операции над снапшотом
"""

from .service import AccountBalance, LedgerService, LedgerServiceConfig
from .snapshot import LedgerSnapshot

__all__ = [
    "AccountBalance",
    "LedgerService",
    "LedgerServiceConfig",
    "LedgerSnapshot",
]
