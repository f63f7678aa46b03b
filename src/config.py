"""Конфигурация приложения из переменных окружения.

Переменные (значения по умолчанию в скобках):
- LOG_LEVEL (INFO)
- FEE_ENGINE_EXEMPT_COLLECTORS (1)
- LEDGER_MAX_CUSTOM_FEES (10)
- LEDGER_MAX_AUTO_ASSOCIATIONS (5000)
- LEDGER_FIRST_ENTITY_NUM (1001)

.env подхватывается вызывающей стороной через python-dotenv (см. src.cli).
"""

import logging
import os
from dataclasses import dataclass, field

from src.core.domain.fees import MAX_CUSTOM_FEES
from src.ledger.service import LedgerServiceConfig
from src.settlement.engine import FeeEngineConfig

logger = logging.getLogger(__name__)

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class AppConfig:
    """Конфигурация CLI и сценариев."""

    log_level: str = "INFO"
    engine: FeeEngineConfig = field(default_factory=FeeEngineConfig)
    ledger: LedgerServiceConfig = field(default_factory=LedgerServiceConfig)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in _FALSE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_app_config() -> AppConfig:
    """
    Сборка AppConfig из окружения.

    Raises:
        ValueError: Если числовая переменная некорректна или лимит custom fees
            выходит за [1, MAX_CUSTOM_FEES]
    """
    max_custom_fees = _env_int("LEDGER_MAX_CUSTOM_FEES", MAX_CUSTOM_FEES)
    if not 1 <= max_custom_fees <= MAX_CUSTOM_FEES:
        raise ValueError(
            f"LEDGER_MAX_CUSTOM_FEES must be in [1, {MAX_CUSTOM_FEES}], got {max_custom_fees}"
        )

    config = AppConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        engine=FeeEngineConfig(
            exempt_fee_collectors=_env_flag("FEE_ENGINE_EXEMPT_COLLECTORS", True),
        ),
        ledger=LedgerServiceConfig(
            max_custom_fees=max_custom_fees,
            max_automatic_associations_cap=_env_int("LEDGER_MAX_AUTO_ASSOCIATIONS", 5000),
            first_entity_num=_env_int("LEDGER_FIRST_ENTITY_NUM", 1001),
        ),
    )
    logger.debug(
        "Config loaded: log_level=%s, exempt_collectors=%s, max_custom_fees=%d, "
        "auto_associations_cap=%d, first_entity_num=%d",
        config.log_level,
        config.engine.exempt_fee_collectors,
        config.ledger.max_custom_fees,
        config.ledger.max_automatic_associations_cap,
        config.ledger.first_entity_num,
    )
    return config
