"""
Units — конверсия единиц ledger-native валюты и идентификаторов сущностей

Все суммы внутри домена — целые числа в минимальных единицах:
- HBAR хранится в tinybars (1 HBAR = 100_000_000 tinybars)
- fungible токены хранятся в base units (decimals не применяются)

ЗАПРЕЩЕНО передавать в модели дробные HBAR без явного конвертера из этого модуля.
"""

import re
from typing import Annotated, Final

from pydantic import StringConstraints


# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Количество tinybars в одном HBAR
TINYBARS_PER_HBAR: Final[int] = 100_000_000

# Метка ledger-native валюты (token_id = None в моделях)
NATIVE_ASSET_LABEL: Final[str] = "HBAR"

# Формат идентификатора сущности: shard.realm.num
ENTITY_ID_PATTERN: Final[str] = r"^\d+\.\d+\.\d+$"

_ENTITY_ID_RE = re.compile(ENTITY_ID_PATTERN)


# =============================================================================
# HBAR <-> TINYBARS
# =============================================================================


def hbar_to_tinybar(hbar: float) -> int:
    """
    Конверсия: HBAR → tinybars

    Args:
        hbar: Сумма в HBAR (может быть дробной, например 0.5)

    Returns:
        Сумма в tinybars (округление до ближайшего целого)

    Raises:
        ValueError: Если сумма отрицательная
    """
    if hbar < 0:
        raise ValueError(f"HBAR amount cannot be negative: {hbar}")
    return int(round(hbar * TINYBARS_PER_HBAR))


def tinybar_to_hbar(tinybars: int) -> float:
    """Конверсия: tinybars → HBAR."""
    return tinybars / TINYBARS_PER_HBAR


def format_hbar(tinybars: int) -> str:
    """
    Форматирование суммы для логов и отчётов.

    Returns:
        Строка вида "29 ℏ" или "0.5 ℏ"
    """
    hbar = tinybar_to_hbar(tinybars)
    text = f"{hbar:.8f}".rstrip("0").rstrip(".")
    return f"{text} ℏ"


# =============================================================================
# ИДЕНТИФИКАТОРЫ СУЩНОСТЕЙ
# =============================================================================


def is_entity_id(value: str) -> bool:
    """Проверка формата shard.realm.num."""
    return bool(_ENTITY_ID_RE.match(value))


def parse_entity_id(value: str) -> tuple[int, int, int]:
    """
    Разбор идентификатора сущности.

    Args:
        value: Идентификатор вида "0.0.1001"

    Returns:
        (shard, realm, num)

    Raises:
        ValueError: Если формат некорректен
    """
    if not is_entity_id(value):
        raise ValueError(f"Invalid entity id: {value!r}")
    shard, realm, num = value.split(".")
    return int(shard), int(realm), int(num)


def format_entity_id(num: int, shard: int = 0, realm: int = 0) -> str:
    """Сборка идентификатора сущности из компонент."""
    if num < 0 or shard < 0 or realm < 0:
        raise ValueError(f"Entity id components must be non-negative: {shard}.{realm}.{num}")
    return f"{shard}.{realm}.{num}"


def asset_label(token_id: str | None) -> str:
    """Человекочитаемое имя актива: token_id или HBAR."""
    return NATIVE_ASSET_LABEL if token_id is None else token_id


# Тип поля pydantic-моделей для идентификаторов сущностей
EntityId = Annotated[str, StringConstraints(pattern=ENTITY_ID_PATTERN)]
