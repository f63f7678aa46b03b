"""
JSON Schema Contract Validators

Проверка JSON запроса оценки перевода и его результата по контрактам
contracts/schema/*.json (Draft 2020-12).

Схемы:
- assess_request.json (снапшот ledger + intent + consideration legs)
- transfer_outcome.json (результат оценки перевода)

Контракт проверяет только форму данных; инварианты домена (доля royalty <= 1,
serial XOR amount и т.п.) проверяют pydantic модели.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List

import jsonschema
from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

# contracts/schema относительно корня проекта (4 уровня вверх от этого файла)
DEFAULT_SCHEMA_DIR = Path(__file__).parent.parent.parent.parent / "contracts" / "schema"


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """Загрузчик и кэш JSON Schema файлов одного каталога."""

    def __init__(self, schema_dir: Path | None = None):
        self._schema_dir = schema_dir or DEFAULT_SCHEMA_DIR
        if not self._schema_dir.is_dir():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")

        self._schemas: Dict[str, Dict[str, Any]] = {}

    def available(self) -> List[str]:
        """Имена схем каталога (без расширения)."""
        return sorted(path.stem for path in self._schema_dir.glob("*.json"))

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Загрузка схемы с meta-validation.

        Args:
            schema_name: Имя схемы без расширения ('assess_request')

        Raises:
            FileNotFoundError: Если файла схемы нет
            ValueError: Если файл не является валидной JSON Schema
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.is_file():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_path.name}: {e.message}") from e

        self._schemas[schema_name] = schema
        return schema


_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


def _error_path(error: jsonschema.ValidationError) -> str:
    """Путь к полю в виде intent.receiver_account_id / legs[0].amount."""
    path = ""
    for part in error.absolute_path:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path.lstrip(".") or "<root>"


class ContractValidator:
    """Валидатор данных против одной схемы контракта."""

    def __init__(self, schema_name: str, loader: SchemaLoader | None = None):
        self.schema_name = schema_name
        self.schema = (loader or _SCHEMA_LOADER).load_schema(schema_name)
        self.validator = Draft202012Validator(self.schema)

    def validate(self, data: Any) -> None:
        """
        Raises:
            jsonschema.ValidationError: Первая (наиболее релевантная) ошибка
        """
        error = best_match(self.validator.iter_errors(data))
        if error is not None:
            raise error

    def is_valid(self, data: Any) -> bool:
        return self.validator.is_valid(data)

    def iter_errors(self, data: Any) -> Iterator[jsonschema.ValidationError]:
        """Все ошибки, упорядоченные по пути к полю."""
        errors = sorted(self.validator.iter_errors(data), key=_error_path)
        return iter(errors)

    def describe_errors(self, data: Any) -> List[str]:
        """Ошибки в виде строк 'путь: сообщение' (для логов CLI)."""
        return [f"{_error_path(error)}: {error.message}" for error in self.iter_errors(data)]


class AssessRequestValidator(ContractValidator):
    """Контракт assess_request."""

    def __init__(self, loader: SchemaLoader | None = None):
        super().__init__("assess_request", loader)


class TransferOutcomeValidator(ContractValidator):
    """Контракт transfer_outcome: у отказа нет движений и ассоциаций."""

    def __init__(self, loader: SchemaLoader | None = None):
        super().__init__("transfer_outcome", loader)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


@lru_cache(maxsize=None)
def assess_request_validator() -> AssessRequestValidator:
    return AssessRequestValidator()


@lru_cache(maxsize=None)
def transfer_outcome_validator() -> TransferOutcomeValidator:
    return TransferOutcomeValidator()


def validate_assess_request(data: Any) -> None:
    """
    Raises:
        jsonschema.ValidationError: Если данные не соответствуют assess_request
    """
    assess_request_validator().validate(data)


def validate_transfer_outcome(data: Any) -> None:
    """
    Raises:
        jsonschema.ValidationError: Если данные не соответствуют transfer_outcome
    """
    transfer_outcome_validator().validate(data)
