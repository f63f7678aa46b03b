"""AssessRequest — JSON-представление запроса оценки перевода.

Запрос = снапшот ledger + TransferIntent + consideration legs. Перед сборкой
моделей данные проверяются JSON Schema контрактом assess_request.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field

from src.core.contracts import validate_assess_request
from src.core.domain.errors import LedgerError
from src.core.domain.transfer import ConsiderationLeg, TransferIntent, TransferOutcome
from src.ledger.snapshot import LedgerSnapshot
from src.settlement.engine import FeeAssessmentEngine


class AssessRequest(BaseModel):
    """Запрос оценки перевода."""

    snapshot: LedgerSnapshot = Field(..., description="Снапшот аккаунтов и токенов")
    intent: TransferIntent = Field(..., description="Намерение перевода")
    legs: tuple[ConsiderationLeg, ...] = Field(
        default_factory=tuple, description="Сопутствующие переводы"
    )

    model_config = {"frozen": True}

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "AssessRequest":
        """
        Сборка запроса из JSON данных.

        Raises:
            jsonschema.ValidationError: Если данные не соответствуют контракту
            pydantic.ValidationError: Если нарушены инварианты моделей
        """
        validate_assess_request(data)
        return cls.model_validate(data)


def run_assess_request(
    request: AssessRequest, engine: FeeAssessmentEngine | None = None
) -> TransferOutcome:
    """
    Оценка перевода по запросу.

    Отсутствующий токен превращается в outcome отказа TokenNotFound,
    как и любая другая ошибка оценки.
    """
    engine = engine or FeeAssessmentEngine()
    try:
        token = request.snapshot.get_token(request.intent.token_id)
    except LedgerError as e:
        return TransferOutcome.rejected(request.intent, request.legs, e)
    return engine.assess(token, request.intent, request.legs, request.snapshot)
