"""Settlement — оценка переводов токенов с учётом custom fees.

- FeeAssessmentEngine: stateless расчёт движений балансов
- AssessRequest (src.settlement.request): JSON-представление запроса оценки
"""

from .engine import FeeAssessmentEngine, FeeEngineConfig, LedgerView

__all__ = [
    "FeeAssessmentEngine",
    "FeeEngineConfig",
    "LedgerView",
]
