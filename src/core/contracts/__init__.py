"""
Contract Validation Module

Валидация JSON контрактов запроса оценки перевода и его результата.
"""

from .validators import (
    AssessRequestValidator,
    ContractValidator,
    SchemaLoader,
    TransferOutcomeValidator,
    assess_request_validator,
    transfer_outcome_validator,
    validate_assess_request,
    validate_transfer_outcome,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "AssessRequestValidator",
    "TransferOutcomeValidator",
    # Functions
    "assess_request_validator",
    "transfer_outcome_validator",
    "validate_assess_request",
    "validate_transfer_outcome",
]
