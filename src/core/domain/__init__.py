"""
Domain models and value objects.

Contains fundamental ledger entities: Account, TokenDefinition, CustomFee,
TransferIntent, TransferOutcome and the error hierarchy.
"""

from src.core.domain.account import Account
from src.core.domain.errors import (
    AccountNotFound,
    InsufficientBalance,
    InsufficientBalanceForCustomFee,
    InvalidCustomFee,
    InvalidTransfer,
    LedgerError,
    MaxSupplyReached,
    NotAssociated,
    ResponseCode,
    TokenAlreadyAssociated,
    TokenNotFound,
    TokenWasDeleted,
    Unauthorized,
    error_for_code,
)
from src.core.domain.fees import (
    MAX_CUSTOM_FEES,
    CustomFee,
    FixedFee,
    RoyaltyFee,
    build_fee_schedule,
    fee_collectors,
)
from src.core.domain.token import SupplyType, TokenDefinition, TokenKeys, TokenType
from src.core.domain.transfer import (
    AutoAssociation,
    BalanceDelta,
    ConsiderationLeg,
    DeltaKind,
    TransferIntent,
    TransferOutcome,
)
from src.core.domain.units import (
    ENTITY_ID_PATTERN,
    NATIVE_ASSET_LABEL,
    TINYBARS_PER_HBAR,
    EntityId,
    asset_label,
    format_entity_id,
    format_hbar,
    hbar_to_tinybar,
    is_entity_id,
    parse_entity_id,
    tinybar_to_hbar,
)

__all__ = [
    # Units module
    "TINYBARS_PER_HBAR",
    "NATIVE_ASSET_LABEL",
    "ENTITY_ID_PATTERN",
    "EntityId",
    "hbar_to_tinybar",
    "tinybar_to_hbar",
    "format_hbar",
    "is_entity_id",
    "parse_entity_id",
    "format_entity_id",
    "asset_label",
    # Errors
    "ResponseCode",
    "LedgerError",
    "NotAssociated",
    "InsufficientBalance",
    "InsufficientBalanceForCustomFee",
    "TokenNotFound",
    "AccountNotFound",
    "TokenWasDeleted",
    "InvalidTransfer",
    "InvalidCustomFee",
    "MaxSupplyReached",
    "Unauthorized",
    "TokenAlreadyAssociated",
    "error_for_code",
    # Fees
    "MAX_CUSTOM_FEES",
    "CustomFee",
    "FixedFee",
    "RoyaltyFee",
    "build_fee_schedule",
    "fee_collectors",
    # Token model
    "TokenDefinition",
    "TokenKeys",
    "TokenType",
    "SupplyType",
    # Account model
    "Account",
    # Transfer models
    "ConsiderationLeg",
    "TransferIntent",
    "DeltaKind",
    "BalanceDelta",
    "AutoAssociation",
    "TransferOutcome",
]
