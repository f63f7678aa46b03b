"""
Errors — коды ответов и исключения ledger-домена

Каждая ошибка несёт ResponseCode, который без изменений отдаётся вызывающей
стороне (TransferOutcome.status, CLI, отчёты сценариев).

Правило распространения: любая ошибка прерывает операцию целиком,
частичных изменений балансов не бывает.
"""

from enum import Enum


# =============================================================================
# RESPONSE CODES
# =============================================================================


class ResponseCode(str, Enum):
    """Код результата операции над ledger."""

    SUCCESS = "SUCCESS"
    NOT_ASSOCIATED = "NotAssociated"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    INSUFFICIENT_BALANCE_FOR_CUSTOM_FEE = "InsufficientBalanceForCustomFee"
    TOKEN_NOT_FOUND = "TokenNotFound"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    TOKEN_WAS_DELETED = "TokenWasDeleted"
    INVALID_TRANSFER = "InvalidTransfer"
    INVALID_CUSTOM_FEE = "InvalidCustomFee"
    MAX_SUPPLY_REACHED = "MaxSupplyReached"
    UNAUTHORIZED = "Unauthorized"
    TOKEN_ALREADY_ASSOCIATED = "TokenAlreadyAssociated"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class LedgerError(Exception):
    """
    Базовая ошибка ledger-домена.

    Attributes:
        code: ResponseCode, соответствующий ошибке
        message: человекочитаемое описание
    """

    code: ResponseCode = ResponseCode.INVALID_TRANSFER

    def __init__(self, message: str = ""):
        self.message = message or self.code.value
        super().__init__(self.message)


class NotAssociated(LedgerError):
    """Аккаунт не ассоциирован с токеном и свободных auto-association слотов нет."""

    code = ResponseCode.NOT_ASSOCIATED


class InsufficientBalance(LedgerError):
    """Отправитель не владеет serial / не имеет нужного количества."""

    code = ResponseCode.INSUFFICIENT_BALANCE


class InsufficientBalanceForCustomFee(LedgerError):
    """Плательщику custom fee не хватает средств в активе комиссии."""

    code = ResponseCode.INSUFFICIENT_BALANCE_FOR_CUSTOM_FEE


class TokenNotFound(LedgerError):
    code = ResponseCode.TOKEN_NOT_FOUND


class AccountNotFound(LedgerError):
    code = ResponseCode.ACCOUNT_NOT_FOUND


class TokenWasDeleted(LedgerError):
    """Токен (переводимый или номинирующий комиссию) удалён."""

    code = ResponseCode.TOKEN_WAS_DELETED


class InvalidTransfer(LedgerError):
    """Перевод не согласован с определением токена."""

    code = ResponseCode.INVALID_TRANSFER


class InvalidCustomFee(LedgerError):
    """Fee schedule нарушает ограничения (доля > 1, royalty на fungible и т.п.)."""

    code = ResponseCode.INVALID_CUSTOM_FEE


class MaxSupplyReached(LedgerError):
    code = ResponseCode.MAX_SUPPLY_REACHED


class Unauthorized(LedgerError):
    """Нужный ключ не задан у токена или не предъявлен."""

    code = ResponseCode.UNAUTHORIZED


class TokenAlreadyAssociated(LedgerError):
    code = ResponseCode.TOKEN_ALREADY_ASSOCIATED


_ERRORS_BY_CODE: dict[ResponseCode, type[LedgerError]] = {
    cls.code: cls
    for cls in (
        NotAssociated,
        InsufficientBalance,
        InsufficientBalanceForCustomFee,
        TokenNotFound,
        AccountNotFound,
        TokenWasDeleted,
        InvalidTransfer,
        InvalidCustomFee,
        MaxSupplyReached,
        Unauthorized,
        TokenAlreadyAssociated,
    )
}


def error_for_code(code: ResponseCode, message: str = "") -> LedgerError:
    """
    Восстановление исключения по коду ответа.

    Args:
        code: код ответа (не SUCCESS)
        message: описание ошибки

    Returns:
        Экземпляр соответствующего подкласса LedgerError

    Raises:
        ValueError: Если code == SUCCESS
    """
    if code == ResponseCode.SUCCESS:
        raise ValueError("SUCCESS has no associated error")
    return _ERRORS_BY_CODE[code](message)
