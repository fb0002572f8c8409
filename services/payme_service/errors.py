"""Payme merchant API errors and their wire codes."""
from enum import IntEnum
from typing import Any, Dict, Optional


class PaymeErrorCode(IntEnum):
    """Error codes defined by the Payme merchant API."""

    # JSON-RPC level
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INSUFFICIENT_PRIVILEGE = -32504
    SYSTEM_ERROR = -32400

    # Business level
    INVALID_AMOUNT = -31001
    TRANSACTION_NOT_FOUND = -31003
    COULD_NOT_PERFORM = -31008
    INVALID_ACCOUNT = -31050  # -31050..-31099 is reserved for account errors


class PaymeError(Exception):
    """Base class for every error returned to Payme as an RPC error body."""

    code: PaymeErrorCode = PaymeErrorCode.SYSTEM_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, data: Optional[str] = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class ParseError(PaymeError):
    code = PaymeErrorCode.PARSE_ERROR
    default_message = "Could not parse request body as JSON"


class InvalidRequestError(PaymeError):
    code = PaymeErrorCode.INVALID_REQUEST
    default_message = "Required request fields are missing or malformed"


class MethodNotFoundError(PaymeError):
    code = PaymeErrorCode.METHOD_NOT_FOUND
    default_message = "Method not found"


class InsufficientPrivilegeError(PaymeError):
    code = PaymeErrorCode.INSUFFICIENT_PRIVILEGE
    default_message = "Insufficient privilege to perform this method"


class InternalError(PaymeError):
    code = PaymeErrorCode.SYSTEM_ERROR
    default_message = "Internal server error"


class InvalidAmountError(PaymeError):
    code = PaymeErrorCode.INVALID_AMOUNT
    default_message = "Invalid amount"


class TransactionNotFoundError(PaymeError):
    code = PaymeErrorCode.TRANSACTION_NOT_FOUND
    default_message = "Transaction not found"


class CouldNotPerformError(PaymeError):
    code = PaymeErrorCode.COULD_NOT_PERFORM
    default_message = "Could not perform transaction"


class InvalidAccountError(PaymeError):
    code = PaymeErrorCode.INVALID_ACCOUNT
    default_message = "Order not found"
