"""Error types and MCP error serialization."""
from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCode(IntEnum):
    # JSON-RPC 2.0
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Application specific
    AUTHENTICATION_FAILED = 1001
    RATE_LIMIT_EXCEEDED = 1002
    RESOURCE_NOT_FOUND = 1003
    INVALID_CONFIG = 1004
    CONNECTION_FAILED = 1005


class SalesforceMCPError(Exception):
    """Base error carrying an error code, optional details and a cause."""

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.details = details
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class ToolError(SalesforceMCPError):
    """Raised by a tool when it cannot produce a result."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        tool_name: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, code, details, cause)
        self.tool_name = tool_name


class ConfigError(SalesforceMCPError):
    default_code = ErrorCode.INVALID_CONFIG


class AuthenticationError(SalesforceMCPError):
    default_code = ErrorCode.AUTHENTICATION_FAILED


class ValidationError(SalesforceMCPError):
    default_code = ErrorCode.INVALID_PARAMS


def to_mcp_error(error: BaseException) -> Dict[str, Any]:
    """Serialize an exception into the JSON-RPC error shape."""
    if isinstance(error, SalesforceMCPError):
        data: Dict[str, Any] = {"type": type(error).__name__}
        if isinstance(error, ToolError):
            data["toolName"] = error.tool_name
        if error.details:
            data["details"] = error.details
        if error.cause is not None:
            data["cause"] = str(error.cause)
        return {"code": int(error.code), "message": error.message, "data": data}

    return {
        "code": int(ErrorCode.INTERNAL_ERROR),
        "message": str(error),
        "data": {"type": type(error).__name__},
    }


def is_retriable_error(error: BaseException) -> bool:
    """Whether the failure is temporary and the call may succeed on retry."""
    if isinstance(error, SalesforceMCPError):
        return error.code in (
            ErrorCode.RATE_LIMIT_EXCEEDED,
            ErrorCode.CONNECTION_FAILED,
            ErrorCode.INTERNAL_ERROR,
        )
    return False


def error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__
