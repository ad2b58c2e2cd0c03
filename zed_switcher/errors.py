"""
Error handling for zed-switcher.

Every failure of an external command is classified into one of the kinds
below before it leaves the command queue or the workspace cache. The IPC
server turns them into structured JSON-RPC error responses.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(Enum):
    """
    Error codes for zed-switcher.

    JSON-RPC standard codes:
    - -32700: Parse error
    - -32600: Invalid request
    - -32601: Method not found
    - -32602: Invalid params
    - -32603: Internal error

    Custom codes (1000-1999):
    - 1000-1099: External command errors
    - 1100-1199: Workspace data errors
    - 1200-1299: File system errors
    """

    # JSON-RPC standard errors
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # External command errors (1000-1099)
    COMMAND_TIMEOUT = 1000
    COMMAND_FAILED = 1001
    APP_NOT_RUNNING = 1002

    # Workspace data errors (1100-1199)
    PARSE_FAILURE = 1100

    # File system errors (1200-1299)
    FILE_WRITE_ERROR = 1200


class SwitcherError(Exception):
    """Base exception for zed-switcher errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize switcher error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for JSON-RPC response.

        Returns:
            Error dictionary with code, message, suggestion, and context
        """
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class CommandTimeoutError(SwitcherError):
    """External command exceeded its time budget and was killed."""

    def __init__(self, label: str, timeout: float):
        super().__init__(
            code=ErrorCode.COMMAND_TIMEOUT,
            message=f"{label} timed out after {timeout}s",
            suggestion="Check that the automation target is responsive",
            context={"command": label, "timeout": timeout}
        )


class ExternalFailureError(SwitcherError):
    """External command could not be spawned or exited with nonzero status."""

    def __init__(self, label: str, reason: str, returncode: Optional[int] = None):
        """
        Initialize external failure.

        Args:
            label: Short name of the command (e.g. "list-windows")
            reason: Captured stderr or spawn error text
            returncode: Exit status, None when the process never started
        """
        super().__init__(
            code=ErrorCode.COMMAND_FAILED,
            message=f"{label} failed: {reason}",
            context={"command": label, "returncode": returncode, "stderr": reason}
        )
        self.returncode = returncode
        self.stderr = reason


class NotRunningError(SwitcherError):
    """Target application is not running. Callers treat this as an empty result."""

    def __init__(self, app_name: str):
        super().__init__(
            code=ErrorCode.APP_NOT_RUNNING,
            message=f"{app_name} is not running",
            context={"app": app_name}
        )


class ParseFailureError(SwitcherError):
    """External output could not be interpreted."""

    def __init__(self, source: str, reason: str):
        super().__init__(
            code=ErrorCode.PARSE_FAILURE,
            message=f"Failed to parse {source}: {reason}",
            context={"source": source, "reason": reason}
        )


def error_response(error: Exception, request_id: Optional[Any] = None) -> Dict[str, Any]:
    """
    Create JSON-RPC error response from exception.

    Args:
        error: Exception to convert
        request_id: JSON-RPC request ID

    Returns:
        JSON-RPC error response dictionary
    """
    if isinstance(error, SwitcherError):
        error_dict = error.to_dict()
    else:
        error_dict = {
            "code": ErrorCode.INTERNAL_ERROR.value,
            "message": str(error),
            "suggestion": "Check daemon logs for details"
        }

    return {
        "jsonrpc": "2.0",
        "error": error_dict,
        "id": request_id
    }


def validate_params(params: Dict[str, Any], required: list, optional: Optional[list] = None) -> None:
    """
    Validate request parameters.

    Args:
        params: Request parameters dictionary
        required: List of required parameter names
        optional: List of optional parameter names

    Raises:
        SwitcherError: If required parameters are missing or unknown parameters provided
    """
    missing = [key for key in required if key not in params]
    if missing:
        raise SwitcherError(
            code=ErrorCode.INVALID_PARAMS,
            message=f"Missing required parameters: {', '.join(missing)}",
            suggestion=f"Provide required parameters: {', '.join(missing)}",
            context={"missing": missing, "required": required}
        )

    if optional is not None:
        allowed = set(required + optional)
        unknown = [key for key in params.keys() if key not in allowed]
        if unknown:
            raise SwitcherError(
                code=ErrorCode.INVALID_PARAMS,
                message=f"Unknown parameters: {', '.join(unknown)}",
                suggestion="Remove unknown parameters or check API documentation",
                context={"unknown": unknown, "allowed": sorted(allowed)}
            )
