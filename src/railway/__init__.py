"""
Railway-Oriented Programming (ROP) Framework for Python.

Explicit, composable, functional error handling — no exceptions in business logic.

    from railway import Result, ErrorCode

    def require_prefix(text: str) -> Result[str]:
        if not text.startswith("HC1:"):
            return Result.failure(ErrorCode.VALIDATION_ERROR, "missing scheme prefix")
        return Result.success(text[4:])

    result = (
        Result.success("HC1:NCFOXN%TS3DH3ZSUZK+.V0ETD%65NL-AH")
        .flat_map(require_prefix)
        .map(len)
    )
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.execution import (
    ExecutionContext,
    NoOpExecutionContext,
    LoggingExecutionContext,
)
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]

__version__ = "1.0.0"
