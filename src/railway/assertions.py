"""
Test assertions for Result values.

Expressive assert methods that produce clear failure messages.

Usage in tests:
    from railway import ResultAssertions

    def test_decodes():
        certificate = ResultAssertions.assert_success(decode_and_build(qr))
        assert certificate.issuer == "AT"

    def test_rejects_missing_prefix():
        result = decode_and_build("NCFOXN%TS3DH3ZSUZK+.V0ETD%65NL-AH")
        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_kind(result, DecodeError)
"""

from __future__ import annotations

from typing import TypeVar

from railway.failure import ErrorCode, FailureDescription
from railway.result import Result

T = TypeVar("T")


class ResultAssertions:
    """Expressive test assertions for Result values."""

    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        """
        Assert the Result is a Success and return the value.

            value = ResultAssertions.assert_success(result)
        """
        context = f" — {message}" if message else ""
        assert result.is_success(), (
            f"Expected Success but got Failure("
            f"{result.error().code.value}: {result.error().message!r}){context}"
        )
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        message: str = "",
    ) -> FailureDescription:
        """
        Assert the Result is a Failure, optionally checking the error code.

            error = ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        """
        context = f" — {message}" if message else ""
        assert result.is_failure(), (
            f"Expected Failure but got Success({result.value()!r}){context}"
        )
        error = result.error()
        if expected_code is not None:
            assert error.code == expected_code, (
                f"Expected error code {expected_code.value} "
                f"but got {error.code.value}: {error.message!r}{context}"
            )
        return error

    @staticmethod
    def assert_failure_kind(
        result: Result[T],
        expected_type: type[BaseException],
    ) -> BaseException:
        """Assert the Result is a Failure carrying an exception of the given type."""
        error = ResultAssertions.assert_failure(result)
        assert isinstance(error.exception, expected_type), (
            f"Expected failure caused by {expected_type.__name__} "
            f"but got {type(error.exception).__name__}: {error.message!r}"
        )
        return error.exception

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        """Assert that the failure message contains the given substring."""
        assert result.is_failure(), (
            f"Expected Failure but got Success({result.value()!r})"
        )
        error = result.error()
        assert substring.lower() in error.message.lower(), (
            f"Expected failure message to contain {substring!r} "
            f"but message was: {error.message!r}"
        )
