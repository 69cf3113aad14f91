"""
Domain errors — the failure kinds of the decode/verify pipeline.

Stage internals raise these; the stage boundary converts them into
Result failures via `capture()`, keeping the exception on the
FailureDescription so callers can tell the kinds apart:

    result = decode_and_build(raw_text)
    if result.is_failure() and isinstance(result.error().exception, FieldFormatError):
        ...

Decode-stage kinds abort the pipeline for that certificate.
UnsupportedAlgorithmError only ever degrades the validity verdict.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

import structlog
from railway import ErrorCode
from railway.result import Result

T = TypeVar("T")

log = structlog.get_logger()


class CertificateError(Exception):
    """Base class for every failure raised while handling a certificate."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR


class DecodeError(CertificateError):
    """Scheme prefix missing or base45 alphabet / group violation."""


class DecompressionError(CertificateError):
    """Corrupt or truncated deflate stream."""


class EnvelopeFormatError(CertificateError):
    """Bytes are not a recognizable single-signer COSE envelope."""


class DocumentFormatError(CertificateError):
    """Structural corruption in the CBOR claims document."""


class FieldFormatError(CertificateError):
    """A required field is missing, mistyped or malformed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class InvalidCertificateType(CertificateError):
    """None of the v / t / r entry groups is present."""


class UnsupportedAlgorithmError(CertificateError):
    """Signature algorithm unknown, or key type does not fit the algorithm."""


def capture(computation: Callable[[], T], stage: str) -> Result[T]:
    """
    Run a stage computation and fold raised errors into a Result.

    CertificateError subclasses keep their own code and message.
    Anything else is unexpected and becomes a TECHNICAL_ERROR failure,
    the same way Result.from_computation treats adapter exceptions.
    """
    try:
        return Result.success(computation())
    except CertificateError as e:
        log.info("stage.rejected", stage=stage, kind=type(e).__name__, reason=str(e))
        return Result.failure(e.code, f"{stage}: {e}", e)
    except Exception as e:
        log.error("stage.crashed", stage=stage, error=str(e))
        return Result.failure(ErrorCode.TECHNICAL_ERROR, f"{stage}: unexpected error", e)
