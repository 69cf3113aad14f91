"""
Pipeline — the decode / verify / evaluate chain for one scanned certificate.

Pure orchestration: every stage is an adapter or domain function returning
Result[T], joined with flat_map so the first failure short-circuits:

  strip_scheme_prefix(raw_text)
    → decode_text(base45)
      → inflate(zlib)
        → parse_envelope(COSE_Sign1)
          → decode_document(envelope.payload)
            → build_certificate(root, envelope)

Verification is a separate, total step: key resolution and the signature
check only ever degrade the verdict, they never abort the pipeline.
Nothing here holds state, so independent certificates can be processed
in parallel by the caller.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import structlog
from railway import ErrorCode
from railway.result import Result

from dcc_verifier.adapters.base45_codec import SCHEME_PREFIX, decode_text, strip_scheme_prefix
from dcc_verifier.adapters.cbor_document import decode_document
from dcc_verifier.adapters.cose_envelope import parse_envelope, verify_signature
from dcc_verifier.adapters.inflate import inflate
from dcc_verifier.domain import validity
from dcc_verifier.domain.builder import build_certificate
from dcc_verifier.domain.models import (
    CertificateEnvelope,
    SignedEnvelope,
    ValidityVerdict,
    VerificationReport,
)
from dcc_verifier.domain.ports import KeyStore
from dcc_verifier.domain.validity import DEFAULT_GRACE
from dcc_verifier.key_resolver import resolve_key

log = structlog.get_logger()


def _build_from_envelope(envelope: SignedEnvelope) -> Result[CertificateEnvelope]:
    return decode_document(envelope.payload).flat_map(
        lambda root: build_certificate(root, envelope)
    )


def decode_and_build(
    raw_text: str,
    scheme_prefix: str = SCHEME_PREFIX,
) -> Result[CertificateEnvelope]:
    """
    Turn scanned QR text into a typed certificate.

    Returns the failure of the first stage that rejects the input; its
    FailureDescription.exception tells which kind of problem it was.
    """
    return (
        strip_scheme_prefix(raw_text, scheme_prefix)
        .flat_map(decode_text)
        .flat_map(inflate)
        .flat_map(parse_envelope)
        .flat_map(_build_from_envelope)
        .peek(
            lambda certificate: log.info(
                "pipeline.decoded",
                kind=certificate.entry.kind.name.lower(),
                issuer=certificate.issuer,
                kid=certificate.kid.hex() if certificate.kid else None,
            )
        )
    )


def verify(certificate: CertificateEnvelope, key_store: KeyStore) -> bool:
    """
    Check the certificate signature against the key store.

    Never raises. No kid, an unknown kid, an unsupported algorithm or a
    misbehaving store all yield False.
    """
    envelope = certificate.signed_envelope
    return (
        Result.from_computation(
            lambda: resolve_key(envelope.kid, key_store),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "key store lookup failed",
        )
        .flat_map(lambda resolved: resolved)
        .flat_map(lambda key: verify_signature(envelope, key))
        .peek_failure(
            lambda failure: log.info(
                "signature.unverified",
                code=failure.code.value,
                reason=failure.message,
            )
        )
        .get_or_else(False)
    )


def evaluate(
    certificate: CertificateEnvelope,
    now: datetime,
    verified: bool,
    grace: timedelta = DEFAULT_GRACE,
) -> ValidityVerdict:
    """Apply the validity rules at instant `now` (naive values are read as UTC)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return validity.evaluate(certificate, now, verified, grace)


def inspect_certificate(
    raw_text: str,
    key_store: KeyStore | None,
    now: datetime | None = None,
    scheme_prefix: str = SCHEME_PREFIX,
    grace: timedelta = DEFAULT_GRACE,
) -> Result[VerificationReport]:
    """
    Run the whole chain and package the outcome as a VerificationReport.

    Without a key store the signature cannot be checked, so the verdict
    can be at best NOT_VERIFIED.
    """
    evaluated_at = now or datetime.now(UTC)
    if evaluated_at.tzinfo is None:
        evaluated_at = evaluated_at.replace(tzinfo=UTC)

    def _report(certificate: CertificateEnvelope) -> VerificationReport:
        if key_store is None:
            log.warning("signature.no_key_store")
            verified = False
        else:
            verified = verify(certificate, key_store)
        verdict = evaluate(certificate, evaluated_at, verified, grace)
        log.info("pipeline.evaluated", verdict=verdict.value, verified=verified)
        return VerificationReport(
            certificate=certificate,
            verified=verified,
            verdict=verdict,
            evaluated_at=evaluated_at,
        )

    return decode_and_build(raw_text, scheme_prefix).map(_report)
