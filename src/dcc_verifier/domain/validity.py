"""
Validity evaluator — business rules turning a certificate into a verdict.

Pure function of (certificate, evaluation instant, signature result).
Rules are applied in order and the first match wins:

  1. now > expires_at + grace               → EXPIRED
  2. test whose result is not negative      → TEST_POSITIVE
  3. recovery, now < start of valid_from    → RECOVERY_NOT_YET_VALID
  4. recovery, now > valid_until + grace    → RECOVERY_EXPIRED
  5. signature not verified                 → NOT_VERIFIED
  6. otherwise                              → VALID

Source dates only carry day precision, so a certificate stays valid
through the end of its listed day (grace defaults to one day).
"""

from __future__ import annotations

from datetime import datetime, timedelta

from dcc_verifier.domain.dates import start_of_day
from dcc_verifier.domain.models import (
    CertificateEnvelope,
    EntryKind,
    RecoveryEntry,
    TestEntry,
    ValidityVerdict,
)

DEFAULT_GRACE = timedelta(days=1)


def evaluate(
    certificate: CertificateEnvelope,
    now: datetime,
    verified: bool,
    grace: timedelta = DEFAULT_GRACE,
) -> ValidityVerdict:
    """Apply the validity rules; `now` must be timezone-aware."""
    if now > certificate.expires_at + grace:
        return ValidityVerdict.EXPIRED

    entry = certificate.entry
    match entry.kind:
        case EntryKind.TEST:
            verdict = _test_verdict(entry)
        case EntryKind.RECOVERY:
            verdict = _recovery_verdict(entry, now, grace)
        case _:
            verdict = None
    if verdict is not None:
        return verdict

    if not verified:
        return ValidityVerdict.NOT_VERIFIED
    return ValidityVerdict.VALID


def _test_verdict(entry: TestEntry) -> ValidityVerdict | None:
    return None if entry.is_negative else ValidityVerdict.TEST_POSITIVE


def _recovery_verdict(
    entry: RecoveryEntry,
    now: datetime,
    grace: timedelta,
) -> ValidityVerdict | None:
    if now < start_of_day(entry.valid_from.value):
        return ValidityVerdict.RECOVERY_NOT_YET_VALID
    if now > start_of_day(entry.valid_until.value) + grace:
        return ValidityVerdict.RECOVERY_EXPIRED
    return None
