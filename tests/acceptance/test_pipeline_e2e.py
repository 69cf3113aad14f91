"""
End-to-end BDD acceptance tests for the dcc-verifier pipeline.

Exercises the full chain: HC1 text → base45 → zlib → COSE_Sign1 → CBOR
claims → typed certificate → key lookup → ECDSA check → verdict.
QR payloads are produced at test time by an ephemeral issuer key.

Each test follows Given/When/Then BDD structure in its docstring.

Markers: @pytest.mark.acceptance
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import pytest
from railway import ErrorCode, Result
from railway.assertions import ResultAssertions

from dcc_verifier.adapters.key_store import InMemoryKeyStore
from dcc_verifier.domain.errors import FieldFormatError
from dcc_verifier.domain.models import EntryKind, ResolvedKey, ValidityVerdict
from dcc_verifier.pipeline import inspect_certificate
from tests.conftest import (
    EVALUATED_AT,
    EXPIRES_AT,
    RECOVERY_HCERT,
    TEST_HCERT,
    VACCINATION_HCERT,
    Signer,
    make_claims,
    make_signer,
)

pytestmark = pytest.mark.acceptance


# ── Fake adapters ─────────────────────────────────────────────────────────────


@dataclass
class RecordingKeyStore:
    """KeyStore that remembers which kids were asked for."""

    keys: dict[bytes, object]
    requested: list[bytes] = field(default_factory=list)

    def lookup(self, kid: bytes) -> Result[ResolvedKey]:
        self.requested.append(kid)
        if kid not in self.keys:
            return Result.failure(ErrorCode.NOT_FOUND, f"no trusted key for kid {kid.hex()}")
        return Result.success(ResolvedKey(kid, self.keys[kid]))

    def list_identifiers(self) -> list[bytes]:
        return sorted(self.keys)


# ── Scenarios ─────────────────────────────────────────────────────────────────


class TestVaccinationCertificate:
    def test_comirnaty_second_dose(self, vaccination_qr: str, key_store: InMemoryKeyStore) -> None:
        """
        GIVEN the Comirnaty two-dose vaccination example, signed by a trusted issuer
        WHEN it is inspected one month after issuance
        THEN the report shows dose 2 of 2 of Comirnaty and the verdict is VALID.
        """
        report = ResultAssertions.assert_success(inspect_certificate(vaccination_qr, key_store, EVALUATED_AT))

        entry = report.certificate.entry
        assert entry.kind is EntryKind.VACCINATION
        assert entry.dose_number == 2
        assert entry.doses_in_series == 2
        assert entry.product_name == "Comirnaty"
        assert report.certificate.health_certificate.display_name == "Gabriele Musterfrau-Gößinger"
        assert report.verified
        assert report.verdict is ValidityVerdict.VALID

    def test_expiry_boundary(self, vaccination_qr: str, key_store: InMemoryKeyStore) -> None:
        """
        GIVEN a certificate expiring at instant E
        WHEN it is inspected just inside and just outside the one-day grace
        THEN the verdict flips from VALID to EXPIRED.
        """
        inside = EXPIRES_AT + timedelta(hours=23, minutes=59)
        outside = EXPIRES_AT + timedelta(days=1, seconds=1)

        assert inspect_certificate(vaccination_qr, key_store, inside).value().verdict is ValidityVerdict.VALID
        assert inspect_certificate(vaccination_qr, key_store, outside).value().verdict is ValidityVerdict.EXPIRED


class TestTestCertificate:
    def test_negative_test(self, negative_test_qr: str, key_store: InMemoryKeyStore) -> None:
        """
        GIVEN a signed negative rapid antigen test
        WHEN it is inspected
        THEN the verdict is VALID and the result reads Negative.
        """
        report = inspect_certificate(negative_test_qr, key_store, EVALUATED_AT).value()
        assert report.certificate.entry.result_text == "Negative"
        assert report.verdict is ValidityVerdict.VALID

    def test_positive_test(self, qr_factory: Callable[..., str], key_store: InMemoryKeyStore) -> None:
        """
        GIVEN a signed test certificate whose result is "Detected"
        WHEN it is inspected
        THEN the verdict is TEST_POSITIVE even though the signature verifies.
        """
        hcert = copy.deepcopy(TEST_HCERT)
        hcert["t"][0]["tr"] = "260373001"

        report = inspect_certificate(qr_factory(hcert), key_store, EVALUATED_AT).value()

        assert report.verified
        assert report.verdict is ValidityVerdict.TEST_POSITIVE


class TestRecoveryCertificate:
    @pytest.mark.parametrize(
        ("evaluated_on", "verdict"),
        [
            (date(2021, 5, 20), ValidityVerdict.RECOVERY_NOT_YET_VALID),
            (date(2021, 5, 21), ValidityVerdict.VALID),
            (date(2021, 11, 6), ValidityVerdict.VALID),
            (date(2021, 11, 7), ValidityVerdict.RECOVERY_EXPIRED),
        ],
    )
    def test_validity_window(
        self,
        recovery_qr: str,
        key_store: InMemoryKeyStore,
        evaluated_on: date,
        verdict: ValidityVerdict,
    ) -> None:
        """
        GIVEN a recovery certificate valid from 2021-05-21 until 2021-11-06
        WHEN it is inspected at noon on various days
        THEN the verdict follows the validity window, both ends inclusive.
        """
        now = datetime(evaluated_on.year, evaluated_on.month, evaluated_on.day, 12, tzinfo=UTC)
        assert inspect_certificate(recovery_qr, key_store, now).value().verdict is verdict


class TestTrust:
    def test_unknown_issuer_is_not_verified(self, qr_factory: Callable[..., str]) -> None:
        """
        GIVEN a well-formed certificate signed by a key the store does not hold
        WHEN it is inspected
        THEN it decodes fully but the verdict is NOT_VERIFIED.
        """
        store = RecordingKeyStore({})
        report = inspect_certificate(qr_factory(VACCINATION_HCERT), store, EVALUATED_AT).value()

        assert report.certificate.entry.product_name == "Comirnaty"
        assert report.verdict is ValidityVerdict.NOT_VERIFIED
        assert store.requested == [bytes.fromhex("d919375fc1e7b6b2")]

    def test_tampered_signature(self, qr_factory: Callable[..., str], key_store: InMemoryKeyStore) -> None:
        """
        GIVEN a certificate whose signature was altered after signing
        WHEN it is inspected with the issuer's key
        THEN the verdict is NOT_VERIFIED.
        """
        report = inspect_certificate(qr_factory(tamper=True), key_store, EVALUATED_AT).value()
        assert report.verdict is ValidityVerdict.NOT_VERIFIED

    def test_certificate_without_kid(self, qr_factory: Callable[..., str], signer: Signer) -> None:
        """
        GIVEN a certificate that names no key identifier
        WHEN it is inspected
        THEN the store is never asked and the verdict is NOT_VERIFIED.
        """
        store = RecordingKeyStore({signer.kid: signer.public_key})

        report = inspect_certificate(qr_factory(kid_in="none"), store, EVALUATED_AT).value()

        assert report.verdict is ValidityVerdict.NOT_VERIFIED
        assert store.requested == []

    def test_several_issuers(self, signer: Signer, qr_factory: Callable[..., str]) -> None:
        """
        GIVEN a store trusting two issuers, and one certificate from each
        WHEN both are inspected
        THEN both verify.
        """
        other = make_signer(kid=b"\x0a\x0b\x0c\x0d\x0e\x0f\x10\x11")
        store = InMemoryKeyStore({signer.kid: signer.public_key, other.kid: other.public_key})

        for qr in (qr_factory(RECOVERY_HCERT, signer=other), qr_factory(TEST_HCERT)):
            assert inspect_certificate(qr, store, EVALUATED_AT).value().verdict is ValidityVerdict.VALID


class TestRejection:
    def test_malformed_field_names_its_path(self, qr_factory: Callable[..., str], key_store: InMemoryKeyStore) -> None:
        """
        GIVEN a signed certificate whose vaccination date is not an ISO date
        WHEN it is inspected
        THEN it is rejected with a FieldFormatError pointing at the field.
        """
        hcert = copy.deepcopy(VACCINATION_HCERT)
        hcert["v"][0]["dt"] = "18/02/2021"

        result = inspect_certificate(qr_factory(hcert), key_store, EVALUATED_AT)

        error = ResultAssertions.assert_failure_kind(result, FieldFormatError)
        assert error.path == "-260.1.v[0].dt"


class TestStatelessness:
    def test_repeated_inspection_is_identical(self, vaccination_qr: str, key_store: InMemoryKeyStore) -> None:
        """
        GIVEN one QR payload
        WHEN it is inspected twice at the same instant
        THEN both reports are equal.
        """
        first = inspect_certificate(vaccination_qr, key_store, EVALUATED_AT)
        second = inspect_certificate(vaccination_qr, key_store, EVALUATED_AT)
        assert first.value() == second.value()

    def test_parallel_inspection(self, qr_factory: Callable[..., str], key_store: InMemoryKeyStore) -> None:
        """
        GIVEN many certificates, each issued on a different day
        WHEN they are inspected concurrently against one shared key store
        THEN every report matches its own certificate.
        """
        issued = [datetime(2021, 6, 1, tzinfo=UTC) + timedelta(days=i) for i in range(16)]
        qrs = [qr_factory(claims=make_claims(issued_at=at)) for at in issued]

        with ThreadPoolExecutor(max_workers=4) as pool:
            reports = list(pool.map(lambda qr: inspect_certificate(qr, key_store, EVALUATED_AT).value(), qrs))

        assert [r.certificate.issued_at for r in reports] == issued
        assert all(r.verdict is ValidityVerdict.VALID for r in reports)
