"""
Shared test fixtures and helpers for the dcc-verifier test suite.

Certificates are generated at test time instead of being checked in:
an ephemeral P-256 signer, cbor2-encoded CWT claims, a COSE_Sign1
envelope signed with cryptography, zlib, base45 and the HC1: prefix.
The default hcert document is the Comirnaty two-dose vaccination
example from the EU DCC test data.
"""

from __future__ import annotations

import base64
import copy
import json
import os
import zlib
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import base45
import cbor2
import pytest
import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from dcc_verifier.adapters.key_store import InMemoryKeyStore
from dcc_verifier.domain.models import (
    CertificateEntry,
    CertificateEnvelope,
    HealthCertificate,
    PartialDate,
    RecoveryEntry,
    SignedEnvelope,
    TestEntry,
    VaccinationEntry,
)

ISSUED_AT = datetime(2021, 6, 1, tzinfo=UTC)
EXPIRES_AT = datetime(2022, 6, 1, tzinfo=UTC)
EVALUATED_AT = datetime(2021, 7, 1, 12, 0, tzinfo=UTC)

SIGNER_KID = bytes.fromhex("d919375fc1e7b6b2")

_HASHES = {-7: hashes.SHA256, -35: hashes.SHA384, -36: hashes.SHA512}
_COORDINATE_SIZES = {-7: 32, -35: 48, -36: 66}

VACCINATION_HCERT: dict[str, Any] = {
    "ver": "1.3.0",
    "nam": {
        "fn": "Musterfrau-Gößinger",
        "gn": "Gabriele",
        "fnt": "MUSTERFRAU<GOESSINGER",
        "gnt": "GABRIELE",
    },
    "dob": "1998-02-26",
    "v": [
        {
            "tg": "840539006",
            "vp": "1119349007",
            "mp": "EU/1/20/1528",
            "ma": "ORG-100030215",
            "dn": 2,
            "sd": 2,
            "dt": "2021-02-18",
            "co": "AT",
            "is": "Ministry of Health, Austria",
            "ci": "URN:UVCI:01:AT:10807843F94AEE0EE5093FBC254BD813#B",
        }
    ],
}

TEST_HCERT: dict[str, Any] = {
    "ver": "1.3.0",
    "nam": {"fn": "Musterfrau", "gn": "Erika", "fnt": "MUSTERFRAU", "gnt": "ERIKA"},
    "dob": "1964-08",
    "t": [
        {
            "tg": "840539006",
            "tt": "LP217198-3",
            "nm": "Panbio COVID-19 Ag Rapid Test",
            "ma": "1232",
            "sc": "2021-06-30T08:15:00Z",
            "tr": "260415000",
            "tc": "Testzentrum Wien",
            "co": "AT",
            "is": "Ministry of Health, Austria",
            "ci": "URN:UVCI:01:AT:71EE2559DE38C6BF7304FB65A1A451EC#3",
        }
    ],
}

RECOVERY_HCERT: dict[str, Any] = {
    "ver": "1.3.0",
    "nam": {"fn": "Mustermann", "gn": "Max", "fnt": "MUSTERMANN", "gnt": "MAX"},
    "dob": "1975",
    "r": [
        {
            "tg": "840539006",
            "fr": "2021-05-10",
            "df": "2021-05-21",
            "du": "2021-11-06",
            "co": "AT",
            "is": "Ministry of Health, Austria",
            "ci": "URN:UVCI:01:AT:858CC18CFCF5965EF82F60E493349AA5#K",
        }
    ],
}


@dataclass(frozen=True)
class Signer:
    """An issuer key pair plus the kid it is published under."""

    kid: bytes
    private_key: ec.EllipticCurvePrivateKey
    algorithm: int = -7

    @property
    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self.private_key.public_key()

    def sign(self, data: bytes) -> bytes:
        """Raw r || s signature, as COSE carries it."""
        der = self.private_key.sign(data, ec.ECDSA(_HASHES[self.algorithm]()))
        r, s = decode_dss_signature(der)
        size = _COORDINATE_SIZES[self.algorithm]
        return r.to_bytes(size, "big") + s.to_bytes(size, "big")


def spki_der(signer: Signer) -> bytes:
    return signer.public_key.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)


def key_file_json(*signers: Signer) -> str:
    """Key file document trusting `signers`."""
    return json.dumps(
        [
            {
                "kid": base64.b64encode(s.kid).decode("ascii"),
                "publicKey": base64.b64encode(spki_der(s)).decode("ascii"),
            }
            for s in signers
        ]
    )


def make_signer(
    kid: bytes = SIGNER_KID,
    curve: ec.EllipticCurve | None = None,
    algorithm: int = -7,
) -> Signer:
    return Signer(kid, ec.generate_private_key(curve or ec.SECP256R1()), algorithm)


def make_claims(
    hcert: dict[str, Any] | None = None,
    issuer: str = "AT",
    issued_at: datetime = ISSUED_AT,
    expires_at: datetime = EXPIRES_AT,
) -> dict[Any, Any]:
    """CWT claims map: 1 issuer, 6 issued-at, 4 expiry, -260 → 1 hcert."""
    return {
        1: issuer,
        6: int(issued_at.timestamp()),
        4: int(expires_at.timestamp()),
        -260: {1: copy.deepcopy(hcert if hcert is not None else VACCINATION_HCERT)},
    }


def make_cose(
    payload: bytes,
    signer: Signer,
    *,
    kid_in: str = "protected",
    tagged: bool = True,
    tamper: bool = False,
) -> bytes:
    """
    COSE_Sign1 over `payload`.

    kid_in: "protected", "unprotected" or "none".
    tamper: flip one signature bit after signing.
    """
    protected_header: dict[int, Any] = {1: signer.algorithm}
    unprotected_header: dict[int, Any] = {}
    if kid_in == "protected":
        protected_header[4] = signer.kid
    elif kid_in == "unprotected":
        unprotected_header[4] = signer.kid
    protected = cbor2.dumps(protected_header)

    signature = signer.sign(cbor2.dumps(["Signature1", protected, b"", payload]))
    if tamper:
        signature = bytes([signature[0] ^ 0x01]) + signature[1:]

    message = [protected, unprotected_header, payload, signature]
    return cbor2.dumps(cbor2.CBORTag(18, message) if tagged else message)


def to_qr(cose: bytes, prefix: str = "HC1:") -> str:
    return prefix + base45.b45encode(zlib.compress(cose, 9)).decode("ascii")


def make_qr(
    signer: Signer,
    hcert: dict[str, Any] | None = None,
    *,
    claims: dict[Any, Any] | None = None,
    **cose_options: Any,
) -> str:
    payload = cbor2.dumps(claims if claims is not None else make_claims(hcert))
    return to_qr(make_cose(payload, signer, **cose_options))


# ─────────────────────── Fixtures ───────────────────────


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep DCC_* variables of the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("DCC_"):
            monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Drop logging configuration made by a CLI or ASGI test; it writes to that test's stderr."""
    yield
    structlog.reset_defaults()


@pytest.fixture(scope="session")
def signer() -> Signer:
    """The trusted P-256 issuer key, shared by the whole session."""
    return make_signer()


@pytest.fixture()
def key_store(signer: Signer) -> InMemoryKeyStore:
    """Key store trusting exactly `signer`."""
    return InMemoryKeyStore({signer.kid: signer.public_key})


@pytest.fixture()
def key_file(tmp_path: Path, signer: Signer) -> Path:
    """Key file on disk trusting exactly `signer`."""
    path = tmp_path / "keys.json"
    path.write_text(key_file_json(signer), encoding="utf-8")
    return path


@pytest.fixture()
def qr_factory(signer: Signer) -> Callable[..., str]:
    """make_qr bound to the trusted signer (pass signer=... to override)."""

    def factory(hcert: dict[str, Any] | None = None, **options: Any) -> str:
        return make_qr(options.pop("signer", signer), hcert, **options)

    return factory


@pytest.fixture()
def vaccination_qr(qr_factory: Callable[..., str]) -> str:
    return qr_factory(VACCINATION_HCERT)


@pytest.fixture()
def negative_test_qr(qr_factory: Callable[..., str]) -> str:
    return qr_factory(TEST_HCERT)


@pytest.fixture()
def recovery_qr(qr_factory: Callable[..., str]) -> str:
    return qr_factory(RECOVERY_HCERT)


# ─────────────────────── Model-level builders ───────────────────────

_COMMON_ENTRY_FIELDS = {
    "disease_code": "840539006",
    "country_code": "AT",
    "issuer": "Ministry of Health, Austria",
    "uid": "URN:UVCI:01:AT:TEST",
}


def vaccination_entry(**changes: Any) -> VaccinationEntry:
    entry = VaccinationEntry(
        **_COMMON_ENTRY_FIELDS,
        prophylaxis_code="1119349007",
        product_code="EU/1/20/1528",
        manufacturer_code="ORG-100030215",
        dose_number=2,
        doses_in_series=2,
        vaccinated_on=PartialDate(date(2021, 2, 18)),
    )
    return replace(entry, **changes)


def lab_test_entry(result_code: str = "260415000") -> TestEntry:
    return TestEntry(
        **_COMMON_ENTRY_FIELDS,
        test_type="LP6464-4",
        device_id="1232",
        collected_at=datetime(2021, 6, 30, 8, 15, tzinfo=UTC),
        result_code=result_code,
        facility="Testzentrum Wien",
    )


def recovery_entry(
    valid_from: date = date(2021, 5, 21),
    valid_until: date = date(2021, 11, 6),
) -> RecoveryEntry:
    return RecoveryEntry(
        **_COMMON_ENTRY_FIELDS,
        first_positive_on=PartialDate(date(2021, 5, 10)),
        valid_from=PartialDate(valid_from),
        valid_until=PartialDate(valid_until),
    )


def certificate_of(entry: CertificateEntry, expires_at: datetime = EXPIRES_AT) -> CertificateEnvelope:
    """A decoded certificate around `entry`, without going through the codec."""
    return CertificateEnvelope(
        issuer="AT",
        issued_at=ISSUED_AT,
        expires_at=expires_at,
        health_certificate=HealthCertificate(
            version="1.3.0",
            given_name="Gabriele",
            family_name="Musterfrau",
            given_name_std="GABRIELE",
            family_name_std="MUSTERFRAU",
            date_of_birth=PartialDate(date(1998, 2, 26)),
            entry=entry,
        ),
        signed_envelope=SignedEnvelope(b"", b"", b"", -7, b"\x01"),
    )
