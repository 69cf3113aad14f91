"""
Domain models — immutable value objects for a decoded health certificate.

Created fresh for every decode; nothing here is shared or mutated.
The certificate entry is a tagged union over three variants. Code that
needs to branch does so on `entry.kind`, never on the concrete class.

    CertificateEnvelope            CWT claims 1 / 6 / 4 + the signed envelope
      └── HealthCertificate        claim -260 → 1
            └── CertificateEntry   VaccinationEntry | TestEntry | RecoveryEntry
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, unique
from typing import Any, ClassVar

from dcc_verifier.domain import valuesets


@unique
class DatePrecision(Enum):
    """How much of a partial ISO date was present in the source text."""

    YEAR = "YEAR"
    MONTH = "MONTH"
    DAY = "DAY"


@dataclass(frozen=True, slots=True)
class PartialDate:
    """
    A calendar date that may have been written as YYYY or YYYY-MM.

    Missing month/day are normalized to January / the 1st; `precision`
    records what the source actually carried.
    """

    value: date
    precision: DatePrecision = DatePrecision.DAY

    @property
    def is_partial(self) -> bool:
        return self.precision is not DatePrecision.DAY

    def __str__(self) -> str:
        match self.precision:
            case DatePrecision.YEAR:
                return f"{self.value.year:04d}"
            case DatePrecision.MONTH:
                return f"{self.value.year:04d}-{self.value.month:02d}"
        return self.value.isoformat()


@unique
class EntryKind(Enum):
    """Tag of the certificate entry union, named after its source group."""

    VACCINATION = "v"
    TEST = "t"
    RECOVERY = "r"

    @property
    def label(self) -> str:
        return self.name.capitalize()


@unique
class ValidityVerdict(Enum):
    """Human-facing outcome of the business rules, first match wins."""

    VALID = "VALID"
    EXPIRED = "EXPIRED"
    NOT_VERIFIED = "NOT_VERIFIED"
    TEST_POSITIVE = "TEST_POSITIVE"
    RECOVERY_NOT_YET_VALID = "RECOVERY_NOT_YET_VALID"
    RECOVERY_EXPIRED = "RECOVERY_EXPIRED"

    @property
    def is_valid(self) -> bool:
        return self is ValidityVerdict.VALID


@dataclass(frozen=True, slots=True)
class SignedEnvelope:
    """
    A parsed COSE_Sign1 message.

    `protected_header` holds the serialized protected bucket exactly as it
    arrived, because the signing input must be rebuilt from those bytes.
    """

    protected_header: bytes = field(repr=False)
    payload: bytes = field(repr=False)
    signature: bytes = field(repr=False)
    algorithm: int | None = None
    kid: bytes | None = None


@dataclass(frozen=True, slots=True)
class ResolvedKey:
    """A trusted public key borrowed from the key store for one verification."""

    kid: bytes
    public_key: Any = field(repr=False)


# ─────────────────────── Certificate entries ───────────────────────


@dataclass(frozen=True, slots=True)
class _Entry:
    """Fields every v / t / r entry carries (tg, co, is, ci)."""

    disease_code: str
    country_code: str
    issuer: str
    uid: str

    @property
    def disease_name(self) -> str:
        return valuesets.display_name(valuesets.DISEASES, self.disease_code)


@dataclass(frozen=True, slots=True)
class VaccinationEntry(_Entry):
    kind: ClassVar[EntryKind] = EntryKind.VACCINATION

    prophylaxis_code: str
    product_code: str
    manufacturer_code: str
    dose_number: int
    doses_in_series: int
    vaccinated_on: PartialDate

    @property
    def prophylaxis_name(self) -> str:
        return valuesets.display_name(valuesets.PROPHYLAXES, self.prophylaxis_code)

    @property
    def product_name(self) -> str:
        return valuesets.display_name(valuesets.PRODUCTS, self.product_code)

    @property
    def manufacturer_name(self) -> str:
        return valuesets.display_name(valuesets.MANUFACTURERS, self.manufacturer_code)


@dataclass(frozen=True, slots=True)
class TestEntry(_Entry):
    """A test result. `test_name` (nm) is optional in the source document."""

    __test__ = False  # not a pytest test class

    kind: ClassVar[EntryKind] = EntryKind.TEST

    test_type: str
    device_id: str
    collected_at: datetime
    result_code: str
    facility: str
    test_name: str | None = None

    @property
    def is_negative(self) -> bool:
        return self.result_code == valuesets.NEGATIVE_TEST_RESULT

    @property
    def result_text(self) -> str:
        return valuesets.display_name(valuesets.TEST_RESULTS, self.result_code)

    @property
    def type_text(self) -> str:
        return valuesets.display_name(valuesets.TEST_TYPES, self.test_type)


@dataclass(frozen=True, slots=True)
class RecoveryEntry(_Entry):
    kind: ClassVar[EntryKind] = EntryKind.RECOVERY

    first_positive_on: PartialDate
    valid_from: PartialDate
    valid_until: PartialDate


type CertificateEntry = VaccinationEntry | TestEntry | RecoveryEntry


# ─────────────────────── Aggregates ───────────────────────


@dataclass(frozen=True, slots=True)
class HealthCertificate:
    """The hcert document: schema version, holder and exactly one entry."""

    version: str
    given_name: str
    family_name: str
    given_name_std: str
    family_name_std: str
    date_of_birth: PartialDate
    entry: CertificateEntry

    @property
    def display_name(self) -> str:
        return f"{self.given_name} {self.family_name}"

    @property
    def standardized_name(self) -> str:
        return f"{self.family_name_std}, {self.given_name_std}"


@dataclass(frozen=True, slots=True)
class CertificateEnvelope:
    """
    Top-level decode result: CWT claims plus the health certificate.

    The signed envelope travels along so the signature can be checked
    after the certificate has been built (and displayed, if it fails).
    """

    issuer: str
    issued_at: datetime
    expires_at: datetime
    health_certificate: HealthCertificate
    signed_envelope: SignedEnvelope = field(repr=False)

    @property
    def kid(self) -> bytes | None:
        return self.signed_envelope.kid

    @property
    def entry(self) -> CertificateEntry:
        return self.health_certificate.entry


@dataclass(frozen=True, slots=True)
class VerificationReport:
    """Decode + verify + evaluate outcome for one scanned certificate."""

    certificate: CertificateEnvelope
    verified: bool
    verdict: ValidityVerdict
    evaluated_at: datetime
