"""
Display helpers — turn a verification report into text a person can read.

Used by the CLI and the HTTP service. Nothing here affects validity;
these are formatting rules only.
"""

from __future__ import annotations

from dataclasses import fields
from datetime import date, datetime
from typing import Any

from dcc_verifier.domain.dates import start_of_day
from dcc_verifier.domain.models import (
    CertificateEntry,
    CertificateEnvelope,
    EntryKind,
    PartialDate,
    ValidityVerdict,
    VerificationReport,
)
from dcc_verifier.domain.valuesets import country_name

type Details = list[tuple[str, str]]


def format_date(value: date | datetime | PartialDate) -> str:
    if isinstance(value, PartialDate):
        return value.value.isoformat()
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    return value.isoformat()


def format_datetime(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M")


def format_kid(kid: bytes | None) -> str | None:
    """Key identifier as space-separated lower-case hex bytes."""
    if kid is None:
        return None
    return " ".join(f"{byte:02x}" for byte in kid)


def relative_date_text(value: PartialDate | date, now: datetime) -> str:
    day = value.value if isinstance(value, PartialDate) else value
    days = (now - start_of_day(day)).days
    if days < 1:
        return "less than a day ago"
    if days == 1:
        return "yesterday"
    if days <= 14:
        return f"{days} days ago"
    if days <= 30:
        qualifier = "over " if days % 7 != 0 else ""
        return f"{qualifier}{days // 7} weeks ago"
    return "over a month ago"


def relative_time_text(value: datetime, now: datetime) -> str:
    hours = int((now - value).total_seconds() // 3600)
    if hours < 72:
        return f"{hours} hours ago"
    return "over 72 hours ago"


def certificate_title(certificate: CertificateEnvelope) -> str:
    """E.g. "COVID-19 Vaccination Certificate"."""
    entry = certificate.entry
    return f"{entry.disease_name} {entry.kind.label} Certificate"


def status_text(verdict: ValidityVerdict, certificate: CertificateEnvelope) -> str:
    entry = certificate.entry
    match verdict:
        case ValidityVerdict.VALID:
            return "VERIFIED & VALID"
        case ValidityVerdict.EXPIRED:
            return f"EXPIRED ON {format_date(certificate.expires_at)}"
        case ValidityVerdict.NOT_VERIFIED:
            return "VERIFICATION FAILED"
        case ValidityVerdict.TEST_POSITIVE:
            return "TEST POSITIVE"
        case ValidityVerdict.RECOVERY_NOT_YET_VALID:
            return "RECOVERY NOT YET VALID"
        case ValidityVerdict.RECOVERY_EXPIRED:
            return f"RECOVERY EXPIRED ON {format_date(entry.valid_until)}"
    raise TypeError("unreachable")  # pragma: no cover


# ─────────────────────── Detail rows ───────────────────────


def _entry_details(entry: CertificateEntry, now: datetime) -> Details:
    match entry.kind:
        case EntryKind.VACCINATION:
            return [
                ("Dose", f"{entry.dose_number} of {entry.doses_in_series}"),
                ("Disease targeted", entry.disease_name),
                (
                    "Date administered",
                    f"{format_date(entry.vaccinated_on)} "
                    f"({relative_date_text(entry.vaccinated_on, now)})",
                ),
                ("Manufacturer", entry.manufacturer_name),
                ("Vaccine product", entry.product_name),
                ("Prophylaxis", entry.prophylaxis_name),
            ]
        case EntryKind.TEST:
            rows = [
                ("Result", entry.result_text),
                ("Disease targeted", entry.disease_name),
                ("Test type", entry.type_text),
            ]
            if entry.test_name:
                rows.append(("Test name", entry.test_name))
            rows += [
                (
                    "Sample collected",
                    f"{format_datetime(entry.collected_at)} "
                    f"({relative_time_text(entry.collected_at, now)})",
                ),
                ("Testing facility", entry.facility),
                ("Test device", entry.device_id),
            ]
            return rows
        case EntryKind.RECOVERY:
            return [
                ("Disease targeted", entry.disease_name),
                ("First positive result", format_date(entry.first_positive_on)),
                ("Valid from", format_date(entry.valid_from)),
                ("Valid until", format_date(entry.valid_until)),
            ]
    raise TypeError("unreachable")  # pragma: no cover


def summarize(report: VerificationReport) -> Details:
    """Ordered (label, value) rows describing the certificate."""
    certificate = report.certificate
    holder = certificate.health_certificate
    entry = holder.entry
    return [
        ("Name", holder.display_name),
        ("Date of birth", str(holder.date_of_birth)),
        ("Status", status_text(report.verdict, certificate)),
        *_entry_details(entry, report.evaluated_at),
        ("Transliterated name", holder.standardized_name),
        ("Certificate expiry date", format_date(certificate.expires_at)),
        ("Country", country_name(entry.country_code)),
        ("Certificate issuer", entry.issuer),
        ("Unique reference", entry.uid),
        ("Public key ID", format_kid(certificate.kid) or "none"),
    ]


def _native(value: Any) -> Any:
    if isinstance(value, PartialDate):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def report_to_dict(report: VerificationReport) -> dict[str, Any]:
    """JSON-friendly form of a report (no bytes, no datetimes)."""
    certificate = report.certificate
    holder = certificate.health_certificate
    entry = holder.entry
    return {
        "title": certificate_title(certificate),
        "verdict": report.verdict.value,
        "status": status_text(report.verdict, certificate),
        "verified": report.verified,
        "evaluated_at": report.evaluated_at.isoformat(),
        "kid": certificate.kid.hex() if certificate.kid is not None else None,
        "issuer": certificate.issuer,
        "issued_at": certificate.issued_at.isoformat(),
        "expires_at": certificate.expires_at.isoformat(),
        "version": holder.version,
        "name": {
            "given": holder.given_name,
            "family": holder.family_name,
            "given_std": holder.given_name_std,
            "family_std": holder.family_name_std,
        },
        "date_of_birth": str(holder.date_of_birth),
        "entry": {
            "kind": entry.kind.name.lower(),
            **{f.name: _native(getattr(entry, f.name)) for f in fields(entry)},
        },
        "details": [{"label": label, "value": value} for label, value in summarize(report)],
    }
