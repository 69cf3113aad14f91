"""
Certificate model builder — StructuredNode tree → CertificateEnvelope.

Domain layer, no I/O. Field layout of the CWT claims map:

    1     issuer                  (text)
    6     issued at               (epoch seconds)
    4     expires at              (epoch seconds)
    -260  → 1                     hcert document
            ver, dob, nam{gn, fn, gnt, fnt}
            v[] | t[] | r[]       exactly one entry group, element 0 is used

Every required field that is missing or of the wrong kind fails with a
FieldFormatError naming its path, e.g. "-260.1.v[0].dn".
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

import structlog
from railway.result import Result

from dcc_verifier.domain.dates import from_epoch_seconds, parse_date_time, parse_partial_date
from dcc_verifier.domain.document import NodeKind, StructuredNode
from dcc_verifier.domain.errors import FieldFormatError, InvalidCertificateType, capture
from dcc_verifier.domain.models import (
    CertificateEntry,
    CertificateEnvelope,
    EntryKind,
    HealthCertificate,
    PartialDate,
    RecoveryEntry,
    SignedEnvelope,
    TestEntry,
    VaccinationEntry,
)

T = TypeVar("T")
R = TypeVar("R")

log = structlog.get_logger()

HCERT_CLAIM = "-260"
HCERT_DOCUMENT = "1"
ISSUER_CLAIM = "1"
ISSUED_AT_CLAIM = "6"
EXPIRES_AT_CLAIM = "4"

# Checked in this order; the first non-empty group wins.
ENTRY_GROUPS = (EntryKind.VACCINATION, EntryKind.TEST, EntryKind.RECOVERY)


class _Reader:
    """Walks a StructuredNode while tracking the field path for error messages."""

    def __init__(self, node: StructuredNode, path: str = "") -> None:
        self.node = node
        self.path = path

    def _path_to(self, key: str) -> str:
        return f"{self.path}.{key}" if self.path else key

    def child(self, key: str) -> _Reader:
        path = self._path_to(key)
        return _Reader(_require(self.node.get(key), path), path)

    def element(self, index: int) -> _Reader:
        path = f"{self.path}[{index}]"
        return _Reader(_require(self.node.at(index), path), path)

    def text(self, key: str) -> str:
        path = self._path_to(key)
        return _require(self.node.get(key).flat_map(StructuredNode.as_text), path)

    def optional_text(self, key: str) -> str | None:
        if not self.node.has(key):
            return None
        value = self.node.get(key).value()
        if value.kind is NodeKind.NULL:
            return None
        return _require(value.as_text(), self._path_to(key))

    def integer(self, key: str) -> int:
        path = self._path_to(key)
        return _require(self.node.get(key).flat_map(StructuredNode.as_int), path)

    def partial_date(self, key: str) -> PartialDate:
        return _parse(self.text(key), parse_partial_date, self._path_to(key))

    def date_time(self, key: str) -> datetime:
        return _parse(self.text(key), parse_date_time, self._path_to(key))

    def epoch(self, key: str) -> datetime:
        return _parse(self.integer(key), from_epoch_seconds, self._path_to(key))


def _require(result: Result[T], path: str) -> T:
    if result.is_failure():
        raise FieldFormatError(path, result.error().message)
    return result.value()


def _parse(raw: T, parser: Callable[[T], R], path: str) -> R:
    try:
        return parser(raw)
    except (ValueError, OverflowError, OSError) as e:
        raise FieldFormatError(path, str(e)) from e


# ─────────────────────── Entry variants ───────────────────────


def _vaccination(entry: _Reader) -> VaccinationEntry:
    return VaccinationEntry(
        **_common_fields(entry),
        prophylaxis_code=entry.text("vp"),
        product_code=entry.text("mp"),
        manufacturer_code=entry.text("ma"),
        dose_number=entry.integer("dn"),
        doses_in_series=entry.integer("sd"),
        vaccinated_on=entry.partial_date("dt"),
    )


def _test(entry: _Reader) -> TestEntry:
    return TestEntry(
        **_common_fields(entry),
        test_type=entry.text("tt"),
        test_name=entry.optional_text("nm"),
        device_id=entry.text("ma"),
        collected_at=entry.date_time("sc"),
        result_code=entry.text("tr"),
        facility=entry.text("tc"),
    )


def _recovery(entry: _Reader) -> RecoveryEntry:
    return RecoveryEntry(
        **_common_fields(entry),
        first_positive_on=entry.partial_date("fr"),
        valid_from=entry.partial_date("df"),
        valid_until=entry.partial_date("du"),
    )


_ENTRY_BUILDERS: dict[EntryKind, Callable[[_Reader], CertificateEntry]] = {
    EntryKind.VACCINATION: _vaccination,
    EntryKind.TEST: _test,
    EntryKind.RECOVERY: _recovery,
}


def _common_fields(entry: _Reader) -> dict[str, str]:
    return {
        "disease_code": entry.text("tg"),
        "country_code": entry.text("co"),
        "issuer": entry.text("is"),
        "uid": entry.text("ci"),
    }


def _select_group(hcert: _Reader) -> tuple[EntryKind, _Reader]:
    """First non-empty v / t / r array; null or non-array groups, later groups and extra elements are ignored."""
    for kind in ENTRY_GROUPS:
        if not hcert.node.has(kind.value):
            continue
        group = hcert.child(kind.value)
        if group.node.kind is not NodeKind.ARRAY or not group.node.value:
            log.debug("certificate.group_skipped", group=kind.value, node=group.node.kind.value)
            continue
        if len(group.node.value) > 1:
            log.warning("certificate.extra_entries_ignored", group=kind.value, count=len(group.node.value))
        return kind, group
    raise InvalidCertificateType("No valid certificate group (v|t|r) found")


# ─────────────────────── Public API ───────────────────────


def _build(root: StructuredNode, envelope: SignedEnvelope) -> CertificateEnvelope:
    claims = _Reader(root)
    hcert = claims.child(HCERT_CLAIM).child(HCERT_DOCUMENT)
    name = hcert.child("nam")

    kind, group = _select_group(hcert)
    entry = _ENTRY_BUILDERS[kind](group.element(0))

    certificate = CertificateEnvelope(
        issuer=claims.text(ISSUER_CLAIM),
        issued_at=claims.epoch(ISSUED_AT_CLAIM),
        expires_at=claims.epoch(EXPIRES_AT_CLAIM),
        health_certificate=HealthCertificate(
            version=hcert.text("ver"),
            given_name=name.text("gn"),
            family_name=name.text("fn"),
            given_name_std=name.text("gnt"),
            family_name_std=name.text("fnt"),
            date_of_birth=hcert.partial_date("dob"),
            entry=entry,
        ),
        signed_envelope=envelope,
    )
    log.debug("certificate.built", kind=kind.name, issuer=certificate.issuer)
    return certificate


def build_certificate(
    root: StructuredNode,
    envelope: SignedEnvelope,
) -> Result[CertificateEnvelope]:
    """
    Map the decoded claims tree into a typed CertificateEnvelope.

    Returns Result.failure(VALIDATION_ERROR, ...) carrying a
    FieldFormatError or InvalidCertificateType on malformed input.
    """
    return capture(lambda: _build(root, envelope), "certificate model")
