"""
Static value sets — human-readable labels for coded certificate fields.

Codes follow the EU DCC value sets, release 1.3.0:
https://github.com/ehn-dcc-development/ehn-dcc-schema/tree/release/1.3.0/valuesets

Lookups are display-only and never fail a decode. An unknown code renders
as "Unknown (<code>)", except a country code, which is shown as given.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

NEGATIVE_TEST_RESULT = "260415000"

# http://hl7.org/fhir/uv/ips/STU1/ValueSet-snomed-intl-gps.html
DISEASES: Mapping[str, str] = MappingProxyType({
    "840539006": "COVID-19",
})

PROPHYLAXES: Mapping[str, str] = MappingProxyType({
    "1119349007": "SARS-CoV-2 mRNA vaccine",
    "1119305005": "SARS-CoV-2 antigen vaccine",
    "J07BX03": "COVID-19 vaccines",
})

PRODUCTS: Mapping[str, str] = MappingProxyType({
    "EU/1/20/1528": "Comirnaty",
    "EU/1/20/1507": "COVID-19 Vaccine Moderna",
    "EU/1/21/1529": "Vaxzevria",
    "EU/1/20/1525": "COVID-19 Vaccine Janssen",
    "CVnCoV": "CVnCoV",
    "Sputnik-V": "Sputnik-V",
    "Convidecia": "Convidecia",
    "EpiVacCorona": "EpiVacCorona",
    "BBIBP-CorV": "BBIBP-CorV",
    "Inactivated-SARS-CoV-2-Vero-Cell": "Inactivated SARS-CoV-2 (Vero Cell)",
    "CoronaVac": "CoronaVac",
    "Covaxin": "Covaxin (also known as BBV152 A, B, C)",
})

MANUFACTURERS: Mapping[str, str] = MappingProxyType({
    "ORG-100001699": "AstraZeneca AB",
    "ORG-100030215": "Biontech Manufacturing GmbH",
    "ORG-100001417": "Janssen-Cilag International",
    "ORG-100031184": "Moderna Biotech Spain S.L.",
    "ORG-100006270": "Curevac AG",
    "ORG-100013793": "CanSino Biologics",
    "ORG-100020693": "China Sinopharm International Corp. - Beijing location",
    "ORG-100010771": "Sinopharm Weiqida Europe Pharmaceutical s.r.o. - Prague location",
    "ORG-100024420": "Sinopharm Zhijun (Shenzhen) Pharmaceutical Co. Ltd. - Shenzhen location",
    "ORG-100032020": "Novavax CZ AS",
    "Gamaleya-Research-Institute": "Gamaleya Research Institute",
    "Vector-Institute": "Vector Institute",
    "Sinovac-Biotech": "Sinovac Biotech",
    "Bharat-Biotech": "Bharat Biotech",
})

TEST_TYPES: Mapping[str, str] = MappingProxyType({
    "LP6464-4": "Nucleic acid amplification test (NAAT)",
    "LP217198-3": "Rapid immunoassay",
})

TEST_RESULTS: Mapping[str, str] = MappingProxyType({
    NEGATIVE_TEST_RESULT: "Negative",
    "260373001": "Positive",
})


def display_name(table: Mapping[str, str], code: str) -> str:
    """Label for `code`, or "Unknown (<code>)" when the table lacks it."""
    return table.get(code, f"Unknown ({code})")


# ISO 3166-1 alpha-2 codes of the states issuing or accepting EU DCCs
COUNTRIES: Mapping[str, str] = MappingProxyType({
    "AD": "Andorra",
    "AL": "Albania",
    "AM": "Armenia",
    "AT": "Austria",
    "BE": "Belgium",
    "BG": "Bulgaria",
    "CH": "Switzerland",
    "CY": "Cyprus",
    "CZ": "Czechia",
    "DE": "Germany",
    "DK": "Denmark",
    "EE": "Estonia",
    "ES": "Spain",
    "FI": "Finland",
    "FO": "Faroe Islands",
    "FR": "France",
    "GB": "United Kingdom",
    "GE": "Georgia",
    "GR": "Greece",
    "HR": "Croatia",
    "HU": "Hungary",
    "IE": "Ireland",
    "IL": "Israel",
    "IS": "Iceland",
    "IT": "Italy",
    "LI": "Liechtenstein",
    "LT": "Lithuania",
    "LU": "Luxembourg",
    "LV": "Latvia",
    "MA": "Morocco",
    "MC": "Monaco",
    "MD": "Moldova",
    "ME": "Montenegro",
    "MK": "North Macedonia",
    "MT": "Malta",
    "NL": "Netherlands",
    "NO": "Norway",
    "PA": "Panama",
    "PL": "Poland",
    "PT": "Portugal",
    "RO": "Romania",
    "RS": "Serbia",
    "SE": "Sweden",
    "SG": "Singapore",
    "SI": "Slovenia",
    "SK": "Slovakia",
    "SM": "San Marino",
    "TR": "Türkiye",
    "UA": "Ukraine",
    "VA": "Vatican City",
})


def country_name(code: str) -> str:
    """English name of an ISO 3166-1 alpha-2 code; an unlisted code is shown as given."""
    return COUNTRIES.get(code.upper(), code)
