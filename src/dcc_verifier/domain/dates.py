"""
Date parsing for certificate fields.

Certificates carry two flavours of dates:
  - partial ISO dates (dob, dt, fr, df, du): "1980", "1980-05" or "1980-05-17"
  - full date-times (t.sc): "2021-08-20T10:03:12Z"

Both parsers raise ValueError; the model builder turns that into a
FieldFormatError naming the field. Messages never echo the value, which
may be personal data.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime

from dcc_verifier.domain.models import DatePrecision, PartialDate

# A time suffix is tolerated after a full date and dropped.
_PARTIAL_DATE = re.compile(
    r"^(?P<year>\d{4})(?:-(?P<month>\d{2})(?:-(?P<day>\d{2})(?:T[0-9:.+\-Z]*)?)?)?$"
)
_DATE_TIME = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")


def parse_partial_date(text: str) -> PartialDate:
    """Parse YYYY, YYYY-MM or YYYY-MM-DD, defaulting missing parts to 1."""
    match = _PARTIAL_DATE.match(text.strip())
    if match is None:
        raise ValueError("not a partial ISO date")

    year = int(match["year"])
    month = int(match["month"]) if match["month"] else 1
    day = int(match["day"]) if match["day"] else 1
    if match["day"]:
        precision = DatePrecision.DAY
    elif match["month"]:
        precision = DatePrecision.MONTH
    else:
        precision = DatePrecision.YEAR

    try:
        return PartialDate(value=date(year, month, day), precision=precision)
    except ValueError as e:
        raise ValueError(f"impossible calendar date: {e}") from e


def parse_date_time(text: str) -> datetime:
    """
    Parse a fully specified ISO 8601 date-time.

    Date-only and reduced-precision values are rejected. A value without
    a UTC offset is taken to be UTC.
    """
    stripped = text.strip()
    if not _DATE_TIME.match(stripped):
        raise ValueError("not a full ISO date-time")
    try:
        parsed = datetime.fromisoformat(stripped)
    except ValueError:
        raise ValueError("unparsable ISO date-time") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def from_epoch_seconds(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=UTC)


def start_of_day(day: date) -> datetime:
    """Midnight UTC at the beginning of `day`."""
    return datetime(day.year, day.month, day.day, tzinfo=UTC)
