"""Parsing of the ICS date and date-time values found on CalDAV to-do items.

Only the basic forms are accepted::

    20240115            date, midnight UTC
    20240115T133000Z    UTC date-time
    20240115T133000     floating date-time

Floating values are bound to a zero UTC offset rather than the machine's
local zone. Calendars that rely on TZID parameters will therefore drift by
the local offset; existing behaviour depends on this, so keep it.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from dateutil import tz

_ICAL_DATE_RE = re.compile(
    r"(?P<year>[0-9]{4})(?P<month>[0-9]{2})(?P<day>[0-9]{2})"
    r"(?:T(?P<hour>[0-9]{2})(?P<minute>[0-9]{2})(?P<second>[0-9]{2})(?P<utc>Z)?)?"
)

# Stamp used when a to-do item carries no usable DTSTAMP.
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ICalDateError(ValueError):
    """Raised when a value does not match the ICS date grammar."""


def parse_ical_date(text: str) -> datetime:
    """Parse an ICS ``DATE`` or ``DATE-TIME`` value into an aware datetime.

    Raises:
        ICalDateError: if the text is not exactly one of the accepted forms,
            or the digits do not name a real date or time.
    """
    match = _ICAL_DATE_RE.fullmatch(text)
    if match is None:
        raise ICalDateError(f"Not an ICS date: {text!r}")

    fields = match.groupdict()
    try:
        if fields["hour"] is None:
            value = datetime(
                int(fields["year"]), int(fields["month"]), int(fields["day"]),
                tzinfo=tz.UTC,
            )
            return value.astimezone(tz.tzlocal())

        value = datetime(
            int(fields["year"]), int(fields["month"]), int(fields["day"]),
            int(fields["hour"]), int(fields["minute"]), int(fields["second"]),
            tzinfo=tz.UTC,
        )
    except ValueError as e:
        raise ICalDateError(f"Invalid ICS date {text!r}: {e}") from e

    if fields["utc"]:
        return value.astimezone(tz.tzlocal())
    # Floating: zero offset, not converted
    return value


def parse_optional(text: Optional[str]) -> Optional[datetime]:
    """Parse a possibly missing value, treating bad input as absent."""
    if text is None:
        return None
    try:
        return parse_ical_date(text)
    except ICalDateError:
        return None
