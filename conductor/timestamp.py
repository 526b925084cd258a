"""Protobuf-style timestamps parsed from RFC 3339 strings."""

from __future__ import annotations

import calendar
import datetime as _dt
import re
from dataclasses import dataclass

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d{1,9}))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))"
)


@dataclass(frozen=True)
class Timestamp:
    """Seconds since the Unix epoch plus a non-negative nanosecond part."""

    seconds: int
    nanos: int

    @classmethod
    def parse_rfc3339(cls, value: str) -> Timestamp:
        """Parse an RFC 3339 date-time with up to nanosecond precision.

        Raises ValueError if ``value`` is not a valid RFC 3339 date-time.
        """
        match = _RFC3339.fullmatch(value)
        if match is None:
            raise ValueError(f"failed parsing string as rfc3339 datetime: {value!r}")
        year, month, day, hour, minute, second = (int(g) for g in match.group(1, 2, 3, 4, 5, 6))
        fraction, _zulu, sign, offset_hours, offset_minutes = match.group(7, 8, 9, 10, 11)
        try:
            _dt.datetime(year, month, day, hour, minute, second)
        except ValueError as exc:
            raise ValueError(f"failed parsing string as rfc3339 datetime: {value!r}: {exc}") from exc
        if year < 1:
            raise ValueError(f"failed parsing string as rfc3339 datetime: {value!r}")

        offset = 0
        if sign is not None:
            oh, om = int(offset_hours), int(offset_minutes)
            if oh > 23 or om > 59:
                raise ValueError(f"invalid UTC offset in {value!r}")
            offset = (oh * 3600 + om * 60) * (1 if sign == "+" else -1)

        seconds = calendar.timegm((year, month, day, hour, minute, second, 0, 0, 0)) - offset
        nanos = int(fraction.ljust(9, "0")) if fraction else 0
        return cls(seconds=seconds, nanos=nanos)