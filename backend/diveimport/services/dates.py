"""
Parser for loose 'DDMonYY HH:MM:SS' date strings found in CSV headers.
"""

import calendar
import re
from typing import Optional


MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_INT = re.compile(r"\s*([+-]?\d+)")
_CLOCK = re.compile(r"\s*([+-]?\d+):\s*([+-]?\d+):\s*([+-]?\d+)")


def parse_date(text: str) -> Optional[int]:
    """
    Parse e.g. '15Jan2023 10:20:30' into UTC epoch seconds.

    Two-digit years below 70 are 20xx, 70-99 are 19xx. Returns None when the
    day is outside 1..31, the month abbreviation is unknown (case-sensitive),
    the year is missing, or the clock is not three colon-separated integers.
    """
    match = _INT.match(text)
    day = int(match.group(1)) if match else 0
    if day < 1 or day > 31:
        return None
    pos = match.end()

    month_token = text[pos:pos + 3]
    if month_token not in MONTH_NAMES:
        return None
    month = MONTH_NAMES.index(month_token) + 1
    pos += 3

    match = _INT.match(text, pos)
    if not match:
        return None
    year = int(match.group(1))
    if year < 70:
        year += 2000
    if year < 100:
        year += 1900

    clock = _CLOCK.match(text, match.end())
    if not clock:
        return None
    hour, minute, second = (int(g) for g in clock.groups())

    # timegm normalises out-of-range fields (e.g. 31Feb) like mktime does
    try:
        return calendar.timegm((year, month, day, hour, minute, second, 0, 0, 0))
    except (ValueError, OverflowError):
        return None
