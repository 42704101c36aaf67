"""
Single-channel CSV exports.

Layout: eight comma-separated header fields (field 1 is the dive number,
field 2 the start date) followed by one reading per second, all on one
channel. The channel is chosen by the caller, usually from the file suffix.
"""

import logging
import math
import re
from pathlib import Path
from typing import Optional, Union

import numpy as np

from diveimport.models.dive import Dive, DiveLog
from diveimport.services.dates import parse_date
from diveimport.services.errors import NotThisFormat
from diveimport.services.reader import decode, read_whole_file
from diveimport.services.units import Channel, SourceFormat, convert, store


logger = logging.getLogger(__name__)


HEADER_FIELDS = 8

# Cochran-style exports name the channel by suffix
SUFFIX_CHANNELS = {
    ".dpt": Channel.DEPTH,
    ".lvd": Channel.DEPTH,
    ".tmp": Channel.TEMPERATURE,
    ".hp1": Channel.PRESSURE,
    ".csv": Channel.DEPTH,
}

_NUMBER = re.compile(
    r"\s*[+-]?(?:inf(?:inity)?|nan|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)",
    re.IGNORECASE,
)


def read_number(text: str, pos: int) -> tuple[Optional[float], int]:
    """
    Read a float at pos the way strtod does, leading whitespace included.

    Returns (None, pos) when there is no number or it does not fit a finite
    double. Unlike strtod, inf, infinity and nan are refused rather than
    returned, so the readings end there and never reach the integer rounding.
    Hex floats are not recognised either: "0x1A" reads as 0 and stops at "x".
    """
    match = _NUMBER.match(text, pos)
    if not match:
        return None, pos
    value = float(match.group())
    if not math.isfinite(value):
        return None, pos
    return value, match.end()


def read_readings(body: str) -> list[float]:
    """Comma-separated readings up to the first malformed token."""
    readings: list[float] = []
    pos = 0
    while True:
        value, pos = read_number(body, pos)
        if value is None:
            break
        readings.append(value)
        if not body.startswith(",", pos):
            break
        pos += 1
    return readings


def try_to_open_csv(buffer: bytes, channel: Channel, log: DiveLog, filename: str = "<buffer>") -> Dive:
    """
    Build one dive with one computer from a single-channel export.

    Raises NotThisFormat if there are fewer than eight header fields or the
    start date does not parse.
    """
    parts = decode(buffer).split(",", HEADER_FIELDS)
    if len(parts) <= HEADER_FIELDS:
        raise NotThisFormat(f"'{filename}' has fewer than {HEADER_FIELDS} header fields", filename)

    when = parse_date(parts[2])
    if when is None:
        raise NotThisFormat(f"'{filename}' has no start date in header field 2", filename)

    number = re.match(r"\s*([+-]?\d+)", parts[1])
    dive = Dive(when=when, number=int(number.group(1)) if number else 0)
    dc = dive.dc

    readings = read_readings(parts[HEADER_FIELDS])
    if readings:
        converted = convert(np.asarray(readings, dtype=np.float64), channel, SourceFormat.GENERIC_CSV)
        for time_s, value in enumerate(converted.tolist()):
            store(dc.prepare_sample(time_s), channel, value)
    # every reading covers one second
    dc.duration_s = len(readings)

    log.record_dive(dive)
    logger.info(f"Imported {len(readings)} {channel.value} readings from {filename}")
    return dive


def channel_for(filename: Union[str, Path]) -> Optional[Channel]:
    return SUFFIX_CHANNELS.get(Path(filename).suffix.lower())


def parse_generic_csv_file(
    filename: Union[str, Path],
    log: DiveLog,
    channel: Optional[Channel] = None,
) -> Dive:
    filename = str(filename)
    channel = channel or channel_for(filename)
    if channel is None:
        raise NotThisFormat(f"No channel known for '{filename}'", filename)
    return try_to_open_csv(read_whole_file(filename), channel, log, filename)
