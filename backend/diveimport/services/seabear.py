"""
Seabear CSV parser.

A Seabear export is a free-text header, a blank line, then the CSV body.
The body goes to the transform engine; the date and time come from the
line after 'Serial number:' in the header when present.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from diveimport.models.dive import DiveLog
from diveimport.models.params import NamedParameterList
from diveimport.services.errors import NotThisFormat
from diveimport.services.reader import decode, encode, read_whole_file
from diveimport.services.transform import TransformEngine, add_default_datetime, transform_buffer


logger = logging.getLogger(__name__)


SEABEAR_TEMPLATE = "csv"
SERIAL_MARKER = "Serial number:"


def find_body(text: str) -> tuple[int, str]:
    """
    Offset of the CSV body and the line terminator in use.

    The last blank line in the file separates header from body, so repeated
    header blocks are skipped. Raises NotThisFormat without a blank line.
    """
    for terminator in ("\r\n", "\n"):
        boundary = text.rfind(terminator * 2)
        if boundary >= 0:
            return boundary + 2 * len(terminator), terminator
    raise NotThisFormat("No blank line between header and data: not a Seabear export")


def header_datetime(text: str, terminator: str) -> Optional[tuple[str, str]]:
    """
    Date (YYYYMMDD) and time (HHMM) from the line after 'Serial number:'.

    The line is read at fixed offsets, 'xxYYYY-MM-DD HH:MM'; seconds are
    ignored. Returns None if the marker or a long enough line is missing.
    """
    marker = text.find(SERIAL_MARKER)
    if marker < 0:
        return None
    line_end = text.find(terminator, marker)
    if line_end < 0:
        return None

    stamp = text[line_end + len(terminator) + 2:]
    if len(stamp) < 16:
        return None
    return stamp[0:4] + stamp[5:7] + stamp[8:10], stamp[11:13] + stamp[14:16]


def parse_seabear_csv_file(
    filename: Union[str, Path],
    params: NamedParameterList,
    template: str,
    log: DiveLog,
    engine: Optional[TransformEngine] = None,
) -> None:
    filename = str(filename)
    text = decode(read_whole_file(filename))
    try:
        body_start, terminator = find_body(text)
    except NotThisFormat as e:
        raise NotThisFormat(f"'{filename}': {e}", filename) from e

    add_default_datetime(params)

    stamp = header_datetime(text, terminator)
    if stamp is not None:
        date, clock = stamp
        # date and time are the two most recent parameters
        params.set_value(len(params) - 2, date)
        params.set_value(len(params) - 1, params.value(len(params) - 1)[0] + clock)

    staging = DiveLog()
    transform_buffer(engine, filename, encode(text[body_start:]), template, params, staging)
    log.extend(staging)


def parse_seabear_log(
    filename: Union[str, Path],
    log: DiveLog,
    engine: Optional[TransformEngine] = None,
    params: Optional[NamedParameterList] = None,
) -> None:
    """Import a Seabear export; params may carry header-derived settings."""
    params = params.copy() if params is not None else NamedParameterList()
    parse_seabear_csv_file(filename, params, SEABEAR_TEMPLATE, log, engine)
