"""
Template-driven CSV imports.

The file is wrapped whole and the template named by the caller turns it
into dives. DL7 files are routed to their own record parser first.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from diveimport.models.dive import DiveLog
from diveimport.models.params import NamedParameterList
from diveimport.services.dan import DL7_TEMPLATE, parse_dan_format
from diveimport.services.reader import read_whole_file
from diveimport.services.transform import TransformEngine, add_default_datetime, transform_buffer


logger = logging.getLogger(__name__)


MANUAL_TEMPLATE = "manualCSV"


def _transform_file(
    filename: str,
    params: NamedParameterList,
    template: str,
    log: DiveLog,
    engine: Optional[TransformEngine],
) -> None:
    buffer = read_whole_file(filename)
    if not buffer:
        logger.info(f"{filename} is empty, nothing to import")
        return

    staging = DiveLog()
    transform_buffer(engine, filename, buffer, template, params, staging)
    log.extend(staging)


def parse_csv_file(
    filename: Union[str, Path],
    params: NamedParameterList,
    template: str,
    log: DiveLog,
    engine: Optional[TransformEngine] = None,
) -> None:
    """
    Import a CSV file through template.

    Unless the caller already supplied a date as first parameter, today's
    date and time are queued for the template.
    """
    filename = str(filename)
    if template == DL7_TEMPLATE:
        parse_dan_format(filename, params, log, engine)
        return

    if len(params) == 0 or params.key(0) != "date":
        add_default_datetime(params)
    _transform_file(filename, params, template, log, engine)


def parse_manual_file(
    filename: Union[str, Path],
    params: NamedParameterList,
    log: DiveLog,
    engine: Optional[TransformEngine] = None,
) -> None:
    """Import a hand-written dive list; it always starts from today's date."""
    add_default_datetime(params)
    _transform_file(str(filename), params, MANUAL_TEMPLATE, log, engine)
