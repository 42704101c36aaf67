"""
DAN DL7 export parser.

A DL7 file is a sequence of pipe-delimited records framed by 3-letter tags:

    ZDH|...        dive header (10 fields)
    ZDP{           optional profile block, raw CSV for the transform engine
    ...
    ZDP}
    ZDT|...        dive trailer (6 fields)

Each ZDH..ZDT group becomes one dive. Parsing runs as an explicit state
machine; any structural error aborts the whole file and no dive from it is
recorded.
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Optional, Union

from diveimport.models.dive import DiveLog
from diveimport.models.params import NamedParameterList
from diveimport.services.errors import FormatError
from diveimport.services.reader import decode, encode, read_whole_file
from diveimport.services.tokenizer import Cursor, detect_line_terminator, split_record_line
from diveimport.services.transform import TransformEngine, transform_buffer


logger = logging.getLogger(__name__)


DL7_TEMPLATE = "DL7"
PROFILE_TAG = "csv"

HEADER_FIELDS = (
    "export_sequence",
    "internal_dive_sequence",
    "record_type",
    "recording_interval",
    "leave_surface",
    "air_temperature",
    "tank_volume",
    "o2_mode",
    "rebreather_diluent_gas",
    "altitude",
)

TRAILER_FIELDS = (
    "export_sequence",
    "internal_dive_sequence",
    "max_depth",
    "reach_surface",
    "min_water_temperature",
    "pressure_drop",
)


class Dl7State(Enum):
    SEEK_HEADER = auto()
    PARSE_HEADER = auto()
    PARSE_PROFILE = auto()
    PARSE_TRAILER = auto()
    EMIT_DIVE = auto()
    DONE = auto()


@dataclass
class Dl7Record:
    """Parameters and profile payload for one dive, ready for the transform."""

    params: NamedParameterList
    profile: bytes


class Dl7Parser:
    """Walks the decoded file text and collects one Dl7Record per dive."""

    def __init__(self, text: str, filename: str, params: NamedParameterList):
        self.filename = filename
        self.params = params
        self._base_size = len(params)
        self._profile = ""
        self.records: list[Dl7Record] = []

        terminator = detect_line_terminator(text)
        if terminator is None:
            raise FormatError(f"Failed to detect line terminator in '{filename}'", filename)
        self.terminator = terminator
        # the first line is the file header (FSH); record scanning starts at its end
        self.cursor = Cursor(text, text.find(terminator))

        self._handlers = {
            Dl7State.SEEK_HEADER: self._seek_header,
            Dl7State.PARSE_HEADER: self._parse_header,
            Dl7State.PARSE_PROFILE: self._parse_profile,
            Dl7State.PARSE_TRAILER: self._parse_trailer,
            Dl7State.EMIT_DIVE: self._emit_dive,
        }

    def parse(self) -> list[Dl7Record]:
        state = Dl7State.SEEK_HEADER
        while state is not Dl7State.DONE:
            state = self._handlers[state]()
        self.params.resize(self._base_size)
        return self.records

    def _fail(self, message: str) -> FormatError:
        return FormatError(f"{message} in '{self.filename}'", self.filename)

    def _fields(self, names: tuple[str, ...], tag: str) -> dict[str, str]:
        self.cursor.skip(len(tag))
        try:
            values = split_record_line(self.cursor, self.terminator, "|")
        except FormatError as e:
            raise self._fail(f"{tag}: {e}") from e
        if len(values) > len(names):
            raise self._fail(f"{tag}: {len(values)} fields, expected at most {len(names)}")
        values += [""] * (len(names) - len(values))
        return dict(zip(names, values))

    def _seek_header(self) -> Dl7State:
        if self.cursor.at_end:
            return Dl7State.DONE

        self.params.resize(self._base_size)
        self._profile = ""
        while not self.cursor.startswith("ZDH"):
            if not self.cursor.next_line(self.terminator):
                if not self.records:
                    logger.debug(f"No ZDH record in {self.filename}")
                    return Dl7State.DONE
                raise self._fail("Expected ZDH header not found")
        return Dl7State.PARSE_HEADER

    def _parse_header(self) -> Dl7State:
        fields = self._fields(HEADER_FIELDS, "ZDH")

        # leave_surface is YYYYMMDDHHMMSS, older exports carry only the date
        leave_surface = fields["leave_surface"]
        if len(leave_surface) >= 8:
            self.params.add("date", leave_surface[:8])
        if len(leave_surface) >= 14:
            # leading "1" keeps a leading zero alive through numeric templating
            self.params.add("time", "1" + leave_surface[8:14])
        self.params.add("airTemp", fields["air_temperature"])
        self.params.add("diveNro", fields["internal_dive_sequence"])

        if self.cursor.startswith("ZDP"):
            return Dl7State.PARSE_PROFILE
        return Dl7State.PARSE_TRAILER

    def _parse_profile(self) -> Dl7State:
        if not self.cursor.startswith("ZDP{"):
            raise self._fail("Failed to find start of ZDP")
        if self.cursor.startswith("ZDP{}"):
            raise FormatError(f"No dive profile found from '{self.filename}'", self.filename)
        if not self.cursor.next_line(self.terminator):
            raise self._fail("ZDP: no line break after opening marker")

        end = self.cursor.find("ZDP}")
        if end < 0:
            raise self._fail("Failed to find end of ZDP")
        self._profile = self.cursor.text[self.cursor.pos:end]

        self.cursor.pos = end
        if not self.cursor.next_line(self.terminator):
            self.cursor.pos = len(self.cursor.text)
        return Dl7State.PARSE_TRAILER

    def _parse_trailer(self) -> Dl7State:
        if not self.cursor.startswith("ZDT"):
            raise self._fail("Expected ZDT trailer not found")
        fields = self._fields(TRAILER_FIELDS, "ZDT")
        self.params.add("waterTemp", fields["min_water_temperature"])
        return Dl7State.EMIT_DIVE

    def _emit_dive(self) -> Dl7State:
        self.records.append(Dl7Record(self.params.copy(), encode(self._profile)))
        logger.debug(f"DL7 record {len(self.records)} parsed from {self.filename}")
        return Dl7State.SEEK_HEADER


def parse_dan_format(
    filename: Union[str, Path],
    params: NamedParameterList,
    log: DiveLog,
    engine: Optional[TransformEngine] = None,
) -> int:
    """
    Import every dive of a DL7 file into log. Returns the number of dives.

    All records are parsed before any is transformed, and dives land in log
    only once the whole file succeeded.
    """
    filename = str(filename)
    text = decode(read_whole_file(filename))
    records = Dl7Parser(text, filename, params).parse()

    staging = DiveLog()
    for record in records:
        transform_buffer(engine, filename, record.profile, PROFILE_TAG, record.params, staging)

    log.extend(staging)
    logger.info(f"Imported {len(records)} DL7 records from {filename}")
    return len(records)
