"""
Poseidon MkVI Discovery importer.

The rebreather writes two files per dive:
- <name>.txt: 'MkVI_Config' followed by 'label: value' configuration lines
- <name>.csv: telemetry rows 'time,channel,value', several rows per second

Rows sharing a time form one sample. Channel codes map to effects in
CHANNEL_EFFECTS; known codes without an effect are listed in
IGNORED_CHANNELS.
"""

import calendar
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol, Union

import numpy as np
import pandas as pd

from diveimport.models.dive import (
    Cylinder,
    CylinderUse,
    Dive,
    DiveComputer,
    DiveLog,
    DiveMode,
    EventFlags,
    EventType,
    GasMix,
    Sample,
)
from diveimport.services.errors import DataError, FormatError, NotThisFormat
from diveimport.services.reader import decode, read_whole_file
from diveimport.services.units import Channel, SourceFormat, add_sample_data


logger = logging.getLogger(__name__)


MKVI_MAGIC = "MkVI_Config"
MKVI_MODEL = "Poseidon MkVI Discovery"
START_LABEL = "Dive started at"

# Download tool bug: sample times from here up are garbage
CORRUPT_TIME_LIMIT = 0xFFFF * 3 // 4

BATTERY_EVENTS = os.getenv("DIVEIMPORT_MKVI_BATTERY_EVENTS", "0") not in ("0", "false", "False")

ROW_PATTERN = r"^\s*(?P<time>[+-]?\d+),\s*(?P<channel>[+-]?\d+),\s*(?P<value>[+-]?\d+)"
_START_PATTERN = re.compile(
    r"\s*([+-]?\d+)-\s*([+-]?\d+)-\s*([+-]?\d+)\s*([+-]?\d+):\s*([+-]?\d+):\s*([+-]?\d+)"
)
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class SampleGroupSink(Protocol):
    def set_channel(self, channel: Channel, value: int) -> None:
        ...

    def add_event(self, name: str, type: EventType = EventType.NONE,
                  flags: EventFlags = EventFlags.NONE, value: int = 0) -> None:
        ...

    def add_gas_part(self, part: int) -> None:
        ...


# ---------------------------------------------------------------------------
# Channel effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SetField:
    channel: Channel

    def apply(self, sink: SampleGroupSink, value: int) -> None:
        sink.set_channel(self.channel, value)


@dataclass(frozen=True)
class EmitEvent:
    name: str
    type: EventType = EventType.NONE
    flags: EventFlags = EventFlags.NONE
    with_value: bool = False

    def apply(self, sink: SampleGroupSink, value: int) -> None:
        sink.add_event(self.name, self.type, self.flags, value if self.with_value else 0)


@dataclass(frozen=True)
class EmitNamedEvent:
    """Event whose name depends on the reading; unknown readings emit nothing."""

    names: dict[int, str]

    def apply(self, sink: SampleGroupSink, value: int) -> None:
        name = self.names.get(value)
        if name is not None:
            sink.add_event(name)


@dataclass(frozen=True)
class EmitCalibrationEnd:
    failed_value: int = 2

    def apply(self, sink: SampleGroupSink, value: int) -> None:
        if value == self.failed_value:
            sink.add_event("O₂ calibration failed", flags=EventFlags.END)
        sink.add_event("O₂ calibration", flags=EventFlags.END)


@dataclass(frozen=True)
class AccumulateGasChange:
    """Helium goes in the high 16 bits, oxygen in the low 16 bits."""

    shift: int

    def apply(self, sink: SampleGroupSink, value: int) -> None:
        sink.add_gas_part(value << self.shift)


CHANNEL_EFFECTS = {
    0: EmitNamedEvent({
        0: "Mouth piece position OC",
        1: "Mouth piece position CC",
        2: "Mouth piece position unknown",
        3: "Mouth piece position not connected",
    }),
    3: EmitEvent("Power off"),
    6: SetField(Channel.SENSOR1),      # PO2 cell 1 average
    7: SetField(Channel.SENSOR2),      # PO2 cell 2 average
    8: SetField(Channel.DEPTH),        # depth * 2
    11: EmitEvent("ascent", type=EventType.ASCENT),  # ascent rate alert > 10 m/s
    13: SetField(Channel.PRESSURE),    # O2 tank
    14: SetField(Channel.PRESSURE2),   # diluent tank
    20: SetField(Channel.SETPOINT),
    22: EmitCalibrationEnd(),          # 0 = OK, 2 = failed
    25: SetField(Channel.CEILING),     # max ascent depth
    31: EmitEvent("O₂ calibration", flags=EventFlags.BEGIN),
    37: SetField(Channel.NDL),         # remaining dive time
    39: SetField(Channel.TEMPERATURE),
    85: AccumulateGasChange(16),       # He diluent %
    86: AccumulateGasChange(0),        # O2 diluent %
}

if BATTERY_EVENTS:
    CHANNEL_EFFECTS[4] = EmitEvent("battery", with_value=True)  # state of charge %

# 4 battery (unless enabled), 9 max depth * 2, 10 ascent/descent rate * 2,
# 16/17 remaining time and O2 injection, 239/240/247/248 sensor validation
# and pressure test readings, 250/251 raw PO2 cells
IGNORED_CHANNELS = frozenset({4, 9, 10, 16, 17, 239, 240, 247, 248, 250, 251})


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

@dataclass
class TelemetryBuilder:
    """Turns grouped telemetry rows into samples and events on one computer."""

    dc: DiveComputer
    prev_time: int = 0
    prev_depth: int = 0
    prev_setpoint: Optional[int] = None
    prev_ndl: Optional[int] = None

    _sample: Optional[Sample] = field(default=None, repr=False)
    _time_s: int = field(default=0, repr=False)
    _seen: set = field(default_factory=set, repr=False)
    _gaschange: int = field(default=0, repr=False)

    def add_group(self, raw_time: int, rows: Iterable[tuple[int, int]]) -> None:
        time_s = raw_time if raw_time < CORRUPT_TIME_LIMIT else self.prev_time
        self.prev_time = time_s

        self._sample = self.dc.prepare_sample(time_s)
        if self._sample.time_s != time_s:
            logger.warning(f"MkVI time went back from {self._sample.time_s}s to {time_s}s, merging into the later sample")
        self._time_s = self._sample.time_s
        self._seen = set()
        self._gaschange = 0

        for channel, value in rows:
            effect = CHANNEL_EFFECTS.get(channel)
            if effect is None:
                if channel not in IGNORED_CHANNELS:
                    logger.debug(f"Unknown MkVI channel {channel} at {time_s}s")
                continue
            effect.apply(self, value)

        if self._gaschange:
            self.add_event("gaschange", EventType.GASCHANGE2, value=self._gaschange)
        if Channel.DEPTH not in self._seen:
            self.set_channel(Channel.DEPTH, self.prev_depth)
        if Channel.SETPOINT not in self._seen and self.prev_setpoint is not None:
            self.set_channel(Channel.SETPOINT, self.prev_setpoint)
        if Channel.NDL not in self._seen and self.prev_ndl is not None:
            self.set_channel(Channel.NDL, self.prev_ndl)

    def set_channel(self, channel: Channel, value: int) -> None:
        add_sample_data(self._sample, channel, SourceFormat.POSEIDON_MKVI, value)
        self._seen.add(channel)
        if channel == Channel.DEPTH:
            self.prev_depth = value
        elif channel == Channel.SETPOINT:
            self.prev_setpoint = value
        elif channel == Channel.NDL:
            self.prev_ndl = value

    def add_event(self, name: str, type: EventType = EventType.NONE,
                  flags: EventFlags = EventFlags.NONE, value: int = 0) -> None:
        self.dc.add_event(self._time_s, name, type, flags, value)

    def add_gas_part(self, part: int) -> None:
        self._gaschange += part

    def add_rows(self, rows: pd.DataFrame) -> None:
        """Feed a time/channel/value frame, one sample per run of equal times."""
        if rows.empty:
            return
        group_ids = (rows["time"] != rows["time"].shift()).cumsum()
        for _, group in rows.groupby(group_ids, sort=False):
            pairs = zip(group["channel"].tolist(), group["value"].tolist())
            self.add_group(int(group["time"].iloc[0]), pairs)


def read_telemetry(text: str) -> pd.DataFrame:
    """
    Parse 'time,channel,value' rows into an int64 frame.

    Blank lines are dropped silently; any other unparsable row is logged and
    skipped.
    """
    lines = pd.Series(text.split("\n"), dtype=object)
    lines = lines[lines.str.strip() != ""]
    parts = lines.str.extract(ROW_PATTERN)

    bad = parts.isna().any(axis=1)
    for line in lines[bad]:
        logger.warning(f"Unable to parse input: {line.rstrip()!r}")

    rows = parts[~bad]
    return pd.DataFrame(
        {column: pd.to_numeric(rows[column]).astype(np.int64) for column in ("time", "channel", "value")}
    ).reset_index(drop=True)


# ---------------------------------------------------------------------------
# Configuration file
# ---------------------------------------------------------------------------

def parse_mkvi_value(text: str, label: str) -> str:
    """Value after ': ' on the line holding label; '' if absent or unterminated."""
    line = text.find(label)
    if line < 0:
        return ""
    value = text.find(": ", line)
    end = text.find("\n", line)
    if value < 0 or end < 0:
        return ""
    if text[end - 1] == "\r":
        end -= 1
    value += 2
    if value > end:
        return ""
    return text[value:end]


def iter_extra_data(text: str) -> Iterator[tuple[str, str]]:
    """
    Configuration pairs following the start line.

    The line right after the start line is a section label and is skipped.
    Stops at the first line that is not 'key: value' or has no line break.
    """
    anchor = text.find(START_LABEL)
    if anchor < 0:
        return
    lines = text[anchor:].split("\n")
    for line in lines[2:-1]:
        if line.endswith("\r"):
            line = line[:-1]
        key, sep, value = line.partition(": ")
        if not sep or not key or not value:
            break
        yield key, value


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def read_config(text: str, filename: str) -> Dive:
    """Build the dive header, computer and cylinders from the .txt file."""
    started = _START_PATTERN.match(parse_mkvi_value(text, START_LABEL))
    if not started:
        raise FormatError(f"No valid '{START_LABEL}' line in '{filename}'", filename)
    year, month, day, hour, minute, second = (int(g) for g in started.groups())
    try:
        when = calendar.timegm((year, month, day, hour, minute, second, 0, 0, 0))
    except (ValueError, OverflowError) as e:
        raise DataError(f"Invalid dive start in '{filename}': {e}", filename) from e

    dc = DiveComputer(
        model=MKVI_MODEL,
        device_id=_atoi(parse_mkvi_value(text, "Rig Serial number")),
        dive_mode=DiveMode.CCR,
        sensor_count=2,
    )
    dc.extra_data.update(iter_extra_data(text))

    helium = _atoi(parse_mkvi_value(text, "Helium percentage"))
    nitrogen = _atoi(parse_mkvi_value(text, "Nitrogen percentage"))
    cylinders = [
        Cylinder(
            use=CylinderUse.OXYGEN,
            size_ml=3000,
            working_pressure_mbar=200000,
            description="3l Mk6",
            gasmix=GasMix(o2_permille=1000),
            manually_added=True,
        ),
        Cylinder(
            use=CylinderUse.DILUENT,
            size_ml=3000,
            working_pressure_mbar=200000,
            description="3l Mk6",
            gasmix=GasMix(o2_permille=(100 - nitrogen - helium) * 10, he_permille=helium * 10),
        ),
    ]

    return Dive(when=when, computers=[dc], cylinders=cylinders)


def companion_csv(filename: Union[str, Path]) -> Path:
    return Path(filename).with_suffix(".csv")


def is_mkvi_config(buffer: bytes) -> bool:
    return buffer.startswith(MKVI_MAGIC.encode())


def parse_txt_file(
    filename: Union[str, Path],
    csv_filename: Union[str, Path, None],
    log: DiveLog,
) -> Dive:
    """
    Import one MkVI dive from its .txt/.csv pair.

    Raises NotThisFormat when the .txt lacks the MkVI magic.
    """
    filename = str(filename)
    buffer = read_whole_file(filename)
    if not is_mkvi_config(buffer):
        raise NotThisFormat(f"'{filename}' is not a Poseidon MkVI configuration", filename)

    dive = read_config(decode(buffer), filename)

    csv_filename = str(csv_filename or companion_csv(filename))
    telemetry = decode(read_whole_file(csv_filename, "Poseidon import failed: unable to read '{}'"))
    builder = TelemetryBuilder(dive.dc)
    builder.add_rows(read_telemetry(telemetry))
    dive.dc.update_duration()

    log.record_dive(dive)
    logger.info(f"Imported MkVI dive from {filename}: {len(dive.dc.samples)} samples")
    return dive
