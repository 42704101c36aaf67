"""
Canonical dive log data model.

All imported dive data is normalized into this structure with:
- fixed units (mm, mK, mbar, ml, seconds, permille)
- UTC epoch start times
- strictly time-ordered, forward-filled samples
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum, IntEnum, IntFlag
from typing import Optional


MAX_TANK_SENSORS = 2  # tank pressure slots per sample
MAX_O2_SENSORS = 2    # O2 cell slots per sample


class DiveMode(Enum):
    """Breathing mode recorded by a dive computer."""

    OC = "oc"
    CCR = "ccr"
    PSCR = "pscr"
    FREEDIVE = "freedive"


class CylinderUse(Enum):
    """What a cylinder feeds."""

    OC_GAS = "oc-gas"
    DILUENT = "diluent"
    OXYGEN = "oxygen"


class EventType(IntEnum):
    """Event type codes (libdivecomputer numbering)."""

    NONE = 0
    ASCENT = 3
    GASCHANGE2 = 25


class EventFlags(IntFlag):
    """Begin/end markers for events that span time."""

    NONE = 0
    BEGIN = 1
    END = 2


@dataclass
class GasMix:
    """Gas fractions in permille. Nitrogen is the remainder."""

    o2_permille: int = 0
    he_permille: int = 0


@dataclass
class Cylinder:
    """One gas supply used in a dive."""

    use: CylinderUse = CylinderUse.OC_GAS
    size_ml: int = 0
    working_pressure_mbar: int = 0
    description: str = ""
    gasmix: GasMix = field(default_factory=GasMix)
    manually_added: bool = False
    bestmix_o2: bool = False
    bestmix_he: bool = False


@dataclass
class Sample:
    """
    One timestamped telemetry snapshot.

    A value of None means the channel has not been reported yet.
    """

    time_s: int
    depth_mm: Optional[int] = None
    temperature_mk: Optional[int] = None
    pressure_mbar: list[Optional[int]] = field(default_factory=lambda: [None] * MAX_TANK_SENSORS)
    setpoint_mbar: Optional[int] = None
    o2sensor_mbar: list[Optional[int]] = field(default_factory=lambda: [None] * MAX_O2_SENSORS)
    ndl_s: Optional[int] = None
    ceiling_mm: Optional[int] = None


@dataclass
class Event:
    """A discrete occurrence during a dive."""

    time_s: int
    name: str
    type: EventType = EventType.NONE
    flags: EventFlags = EventFlags.NONE
    value: int = 0

    def gas_percentages(self) -> tuple[int, int]:
        """Unpack a gas change payload into (oxygen %, helium %)."""
        if self.type != EventType.GASCHANGE2:
            raise ValueError(f"Event '{self.name}' is not a gas change")
        return self.value & 0xFFFF, self.value >> 16


@dataclass
class DiveComputer:
    """One dive computer's view of a dive."""

    model: str = ""
    device_id: int = 0
    dive_mode: DiveMode = DiveMode.OC
    sensor_count: int = 0
    samples: list[Sample] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    duration_s: int = 0
    extra_data: dict[str, str] = field(default_factory=dict)

    def prepare_sample(self, time_s: int) -> Sample:
        """
        Return the sample to fill for time_s.

        New samples carry every channel of the previous sample forward. A
        time at or before the last sample folds into that sample so sample
        times stay strictly increasing.
        """
        if not self.samples:
            sample = Sample(time_s=time_s)
            self.samples.append(sample)
            return sample

        last = self.samples[-1]
        if time_s <= last.time_s:
            return last

        sample = replace(
            last,
            time_s=time_s,
            pressure_mbar=list(last.pressure_mbar),
            o2sensor_mbar=list(last.o2sensor_mbar),
        )
        self.samples.append(sample)
        return sample

    def add_event(
        self,
        time_s: int,
        name: str,
        type: EventType = EventType.NONE,
        flags: EventFlags = EventFlags.NONE,
        value: int = 0,
    ) -> Event:
        event = Event(time_s=time_s, name=name, type=type, flags=flags, value=value)
        self.events.append(event)
        return event

    def update_duration(self) -> None:
        if self.samples:
            self.duration_s = self.samples[-1].time_s

    @property
    def max_depth_mm(self) -> int:
        depths = [s.depth_mm for s in self.samples if s.depth_mm is not None]
        return max(depths) if depths else 0


@dataclass
class Dive:
    """One recorded dive. Always carries at least one dive computer."""

    when: int = 0  # UTC epoch seconds
    number: int = 0
    computers: list[DiveComputer] = field(default_factory=lambda: [DiveComputer()])
    cylinders: list[Cylinder] = field(default_factory=list)

    @property
    def dc(self) -> DiveComputer:
        return self.computers[0]

    @property
    def started_at(self) -> datetime:
        return datetime.fromtimestamp(self.when, tz=timezone.utc)


@dataclass
class DiveLog:
    """Append-only collection of imported dives."""

    dives: list[Dive] = field(default_factory=list)

    def record_dive(self, dive: Dive) -> None:
        if not dive.computers:
            raise ValueError("A dive needs at least one dive computer")
        self.dives.append(dive)

    def extend(self, other: "DiveLog") -> None:
        for dive in other.dives:
            self.record_dive(dive)

    def __len__(self) -> int:
        return len(self.dives)


@dataclass
class DiveSummary:
    """Lightweight summary of a dive for listing."""

    id: str
    source_file: str
    source_format: str
    number: int
    started_at: str
    duration_s: int
    sample_count: int
    max_depth_mm: int
    model: str

    @classmethod
    def from_dive(cls, dive_id: str, dive: Dive, source_file: str, source_format: str) -> "DiveSummary":
        return cls(
            id=dive_id,
            source_file=source_file,
            source_format=source_format,
            number=dive.number,
            started_at=dive.started_at.isoformat(),
            duration_s=dive.dc.duration_s,
            sample_count=len(dive.dc.samples),
            max_depth_mm=dive.dc.max_depth_mm,
            model=dive.dc.model,
        )
