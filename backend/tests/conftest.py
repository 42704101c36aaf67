"""
Shared fixtures: a transform engine stand-in that records what it is asked
to materialize.
"""

from dataclasses import dataclass
from typing import Optional

import pytest

from diveimport.models.dive import Dive, DiveLog
from diveimport.models.params import NamedParameterList
from diveimport.services.errors import DataError
from diveimport.services.transform import TransformLimits


@dataclass
class Materialized:
    template: str
    buffer: bytes
    params: list[tuple[str, str]]


class RecordingTransformEngine:
    """Records every call and adds one numbered dive per call."""

    def __init__(self, fail_on: Optional[int] = None, error: Optional[Exception] = None):
        self.fail_on = fail_on
        self.error = error
        self.limits: Optional[TransformLimits] = None
        self.configure_calls = 0
        self.calls: list[Materialized] = []

    def configure(self, limits: TransformLimits) -> None:
        self.limits = limits
        self.configure_calls += 1

    def materialize(self, template: str, buffer: bytes, params: NamedParameterList, log: DiveLog) -> None:
        self.calls.append(Materialized(template, buffer, list(params)))
        if self.fail_on is not None and len(self.calls) == self.fail_on:
            if self.error is not None:
                raise self.error
            raise DataError(f"template {template} rejected record {len(self.calls)}")
        log.record_dive(Dive(number=len(self.calls)))


@pytest.fixture
def engine():
    return RecordingTransformEngine()


@pytest.fixture
def make_engine():
    return RecordingTransformEngine


DL7_TWO_DIVES = (
    "FSH|^~\\&|DAN|DL7|20230116|\n"
    "ZRH|^~\\&|1|Diver|\n"
    "ZAR{}\n"
    "ZDH|1|42|M|Q10S|20230115102030|18|12|1|0|0\n"
    "ZDP{\n"
    "|0|0|\n"
    "|10|5.0|\n"
    "ZDP}\n"
    "ZDT|1|42|30.5|20230115110000|14|100\n"
    "ZDH|2|43|M|Q10S|20230116090000|20||||\n"
    "ZDT|2|43|12.0|20230116093000|16|\n"
)


MKVI_CONFIG = (
    "MkVI_Config\n"
    "Rig Serial number: 12345\n"
    "Helium percentage: 20\n"
    "Nitrogen percentage: 59\n"
    "Dive started at: 2023-01-15 10:20:30\n"
    "[Settings]\n"
    "Setpoint high: 1.3\n"
    "Setpoint low: 0.7\n"
    "\n"
)

MKVI_TELEMETRY = (
    "0,8,0\n"
    "0,20,13\n"
    "0,37,99\n"
    "10,8,20\n"
    "10,39,100\n"
    "10,85,35\n"
    "10,86,21\n"
    "20,6,120\n"
    "garbage line\n"
    "70000,8,30\n"
    "30,11,1\n"
)

SEABEAR_EXPORT = (
    "Seabear export\n"
    "Serial number: 1234\n"
    "xx2023-01-15 10:20:30\n"
    "\n"
    "time;depth\n"
    "0;0\n"
)


@pytest.fixture
def dl7_file(tmp_path):
    path = tmp_path / "export.dl7"
    path.write_text(DL7_TWO_DIVES)
    return path


@pytest.fixture
def mkvi_files(tmp_path):
    """A .txt/.csv pair as written by the MkVI download tool."""
    txt = tmp_path / "dive.txt"
    txt.write_text(MKVI_CONFIG)
    (tmp_path / "dive.csv").write_text(MKVI_TELEMETRY)
    return txt


@pytest.fixture
def seabear_file(tmp_path):
    path = tmp_path / "seabear.csv"
    path.write_text(SEABEAR_EXPORT)
    return path
