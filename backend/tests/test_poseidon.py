"""
Tests for the Poseidon MkVI importer.
"""

import calendar
import logging

import pytest

from diveimport.models.dive import CylinderUse, DiveComputer, DiveLog, DiveMode, EventFlags, EventType
from diveimport.services.errors import DataError, FormatError, ImportIOError, NotThisFormat
from diveimport.services.poseidon import (
    CORRUPT_TIME_LIMIT,
    TelemetryBuilder,
    iter_extra_data,
    parse_mkvi_value,
    parse_txt_file,
    read_telemetry,
)


def build(telemetry: str) -> DiveComputer:
    dc = DiveComputer()
    TelemetryBuilder(dc).add_rows(read_telemetry(telemetry))
    return dc


class TestMkviImport:
    """End-to-end import of a .txt/.csv pair."""

    def test_header(self, mkvi_files):
        log = DiveLog()
        dive = parse_txt_file(mkvi_files, None, log)

        assert log.dives == [dive]
        assert dive.when == calendar.timegm((2023, 1, 15, 10, 20, 30, 0, 0, 0))
        dc = dive.dc
        assert dc.model == "Poseidon MkVI Discovery"
        assert dc.device_id == 12345
        assert dc.dive_mode == DiveMode.CCR
        assert dc.sensor_count == 2

    def test_extra_data_skips_section_label(self, mkvi_files):
        dive = parse_txt_file(mkvi_files, None, DiveLog())
        assert dive.dc.extra_data == {"Setpoint high": "1.3", "Setpoint low": "0.7"}

    def test_cylinders(self, mkvi_files):
        oxygen, diluent = parse_txt_file(mkvi_files, None, DiveLog()).cylinders

        assert oxygen.use == CylinderUse.OXYGEN
        assert oxygen.gasmix.o2_permille == 1000
        assert oxygen.manually_added
        assert diluent.use == CylinderUse.DILUENT
        assert (diluent.gasmix.o2_permille, diluent.gasmix.he_permille) == (210, 200)
        for cylinder in (oxygen, diluent):
            assert cylinder.size_ml == 3000
            assert cylinder.working_pressure_mbar == 200000
            assert cylinder.description == "3l Mk6"

    def test_samples(self, mkvi_files):
        dc = parse_txt_file(mkvi_files, None, DiveLog()).dc

        assert [s.time_s for s in dc.samples] == [0, 10, 20, 30]
        assert [s.depth_mm for s in dc.samples] == [0, 10000, 15000, 15000]
        assert [s.setpoint_mbar for s in dc.samples] == [130] * 4
        assert [s.ndl_s for s in dc.samples] == [5940] * 4
        assert dc.samples[1].temperature_mk == 293150
        assert dc.samples[3].temperature_mk == 293150
        assert dc.samples[2].o2sensor_mbar[0] == 1200
        assert dc.duration_s == 30

    def test_events(self, mkvi_files):
        events = parse_txt_file(mkvi_files, None, DiveLog()).dc.events

        assert [(e.time_s, e.name, e.type) for e in events] == [
            (10, "gaschange", EventType.GASCHANGE2),
            (30, "ascent", EventType.ASCENT),
        ]
        assert events[0].gas_percentages() == (21, 35)

    def test_bad_row_logged(self, mkvi_files, caplog):
        with caplog.at_level(logging.WARNING):
            parse_txt_file(mkvi_files, None, DiveLog())
        assert "Unable to parse input" in caplog.text
        assert "garbage line" in caplog.text

    def test_explicit_csv_path(self, mkvi_files, tmp_path):
        other = tmp_path / "other.csv"
        other.write_text("5,8,4\n")

        dc = parse_txt_file(mkvi_files, other, DiveLog()).dc

        assert [(s.time_s, s.depth_mm) for s in dc.samples] == [(5, 2000)]

    def test_empty_telemetry(self, mkvi_files, tmp_path):
        (tmp_path / "dive.csv").write_text("")
        dive = parse_txt_file(mkvi_files, None, DiveLog())

        assert dive.dc.samples == []
        assert dive.dc.duration_s == 0


class TestMkviErrors:

    def test_missing_magic(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("shopping list\n")
        with pytest.raises(NotThisFormat):
            parse_txt_file(path, None, DiveLog())

    def test_missing_telemetry(self, mkvi_files, tmp_path):
        (tmp_path / "dive.csv").unlink()
        log = DiveLog()

        with pytest.raises(ImportIOError, match="Poseidon import failed"):
            parse_txt_file(mkvi_files, None, log)
        assert len(log) == 0

    def test_bad_start_line(self, tmp_path):
        path = tmp_path / "dive.txt"
        path.write_text("MkVI_Config\nDive started at: yesterday\n")
        (tmp_path / "dive.csv").write_text("")

        with pytest.raises(FormatError):
            parse_txt_file(path, None, DiveLog())

    def test_impossible_date(self, tmp_path):
        path = tmp_path / "dive.txt"
        path.write_text("MkVI_Config\nDive started at: 2023-13-01 00:00:00\n")
        (tmp_path / "dive.csv").write_text("")

        with pytest.raises(DataError):
            parse_txt_file(path, None, DiveLog())


class TestTelemetryBuilder:
    """Channel table and sample grouping."""

    def test_rows_sharing_time_form_one_sample(self):
        dc = build("120,8,10\n120,20,13\n121,39,100\n")

        assert [s.time_s for s in dc.samples] == [120, 121]
        assert (dc.samples[0].depth_mm, dc.samples[0].setpoint_mbar) == (5000, 130)
        assert (dc.samples[1].depth_mm, dc.samples[1].setpoint_mbar) == (5000, 130)

    def test_depth_defaults_to_zero(self):
        dc = build("0,39,100\n")
        assert dc.samples[0].depth_mm == 0

    def test_corrupt_time_reuses_previous(self):
        dc = build(f"12,8,2\n{CORRUPT_TIME_LIMIT},8,4\n")
        assert [(s.time_s, s.depth_mm) for s in dc.samples] == [(12, 2000)]

    def test_backwards_time_merges_into_later_sample(self, caplog):
        with caplog.at_level(logging.WARNING):
            dc = build("120,8,10\n50,3,0\n50,8,40\n")

        assert [(s.time_s, s.depth_mm) for s in dc.samples] == [(120, 20000)]
        assert [(e.time_s, e.name) for e in dc.events] == [(120, "Power off")]
        assert "went back from 120s to 50s" in caplog.text

    def test_time_below_limit_kept(self):
        dc = build(f"12,8,2\n{CORRUPT_TIME_LIMIT - 1},8,4\n")
        assert [s.time_s for s in dc.samples] == [12, CORRUPT_TIME_LIMIT - 1]

    def test_setpoint_absent_until_reported(self):
        dc = build("0,8,2\n1,20,12\n2,8,2\n")
        assert [s.setpoint_mbar for s in dc.samples] == [None, 120, 120]

    def test_calibration(self):
        dc = build("5,31,0\n5,22,2\n6,31,0\n6,22,0\n")
        assert [(e.time_s, e.name, e.flags) for e in dc.events] == [
            (5, "O₂ calibration", EventFlags.BEGIN),
            (5, "O₂ calibration failed", EventFlags.END),
            (5, "O₂ calibration", EventFlags.END),
            (6, "O₂ calibration", EventFlags.BEGIN),
            (6, "O₂ calibration", EventFlags.END),
        ]

    @pytest.mark.parametrize("value,name", [
        (0, "Mouth piece position OC"),
        (1, "Mouth piece position CC"),
        (2, "Mouth piece position unknown"),
        (3, "Mouth piece position not connected"),
    ])
    def test_mouthpiece(self, value, name):
        dc = build(f"0,0,{value}\n")
        assert [e.name for e in dc.events] == [name]

    def test_unknown_mouthpiece_value(self):
        assert build("0,0,7\n").events == []

    def test_power_off(self):
        assert [e.name for e in build("9,3,0\n").events] == ["Power off"]

    def test_ignored_and_unknown_channels(self):
        dc = build("0,4,80\n0,9,40\n0,250,99\n0,123,1\n")
        assert dc.events == []
        assert len(dc.samples) == 1

    def test_pressures_and_ceiling(self):
        sample = build("0,13,150\n0,14,180\n0,25,3\n").samples[0]
        assert sample.pressure_mbar == [150000, 180000]
        assert sample.ceiling_mm == 3000

    def test_oxygen_only_gas_change(self):
        events = build("0,86,32\n").events
        assert events[0].value == 32
        assert events[0].gas_percentages() == (32, 0)


class TestConfigHelpers:

    def test_value_with_crlf(self):
        assert parse_mkvi_value("a: 1\r\nRig Serial number: 77\r\n", "Rig Serial number") == "77"

    def test_missing_label(self):
        assert parse_mkvi_value("MkVI_Config\n", "Helium percentage") == ""

    def test_unterminated_value(self):
        assert parse_mkvi_value("Helium percentage: 20", "Helium percentage") == ""

    def test_extra_data_stops_at_plain_line(self):
        text = "Dive started at: 2023-01-15 10:20:30\n[Dive]\nA: 1\nnot a pair\nB: 2\n"
        assert list(iter_extra_data(text)) == [("A", "1")]

    def test_read_telemetry_frame(self):
        frame = read_telemetry("1,8,4\n\n 2, 39, 100\n")
        assert frame.to_dict("list") == {"time": [1, 2], "channel": [8, 39], "value": [4, 100]}
