"""
Unit normalization for raw channel readings.

Every source format stores its channels in its own units. This module maps
(raw value, channel, source format) onto a canonical Sample field:
depth in mm, temperature in mK, pressure in mbar, times in seconds.
Converters accept scalars or numpy arrays.
"""

from enum import Enum
from typing import Callable, Union

import numpy as np
from numpy.typing import NDArray

from diveimport.models.dive import Sample


ZERO_C_IN_MKELVIN = 273150
MM_PER_FOOT = 304.8
PSI_PER_BAR = 14.5037738

Number = Union[float, NDArray[np.float64]]


class SourceFormat(Enum):
    """Formats that build samples directly instead of through a template."""

    GENERIC_CSV = "generic_csv"
    POSEIDON_MKVI = "poseidon_mkvi"


class Channel(Enum):
    """Sample channel a raw reading belongs to."""

    DEPTH = "depth"
    TEMPERATURE = "temperature"
    PRESSURE = "pressure"    # first tank sensor
    PRESSURE2 = "pressure2"  # second tank sensor
    SETPOINT = "setpoint"
    SENSOR1 = "sensor1"
    SENSOR2 = "sensor2"
    NDL = "ndl"
    CEILING = "ceiling"


def round_half_away(value: Number):
    """Round to nearest integer, ties away from zero."""
    rounded = np.sign(value) * np.floor(np.abs(value) + 0.5)
    if np.ndim(rounded) == 0:
        return int(rounded)
    return rounded.astype(np.int64)


def feet_to_mm(feet: Number):
    return round_half_away(np.multiply(feet, MM_PER_FOOT))


def fahrenheit_to_mkelvin(fahrenheit: Number):
    return round_half_away(np.subtract(fahrenheit, 32.0) * 1000.0 / 1.8 + ZERO_C_IN_MKELVIN)


def celsius_to_mkelvin(celsius: Number):
    return round_half_away(np.multiply(celsius, 1000.0) + ZERO_C_IN_MKELVIN)


def psi_to_mbar(psi: Number):
    return round_half_away(np.divide(psi, PSI_PER_BAR) * 1000.0)


def _scaled(factor: float) -> Callable[[Number], object]:
    return lambda value: round_half_away(np.multiply(value, factor))


# (format, channel) -> converter
CONVERSIONS: dict[tuple[SourceFormat, Channel], Callable[[Number], object]] = {
    (SourceFormat.GENERIC_CSV, Channel.DEPTH): feet_to_mm,
    (SourceFormat.GENERIC_CSV, Channel.TEMPERATURE): fahrenheit_to_mkelvin,
    # the on-disk pressure column counts quarter-PSI
    (SourceFormat.GENERIC_CSV, Channel.PRESSURE): lambda value: psi_to_mbar(np.multiply(value, 4)),
    # MkVI depth is stored doubled
    (SourceFormat.POSEIDON_MKVI, Channel.DEPTH): _scaled(0.5 * 1000),
    (SourceFormat.POSEIDON_MKVI, Channel.TEMPERATURE): lambda value: celsius_to_mkelvin(np.multiply(value, 0.2)),
    (SourceFormat.POSEIDON_MKVI, Channel.PRESSURE): _scaled(1000),
    (SourceFormat.POSEIDON_MKVI, Channel.PRESSURE2): _scaled(1000),
    (SourceFormat.POSEIDON_MKVI, Channel.SETPOINT): _scaled(10),
    (SourceFormat.POSEIDON_MKVI, Channel.SENSOR1): _scaled(10),
    (SourceFormat.POSEIDON_MKVI, Channel.SENSOR2): _scaled(10),
    (SourceFormat.POSEIDON_MKVI, Channel.NDL): _scaled(60),
    (SourceFormat.POSEIDON_MKVI, Channel.CEILING): _scaled(1000),
}


def convert(value: Number, channel: Channel, source: SourceFormat):
    """Convert a raw reading (or array of readings) to canonical units."""
    try:
        converter = CONVERSIONS[(source, channel)]
    except KeyError:
        raise ValueError(f"No {channel.value} conversion for {source.value}") from None
    return converter(value)


def add_sample_data(sample: Sample, channel: Channel, source: SourceFormat, value: float) -> None:
    """Convert one raw reading and store it on the sample."""
    store(sample, channel, convert(value, channel, source))


def store(sample: Sample, channel: Channel, converted: int) -> None:
    """Put an already converted value on the sample field channel maps to."""
    if channel == Channel.DEPTH:
        sample.depth_mm = converted
    elif channel == Channel.TEMPERATURE:
        sample.temperature_mk = converted
    elif channel == Channel.PRESSURE:
        sample.pressure_mbar[0] = converted
    elif channel == Channel.PRESSURE2:
        sample.pressure_mbar[1] = converted
    elif channel == Channel.SETPOINT:
        sample.setpoint_mbar = converted
    elif channel == Channel.SENSOR1:
        sample.o2sensor_mbar[0] = converted
    elif channel == Channel.SENSOR2:
        sample.o2sensor_mbar[1] = converted
    elif channel == Channel.NDL:
        sample.ndl_s = converted
    elif channel == Channel.CEILING:
        sample.ceiling_mm = converted
