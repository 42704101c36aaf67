"""
API schemas (Pydantic models) for request/response validation.
"""

from typing import Optional
from pydantic import BaseModel


# ============================================================================
# Dive Schemas
# ============================================================================

class DiveSummaryResponse(BaseModel):
    """Summary of a dive for listing."""
    id: str
    source_file: str
    source_format: str
    number: int
    started_at: str
    duration_s: int
    sample_count: int
    max_depth_mm: int
    model: str


class GasMixResponse(BaseModel):
    o2_permille: int
    he_permille: int


class CylinderResponse(BaseModel):
    """Cylinder fitted for the dive."""
    use: str
    size_ml: int
    working_pressure_mbar: int
    description: str
    gasmix: GasMixResponse


class DiveComputerResponse(BaseModel):
    """Dive computer metadata, without samples."""
    model: str
    device_id: int
    dive_mode: str
    sensor_count: int
    duration_s: int
    sample_count: int
    event_count: int
    extra_data: dict[str, str]


class DiveDetailResponse(BaseModel):
    """Full metadata for a dive."""
    id: str
    number: int
    when: int  # UTC epoch seconds
    started_at: str
    max_depth_mm: int
    cylinders: list[CylinderResponse]
    computers: list[DiveComputerResponse]


class SampleResponse(BaseModel):
    """One profile sample in canonical units. None = not reported."""
    time_s: int
    depth_mm: Optional[int] = None
    temperature_mk: Optional[int] = None
    pressure_mbar: list[Optional[int]]
    setpoint_mbar: Optional[int] = None
    o2sensor_mbar: list[Optional[int]]
    ndl_s: Optional[int] = None
    ceiling_mm: Optional[int] = None


class EventResponse(BaseModel):
    time_s: int
    name: str
    type: int
    flags: int
    value: int


class DiveSamplesResponse(BaseModel):
    """Profile of the first dive computer."""
    dive_id: str
    samples: list[SampleResponse]
    events: list[EventResponse]


# ============================================================================
# Folder Management Schemas
# ============================================================================

class SetFolderRequest(BaseModel):
    """Request to set the data folder."""
    path: str


class FolderInfoResponse(BaseModel):
    """Information about the current data folder."""
    path: Optional[str]
    file_count: int
    failed: dict[str, str] = {}


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    code: Optional[str] = None
