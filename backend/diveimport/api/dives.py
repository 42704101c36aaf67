"""
API routes for imported dives.
"""

from pathlib import Path

from fastapi import APIRouter, HTTPException

from diveimport.api.schemas import (
    CylinderResponse,
    DiveComputerResponse,
    DiveDetailResponse,
    DiveSamplesResponse,
    DiveSummaryResponse,
    EventResponse,
    FolderInfoResponse,
    GasMixResponse,
    SampleResponse,
    SetFolderRequest,
)
from diveimport.models.dive import Dive
from diveimport.services.errors import DiveImportError
from diveimport.services.repository import get_repository


router = APIRouter(prefix="/dives", tags=["dives"])


def _find_dive(dive_id: str) -> Dive:
    """Look up a dive or raise the matching HTTP error."""
    repo = get_repository()
    try:
        dive = repo.get_dive(dive_id)
    except DiveImportError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if dive is None:
        raise HTTPException(status_code=404, detail=f"Dive not found: {dive_id}")
    return dive


@router.get("", response_model=list[DiveSummaryResponse])
async def list_dives():
    """
    List all imported dives.

    Files that fail to import are left out; see GET /folder for the reasons.
    """
    repo = get_repository()
    return [DiveSummaryResponse(**vars(s)) for s in repo.list_dives()]


@router.get("/{dive_id}", response_model=DiveDetailResponse)
async def get_dive(dive_id: str):
    dive = _find_dive(dive_id)

    return DiveDetailResponse(
        id=dive_id,
        number=dive.number,
        when=dive.when,
        started_at=dive.started_at.isoformat(),
        max_depth_mm=dive.dc.max_depth_mm,
        cylinders=[
            CylinderResponse(
                use=c.use.value,
                size_ml=c.size_ml,
                working_pressure_mbar=c.working_pressure_mbar,
                description=c.description,
                gasmix=GasMixResponse(o2_permille=c.gasmix.o2_permille, he_permille=c.gasmix.he_permille),
            )
            for c in dive.cylinders
        ],
        computers=[
            DiveComputerResponse(
                model=dc.model,
                device_id=dc.device_id,
                dive_mode=dc.dive_mode.value,
                sensor_count=dc.sensor_count,
                duration_s=dc.duration_s,
                sample_count=len(dc.samples),
                event_count=len(dc.events),
                extra_data=dict(dc.extra_data),
            )
            for dc in dive.computers
        ],
    )


@router.get("/{dive_id}/samples", response_model=DiveSamplesResponse)
async def get_dive_samples(dive_id: str):
    """
    Get the sample profile and events of a dive.

    Units are canonical: mm, mK, mbar, seconds.
    """
    dc = _find_dive(dive_id).dc

    return DiveSamplesResponse(
        dive_id=dive_id,
        samples=[SampleResponse(**vars(s)) for s in dc.samples],
        events=[
            EventResponse(time_s=e.time_s, name=e.name, type=int(e.type), flags=int(e.flags), value=e.value)
            for e in dc.events
        ],
    )


# ============================================================================
# Folder Management Routes
# ============================================================================

folder_router = APIRouter(prefix="/folder", tags=["folder"])


@folder_router.get("", response_model=FolderInfoResponse)
async def get_folder_info():
    """Get information about the current data folder."""
    repo = get_repository()

    return FolderInfoResponse(
        path=str(repo.data_folder) if repo.data_folder else None,
        file_count=repo.file_count,
        failed=repo.failed_imports(),
    )


@folder_router.post("", response_model=FolderInfoResponse)
async def set_folder(request: SetFolderRequest):
    """
    Set the data folder to scan for dive logs.

    This will clear the current cache and re-scan.
    """
    repo = get_repository()

    path = Path(request.path)
    if not path.exists():
        raise HTTPException(status_code=400, detail=f"Folder does not exist: {request.path}")
    if not path.is_dir():
        raise HTTPException(status_code=400, detail=f"Path is not a directory: {request.path}")

    count = repo.set_data_folder(path)

    return FolderInfoResponse(path=str(path), file_count=count)


@folder_router.post("/rescan", response_model=FolderInfoResponse)
async def rescan_folder():
    """Rescan the current data folder for new dive logs."""
    repo = get_repository()

    if repo.data_folder is None:
        raise HTTPException(status_code=400, detail="No data folder set")

    count = repo.set_data_folder(repo.data_folder)

    return FolderInfoResponse(path=str(repo.data_folder), file_count=count)
