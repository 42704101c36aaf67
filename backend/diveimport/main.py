"""
Dive Log Import - FastAPI Backend

Main application entry point and configuration.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from diveimport.api.dives import router as dives_router, folder_router
from diveimport.services.repository import init_repository, get_repository


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Default data folder (can be overridden via API or environment)
DEFAULT_DATA_FOLDER = Path("./data/dives")
DATA_FOLDER_ENV = "DIVEIMPORT_DATA_FOLDER"
APP_NAME = "Dive Log Import"
APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {APP_NAME} backend")

    repo = get_repository()
    if repo.data_folder is None:
        data_folder = Path(os.getenv(DATA_FOLDER_ENV, str(DEFAULT_DATA_FOLDER)))
        if data_folder.exists():
            init_repository(data_folder)
            logger.info(f"Initialized repository with folder: {data_folder}")
        else:
            logger.info(f"Default data folder not found: {data_folder}")
            logger.info("Use POST /folder to set data folder")

    yield

    logger.info(f"Shutting down {APP_NAME} backend")


app = FastAPI(
    title=APP_NAME,
    description="""
    Read-only browser over imported dive computer logs.

    ## Formats
    - Poseidon MkVI (.txt configuration + .csv telemetry)
    - DAN DL7 (.dl7, .zxu, .zxl; needs a transform engine)
    - Seabear CSV (needs a transform engine)
    - Single-channel CSV exports (.dpt, .lvd, .tmp, .hp1, .csv)

    ## Data Flow
    1. Set data folder via POST /folder
    2. List imported dives via GET /dives
    3. Get dive metadata via GET /dives/{id}
    4. Get the profile via GET /dives/{id}/samples
    """,
    version=APP_VERSION,
    lifespan=lifespan,
)


# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(dives_router)
app.include_router(folder_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    repo = get_repository()

    return {
        "status": "healthy",
        "data_folder": str(repo.data_folder) if repo.data_folder else None,
        "file_count": repo.file_count,
    }
