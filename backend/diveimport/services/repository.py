"""
Dive Repository - manages importing and caching of dive log files.

Scans a folder for importable files, imports each one once, and serves the
resulting dives by id. Nothing is written back.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from diveimport.models.dive import Dive, DiveLog, DiveSummary
from diveimport.services.errors import DiveImportError
from diveimport.services.generic_csv import SUFFIX_CHANNELS
from diveimport.services.importer import DL7_SUFFIXES, DiveImporter
from diveimport.services.transform import TransformEngine


logger = logging.getLogger(__name__)


IMPORTABLE_SUFFIXES = frozenset({".txt", *DL7_SUFFIXES, *SUFFIX_CHANNELS})


@dataclass
class ImportedFile:
    """Dives imported from one file, or the reason the import failed."""

    path: Path
    source_format: Optional[str] = None
    dives: list[Dive] = field(default_factory=list)
    error: Optional[str] = None


class DiveRepository:
    """
    Repository for dives imported from a folder of dive log files.

    Files are imported lazily on first access and cached in memory.
    Dive ids are '<file id>-<index in file>'.
    """

    def __init__(self, data_folder: Optional[Path] = None, engine: Optional[TransformEngine] = None):
        """
        Initialize the repository.

        Args:
            data_folder: Folder containing dive logs. If None, must be set later.
            engine: Transform engine for templated formats (DL7, Seabear).
        """
        self._data_folder: Optional[Path] = data_folder
        self._importer = DiveImporter(engine)
        self._cache: dict[str, ImportedFile] = {}
        self._index: dict[str, Path] = {}  # file id -> filepath

        if data_folder is not None:
            self.scan_folder(data_folder)

    @property
    def data_folder(self) -> Optional[Path]:
        return self._data_folder

    @property
    def file_count(self) -> int:
        return len(self._index)

    def set_data_folder(self, folder: Path) -> int:
        """
        Set the data folder and scan it.

        Returns:
            Number of importable files found
        """
        self._data_folder = folder
        self._cache.clear()
        self._index.clear()
        return self.scan_folder(folder)

    def scan_folder(self, folder: Path) -> int:
        """
        Scan a folder for dive log files and build the index.

        MkVI telemetry .csv files are not indexed on their own; they are
        read through their .txt configuration.
        """
        if not folder.exists():
            logger.warning(f"Data folder does not exist: {folder}")
            return 0

        count = 0
        for path in sorted(folder.iterdir()):
            if not path.is_file() or path.suffix.lower() not in IMPORTABLE_SUFFIXES:
                continue
            if self._is_mkvi_telemetry(path):
                logger.debug(f"Skipping MkVI telemetry file {path.name}")
                continue
            file_id = self._filepath_to_id(path)
            self._index[file_id] = path
            count += 1
            logger.debug(f"Indexed dive log: {file_id} -> {path.name}")

        logger.info(f"Scanned {count} dive log files in {folder}")
        return count

    def list_dives(self) -> list[DiveSummary]:
        """Summaries of every dive that imported cleanly, oldest first."""
        summaries = []
        for file_id in self._index:
            imported = self._load_file(file_id)
            for index, dive in enumerate(imported.dives):
                summaries.append(DiveSummary.from_dive(
                    f"{file_id}-{index}",
                    dive,
                    imported.path.name,
                    imported.source_format or "",
                ))

        summaries.sort(key=lambda s: (s.started_at, s.id))
        return summaries

    def get_dive(self, dive_id: str) -> Optional[Dive]:
        """
        Get a dive by id.

        Returns None for unknown ids. Raises DiveImportError if the file
        holding the dive could not be imported.
        """
        file_id, _, index = dive_id.rpartition("-")
        if file_id not in self._index or not index.isdigit():
            return None

        imported = self._load_file(file_id)
        if imported.error is not None:
            raise DiveImportError(imported.error, str(imported.path))
        if int(index) >= len(imported.dives):
            return None
        return imported.dives[int(index)]

    def failed_imports(self) -> dict[str, str]:
        """File name -> error for every file that failed to import so far."""
        return {
            f.path.name: f.error
            for f in self._cache.values()
            if f.error is not None
        }

    def _load_file(self, file_id: str) -> ImportedFile:
        """Import a file once and cache the outcome, failures included."""
        if file_id in self._cache:
            return self._cache[file_id]

        path = self._index[file_id]
        log = DiveLog()
        try:
            source_format = self._importer.import_file(path, log)
            imported = ImportedFile(path, source_format, list(log.dives))
        except DiveImportError as e:
            logger.error(f"Failed to import {path}: {e}")
            imported = ImportedFile(path, error=str(e))

        self._cache[file_id] = imported
        logger.debug(f"Loaded and cached {path.name}: {len(imported.dives)} dives")
        return imported

    def _is_mkvi_telemetry(self, path: Path) -> bool:
        if path.suffix.lower() != ".csv":
            return False
        return any(path.with_suffix(suffix).is_file() for suffix in (".txt", ".TXT"))

    def _filepath_to_id(self, filepath: Path) -> str:
        """Generate a consistent ID from filepath."""
        # Use filename + size + mtime hash for consistency
        stat = filepath.stat()
        id_string = f"{filepath.name}_{stat.st_size}_{stat.st_mtime}"
        return hashlib.sha256(id_string.encode()).hexdigest()[:16]


# Global repository instance (set up by app initialization)
_repository: Optional[DiveRepository] = None


def get_repository() -> DiveRepository:
    """Get the global repository instance."""
    global _repository
    if _repository is None:
        _repository = DiveRepository()
    return _repository


def init_repository(data_folder: Path, engine: Optional[TransformEngine] = None) -> DiveRepository:
    """Initialize the global repository with a data folder."""
    global _repository
    _repository = DiveRepository(data_folder, engine)
    return _repository
