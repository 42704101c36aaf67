"""
Format dispatcher.

Picks the parser for a file, either from an explicit template name or by
walking the adapters in order. An adapter that declines with NotThisFormat
lets the next one try; any other error ends the import.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from diveimport.models.dive import DiveLog
from diveimport.models.params import NamedParameterList
from diveimport.services.csv_import import MANUAL_TEMPLATE, parse_csv_file, parse_manual_file
from diveimport.services.dan import DL7_TEMPLATE
from diveimport.services.errors import NotThisFormat
from diveimport.services.generic_csv import channel_for, parse_generic_csv_file
from diveimport.services.poseidon import parse_txt_file
from diveimport.services.seabear import parse_seabear_log
from diveimport.services.transform import TransformEngine, TransformLimits


logger = logging.getLogger(__name__)


DL7_SUFFIXES = (".dl7", ".zxu", ".zxl")


class DiveLogAdapter(Protocol):
    """Interface for dive log format adapters."""

    name: str

    def can_parse(self, filepath: Path) -> bool:
        ...

    def parse(
        self,
        filepath: Path,
        log: DiveLog,
        params: NamedParameterList,
        engine: Optional[TransformEngine],
    ) -> None:
        ...


class PoseidonAdapter:
    """MkVI .txt configuration with its .csv telemetry beside it."""

    name = "poseidon_mkvi"

    def can_parse(self, filepath: Path) -> bool:
        return filepath.suffix.lower() == ".txt"

    def parse(self, filepath, log, params, engine) -> None:
        parse_txt_file(filepath, None, log)


class DanAdapter:
    name = "dl7"

    def can_parse(self, filepath: Path) -> bool:
        return filepath.suffix.lower() in DL7_SUFFIXES

    def parse(self, filepath, log, params, engine) -> None:
        parse_csv_file(filepath, params, DL7_TEMPLATE, log, engine)


class GenericCsvAdapter:
    """Single-channel exports; the suffix names the channel."""

    name = "generic_csv"

    def can_parse(self, filepath: Path) -> bool:
        return channel_for(filepath) is not None

    def parse(self, filepath, log, params, engine) -> None:
        parse_generic_csv_file(filepath, log)


class SeabearAdapter:
    name = "seabear"

    def can_parse(self, filepath: Path) -> bool:
        return filepath.suffix.lower() == ".csv"

    def parse(self, filepath, log, params, engine) -> None:
        parse_seabear_log(filepath, log, engine, params)


ADAPTERS: list[DiveLogAdapter] = [
    PoseidonAdapter(),
    DanAdapter(),
    GenericCsvAdapter(),
    SeabearAdapter(),
]


class DiveImporter:
    """
    Imports dive log files into a DiveLog.

    The transform engine, if any, is configured once here and shared by
    every templated import.
    """

    def __init__(self, engine: Optional[TransformEngine] = None, limits: Optional[TransformLimits] = None):
        self.engine = engine
        if engine is not None:
            engine.configure(limits or TransformLimits())

    def import_file(
        self,
        path: Union[str, Path],
        log: DiveLog,
        template: Optional[str] = None,
        params: Optional[NamedParameterList] = None,
    ) -> str:
        """
        Import path into log and return the name of the format used.

        Either every dive of the file is appended to log or none is.
        """
        path = Path(path)
        params = params.copy() if params is not None else NamedParameterList()
        staging = DiveLog()

        if template == MANUAL_TEMPLATE:
            parse_manual_file(path, params, staging, self.engine)
            format_name = "manual_csv"
        elif template == DL7_TEMPLATE:
            parse_csv_file(path, params, template, staging, self.engine)
            format_name = DanAdapter.name
        elif template is not None:
            parse_csv_file(path, params, template, staging, self.engine)
            format_name = f"template:{template}"
        else:
            format_name = self._detect_and_parse(path, staging, params)

        log.extend(staging)
        logger.info(f"Imported {len(staging)} dives from {path.name} as {format_name}")
        return format_name

    def _detect_and_parse(self, path: Path, staging: DiveLog, params: NamedParameterList) -> str:
        for adapter in ADAPTERS:
            if not adapter.can_parse(path):
                continue
            # each attempt starts from the caller's parameters
            try:
                adapter.parse(path, staging, params.copy(), self.engine)
            except NotThisFormat as e:
                logger.debug(f"{adapter.name} declined {path.name}: {e}")
                continue
            return adapter.name

        raise NotThisFormat(f"No importer recognises '{path}'", str(path))
