"""
Boundary to the external template transform engine.

Templated formats (DL7, Seabear, generic templated CSV) do not build dives
themselves: they wrap the CSV payload in a tag named after the template and
hand it, with a NamedParameterList, to a TransformEngine that appends the
resulting dives to a DiveLog.
"""

import logging
import os
import shlex
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from diveimport.models.dive import DiveLog
from diveimport.models.params import NamedParameterList
from diveimport.services.errors import DataError, DiveImportError, TransformUnavailable
from diveimport.services.xml_wrap import wrap_in_tag


logger = logging.getLogger(__name__)


TRANSFORM_MAX_DEPTH = int(os.getenv("DIVEIMPORT_TRANSFORM_MAX_DEPTH", "30000"))
TRANSFORM_MAX_VARS = int(os.getenv("DIVEIMPORT_TRANSFORM_MAX_VARS", "150000"))


@dataclass(frozen=True)
class TransformLimits:
    """Recursion and variable limits the engine must allow for dive templates."""

    max_depth: int = TRANSFORM_MAX_DEPTH
    max_vars: int = TRANSFORM_MAX_VARS


class TransformEngine(Protocol):
    """Interface to the template engine that materializes dives."""

    def configure(self, limits: TransformLimits) -> None:
        ...

    def materialize(
        self,
        template: str,
        buffer: bytes,
        params: NamedParameterList,
        log: DiveLog,
    ) -> None:
        ...


def add_default_datetime(params: NamedParameterList, now: Optional[datetime] = None) -> None:
    """Queue today's local date and time. Time gets a '1' prefix to keep leading zeros."""
    now = now or datetime.now()
    params.add("date", now.strftime("%Y%m%d"))
    params.add("time", now.strftime("1%H%M"))


def xsltproc_command(template: str, params: NamedParameterList) -> str:
    """Equivalent xsltproc invocation, for reproducing a transform by hand."""
    parts = ["xsltproc"]
    for key, value in params:
        parts += ["--stringparam", key, shlex.quote(value)]
    parts += [f"xslt/{template}.xslt", "-"]
    return " ".join(parts)


def transform_buffer(
    engine: Optional[TransformEngine],
    filename: str,
    raw: bytes,
    template: str,
    params: NamedParameterList,
    log: DiveLog,
) -> None:
    """Wrap raw in <template> and let the engine append dives to log."""
    if engine is None:
        raise TransformUnavailable(
            f"'{filename}' needs the '{template}' template but no transform engine is configured",
            filename,
        )

    wrapped = wrap_in_tag(raw, template)
    logger.debug(f"Transforming {filename}: {xsltproc_command(template, params)}")
    try:
        engine.materialize(template, wrapped, params, log)
    except DiveImportError:
        raise
    except Exception as e:
        raise DataError(f"Transform '{template}' failed for '{filename}': {e}", filename) from e
