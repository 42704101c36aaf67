"""
Exception hierarchy for dive log imports.

Callers can catch DiveImportError for any failed import, or a specific
subclass. NotThisFormat is not a failure: it tells the dispatcher to try the
next parser.
"""

from typing import Optional


class DiveImportError(Exception):
    """Root of the import exception hierarchy."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


class ImportIOError(DiveImportError):
    """Source file could not be read."""


class FormatError(DiveImportError, ValueError):
    """Structural mismatch: missing tag, wrong field count, missing terminator."""


class NotThisFormat(DiveImportError):
    """The parser declined the file."""


class DataError(DiveImportError, ValueError):
    """A value is outside its domain, e.g. an unparsable date."""


class TransformUnavailable(DiveImportError):
    """A templated format was detected but no transform engine is configured."""
