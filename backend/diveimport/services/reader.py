"""
Whole-file reads for the importers.
"""

from pathlib import Path
from typing import Union

from diveimport.services.errors import ImportIOError


# Byte-transparent: decoding then re-encoding returns the original bytes.
TEXT_ENCODING = "latin-1"


def read_whole_file(path: Union[str, Path], message: str = "Failed to read '{}'") -> bytes:
    """Read the entire file into memory; the handle is closed on return."""
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ImportIOError(message.format(path) + f": {e.strerror or e}", str(path)) from e


def decode(buffer: bytes) -> str:
    return buffer.decode(TEXT_ENCODING)


def encode(text: str) -> bytes:
    return text.encode(TEXT_ENCODING)
