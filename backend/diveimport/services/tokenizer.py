"""
Line tokenizer for delimiter-framed records.

Works on a Cursor over the decoded file text; the text itself is never
copied, only the cursor offset moves.
"""

from dataclasses import dataclass
from typing import Optional

from diveimport.services.errors import FormatError


@dataclass
class Cursor:
    """Read position inside an immutable text buffer."""

    text: str
    pos: int = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def startswith(self, prefix: str) -> bool:
        return self.text.startswith(prefix, self.pos)

    def find(self, needle: str) -> int:
        return self.text.find(needle, self.pos)

    def skip(self, count: int) -> None:
        self.pos = min(self.pos + count, len(self.text))

    def next_line(self, terminator: str) -> bool:
        """Move past the next terminator. Returns False if there is none."""
        idx = self.find(terminator)
        if idx < 0:
            return False
        self.pos = idx + len(terminator)
        return True


def detect_line_terminator(text: str) -> Optional[str]:
    """CRLF wins over LF; None if the text has no line break at all."""
    if "\r\n" in text:
        return "\r\n"
    if "\n" in text:
        return "\n"
    return None


def split_record_line(cursor: Cursor, terminator: str, delimiter: str) -> list[str]:
    """
    Split the current line into fields and advance past its terminator.

    The line must open with the delimiter (record marker). Empty fields
    between delimiters are kept; a delimiter that closes the line does not
    add a trailing empty field. A line without terminator runs to the end
    of the text.
    """
    text = cursor.text
    line_end = cursor.find(terminator)
    has_terminator = line_end >= 0
    if not has_terminator:
        line_end = len(text)

    if not cursor.startswith(delimiter):
        raise FormatError(f"No leading delimiter '{delimiter}' found")

    fields: list[str] = []
    start = cursor.pos + len(delimiter)
    while start < line_end:
        end = text.find(delimiter, start, line_end)
        if end < 0:
            fields.append(text[start:line_end])
            break
        fields.append(text[start:end])
        start = end + len(delimiter)

    cursor.pos = line_end + (len(terminator) if has_terminator else 0)
    return fields
