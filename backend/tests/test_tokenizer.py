"""
Tests for the record line tokenizer.
"""

import pytest

from diveimport.services.errors import FormatError
from diveimport.services.tokenizer import Cursor, detect_line_terminator, split_record_line


class TestDetectLineTerminator:

    def test_crlf_wins(self):
        assert detect_line_terminator("a\nb\r\nc") == "\r\n"

    def test_lf(self):
        assert detect_line_terminator("a\nb") == "\n"

    def test_none_without_line_break(self):
        assert detect_line_terminator("abc") is None


class TestSplitRecordLine:

    def test_fields_and_cursor_advance(self):
        """Cursor should land on the first character of the next line."""
        cursor = Cursor("|a|b|c\nnext")
        assert split_record_line(cursor, "\n", "|") == ["a", "b", "c"]
        assert cursor.text[cursor.pos:] == "next"

    def test_empty_fields_kept(self):
        cursor = Cursor("|a||c|\n")
        assert split_record_line(cursor, "\n", "|") == ["a", "", "c"]

    def test_closing_delimiter_adds_no_field(self):
        cursor = Cursor("|x|y|\n")
        assert split_record_line(cursor, "\n", "|") == ["x", "y"]

    def test_crlf_terminator(self):
        cursor = Cursor("|a|b\r\nZ")
        assert split_record_line(cursor, "\r\n", "|") == ["a", "b"]
        assert cursor.text[cursor.pos:] == "Z"

    def test_last_line_without_terminator(self):
        cursor = Cursor("|x|y")
        assert split_record_line(cursor, "\n", "|") == ["x", "y"]
        assert cursor.at_end

    def test_missing_leading_delimiter(self):
        with pytest.raises(FormatError):
            split_record_line(Cursor("a|b\n"), "\n", "|")


class TestCursor:

    def test_next_line(self):
        cursor = Cursor("one\ntwo")
        assert cursor.next_line("\n")
        assert cursor.startswith("two")
        assert not cursor.next_line("\n")
        assert cursor.startswith("two")

    def test_skip_stops_at_end(self):
        cursor = Cursor("abc")
        cursor.skip(10)
        assert cursor.at_end
