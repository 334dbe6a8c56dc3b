"""Unit tests for the lenient CSV parser."""

from __future__ import annotations

from imagepipeline.csv_parser import parse_csv


def test_quoted_delimiters_and_escaped_quotes() -> None:
    """Embedded commas and doubled quotes should survive parsing."""
    rows = parse_csv('a,"b,c","d""e"')

    assert rows == [["a", "b,c", 'd"e']]


def test_quoted_newline_stays_in_field() -> None:
    """Newlines inside quotes belong to the field, not the row."""
    rows = parse_csv('name,notes\n"Run Club","line one\nline two"\n')

    assert rows == [["name", "notes"], ["Run Club", "line one\nline two"]]


def test_mixed_line_endings() -> None:
    """LF, CR and CRLF should each end exactly one row."""
    rows = parse_csv("a,b\r\nc,d\re,f\ng,h")

    assert rows == [["a", "b"], ["c", "d"], ["e", "f"], ["g", "h"]]


def test_blank_lines_are_dropped_anywhere() -> None:
    """Whitespace-only lines should never produce rows."""
    rows = parse_csv("\n  \na,b\n\n   ,  \nc,d\n\n\n")

    assert rows == [["a", "b"], ["c", "d"]]


def test_last_row_without_newline_is_flushed() -> None:
    """A trailing row without terminator should still be returned."""
    rows = parse_csv("h1,h2\nx,")

    assert rows == [["h1", "h2"], ["x", ""]]


def test_unterminated_quote_is_accepted() -> None:
    """An unterminated quoted field should swallow the rest of the input."""
    rows = parse_csv('a,"unterminated,field\nnext')

    assert rows == [["a", "unterminated,field\nnext"]]


def test_empty_input_returns_no_rows() -> None:
    """Empty text should yield an empty list."""
    assert parse_csv("") == []
    assert parse_csv("\r\n\r\n") == []


def test_rows_are_not_normalized() -> None:
    """Ragged rows should keep their own lengths."""
    rows = parse_csv("a,b,c\nd\ne,f")

    assert [len(r) for r in rows] == [3, 1, 2]
