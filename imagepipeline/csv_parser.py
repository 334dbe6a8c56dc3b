from typing import List


def parse_csv(text: str) -> List[List[str]]:
    """
    Split delimited text into rows of fields.

    Handles quoted fields with embedded commas and newlines, doubled quotes
    inside quoted fields, and LF / CR / CRLF row terminators. Rows whose
    fields are all blank are dropped. The parser never raises: an
    unterminated quote simply swallows the rest of the input into the
    current field.

    The first row returned is the header. Rows are not padded or trimmed to
    a common length.
    """
    rows: List[List[str]] = []
    row: List[str] = []
    field: List[str] = []
    in_quotes = False
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if ch == '"':
            if in_quotes and nxt == '"':
                field.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            row.append("".join(field))
            field = []
        elif ch in "\r\n" and not in_quotes:
            row.append("".join(field))
            _append_row(rows, row)
            row = []
            field = []
            if ch == "\r" and nxt == "\n":
                i += 1
        else:
            field.append(ch)
        i += 1

    if field or row:
        row.append("".join(field))
        _append_row(rows, row)

    return rows


def _append_row(rows: List[List[str]], row: List[str]) -> None:
    if any(value.strip() for value in row):
        rows.append(row)
