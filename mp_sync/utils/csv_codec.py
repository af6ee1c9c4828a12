"""
Delimited Text Codec
Encodes/decodes row data for CSV (comma) and marketplace export (semicolon) files.

Quoting follows RFC 4180: a cell is quoted, with quotes doubled, only when it
contains the delimiter, a quote or a line break. Decoding is a single-pass
scanner so quoted cells may span lines.
"""

from typing import Any, Iterator, List, Sequence, Tuple

COMMA = ","
SEMICOLON = ";"
QUOTE = '"'

Cell = Any  # str | int | float | None


def encode_cell(value: Cell, delimiter: str = COMMA) -> str:
    """Render one cell; None becomes empty string, numbers use str()."""
    if value is None:
        return ""

    text = str(value)
    if delimiter in text or QUOTE in text or "\n" in text or "\r" in text:
        return QUOTE + text.replace(QUOTE, QUOTE + QUOTE) + QUOTE
    return text


def encode_row(cells: Sequence[Cell], delimiter: str = COMMA) -> str:
    """Encode one row as a single text line (without line terminator)."""
    return delimiter.join(encode_cell(cell, delimiter) for cell in cells)


def encode_document(
    header: Sequence[str],
    rows: Sequence[Sequence[Cell]],
    delimiter: str = COMMA
) -> str:
    """Header line plus one line per row, each terminated by \\n."""
    lines = [encode_row(header, delimiter)]
    for row in rows:
        lines.append(encode_row(row, delimiter))
    return "\n".join(lines) + "\n"


def _scan(text: str, delimiter: str) -> Iterator[List[str]]:
    """Yield records from delimited text, honoring quoted fields."""
    record: List[str] = []
    current: List[str] = []
    in_quotes = False
    pending = False  # something was read since the last record break
    i = 0
    length = len(text)

    while i < length:
        char = text[i]

        if in_quotes:
            if char == QUOTE:
                if i + 1 < length and text[i + 1] == QUOTE:
                    current.append(QUOTE)
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(char)
        elif char == QUOTE:
            in_quotes = True
            pending = True
        elif char == delimiter:
            record.append("".join(current))
            current = []
            pending = True
        elif char == "\n" or char == "\r":
            if char == "\r" and i + 1 < length and text[i + 1] == "\n":
                i += 1
            record.append("".join(current))
            yield record
            record, current, pending = [], [], False
        else:
            current.append(char)
            pending = True

        i += 1

    if pending or current or record:
        record.append("".join(current))
        yield record


def decode_line(line: str, delimiter: str = COMMA) -> List[str]:
    """Decode a single line into cells. An empty line is one empty cell."""
    records = list(_scan(line, delimiter))
    if not records:
        return [""]
    return records[0]


def decode_document_with_header(text: str, delimiter: str = COMMA) -> Tuple[List[str], List[List[str]]]:
    """Split a document into (header, data rows)."""
    records = list(_scan(text, delimiter))
    if not records:
        return [], []
    return records[0], records[1:]


def decode_document(text: str, delimiter: str = COMMA) -> List[List[str]]:
    """Decode a document and return only the data rows (line 1 is the header)."""
    _header, rows = decode_document_with_header(text, delimiter)
    return rows
