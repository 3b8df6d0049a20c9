"""
Grade sheet CSV parsing.

Handles quoted fields containing the delimiter, doubled quotes inside quoted
fields, CRLF and LF line endings, and short rows.
"""
import re
from typing import Dict, List, Tuple

from gradeportal.errors import MalformedInputError

_LINE_BREAK = re.compile(r'\r?\n')


def parse_csv_line(line: str, delimiter: str = ',') -> List[str]:
    """Split one CSV line into trimmed field values."""
    values = []
    value = []
    inside_quotes = False
    i = 0

    while i < len(line):
        char = line[i]
        if char == '"':
            if inside_quotes and i + 1 < len(line) and line[i + 1] == '"':
                value.append('"')
                i += 1
            else:
                inside_quotes = not inside_quotes
        elif char == delimiter and not inside_quotes:
            values.append(''.join(value).strip())
            value = []
        else:
            value.append(char)
        i += 1

    values.append(''.join(value).strip())
    return values


def parse_csv(csv_text: str, delimiter: str = ',') -> Tuple[List[str], List[Dict[str, str]]]:
    """Parse CSV text into (headers, rows).

    Each row maps header name to value; missing trailing fields become ''.
    Blank lines are ignored.

    Raises:
        MalformedInputError: if there is no header row plus at least one data row
    """
    if csv_text is None:
        raise MalformedInputError("CSV file is empty")

    # Byte order mark from spreadsheet exports
    if csv_text.startswith('\ufeff'):
        csv_text = csv_text[1:]

    lines = [line for line in _LINE_BREAK.split(csv_text) if line.strip()]

    if not lines:
        raise MalformedInputError("CSV file is empty")
    if len(lines) < 2:
        raise MalformedInputError("CSV must have header row and at least one data row")

    headers = parse_csv_line(lines[0], delimiter)
    if not any(headers):
        raise MalformedInputError("CSV header row has no column names")

    rows = []
    for line in lines[1:]:
        values = parse_csv_line(line, delimiter)
        row = {}
        for i, header in enumerate(headers):
            row[header] = values[i] if i < len(values) else ''
        rows.append(row)

    return headers, rows
