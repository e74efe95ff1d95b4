"""
Source file parsing.

Turns the raw content of an uploaded reconciliation source (GSTR-2A/2B,
purchase register, IMS export, ...) into rows: ordered dicts mapping the
header name to either a float or a trimmed string.

Supported inputs:
- CSV: comma separated, double quotes for quoting, "" for a literal quote,
  line breaks inside quotes kept as data, LF / CR / CRLF row terminators
- Excel (.xlsx): first worksheet, first non-empty row is the header
- ZIP archives (IMS exports): every CSV / Excel member, in name order

Numeric detection:
A trimmed field becomes a float when, after dropping thousands separator
commas, Python's float() accepts it and the result is finite. This means
scientific notation ("1e3") is numeric while "nan", "inf" and values with
underscores ("1_000") stay strings.
"""

import io
import logging
import os
import pathlib
import zipfile

import numpy as np
import pandas as pd

from gst_reconcile.exceptions import (
    EmptyInputError,
    ParseError,
    MalformedDelimitedTextError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ['.csv', '.xlsx', '.zip']
SPREADSHEET_EXTENSIONS = ['.xlsx']

# Tried in order when decoding uploaded CSV bytes
ENCODINGS = ['utf-8-sig', 'cp1252']


def is_numeric_string(value):
    """
    Check whether a trimmed field looks like a number.

    Args:
        value (str): Trimmed field text

    Returns:
        bool: True if the comma-stripped text parses to a finite float
    """
    if not value:
        return False
    cleaned = value.replace(',', '')
    if '_' in cleaned:
        return False
    try:
        number = float(cleaned)
    except ValueError:
        return False
    return bool(np.isfinite(number))


def coerce_value(value):
    """Return the field as a float when it is numeric, else unchanged."""
    if is_numeric_string(value):
        return float(value.replace(',', ''))
    return value


def _split_rows(text):
    """Split CSV text into logical rows of trimmed fields.

    Rows whose fields are all empty are skipped.
    """
    lines = []
    current_row = []
    current_field = []
    in_quotes = False
    length = len(text)
    i = 0

    while i < length:
        char = text[i]
        next_char = text[i + 1] if i + 1 < length else ''

        if char == '"':
            if in_quotes and next_char == '"':
                current_field.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == ',' and not in_quotes:
            current_row.append(''.join(current_field).strip())
            current_field = []
        elif char in '\r\n' and not in_quotes:
            if current_field or current_row:
                current_row.append(''.join(current_field).strip())
                if any(current_row):
                    lines.append(current_row)
                current_row = []
                current_field = []
            if char == '\r' and next_char == '\n':
                i += 1
        else:
            current_field.append(char)
        i += 1

    if current_field or current_row:
        current_row.append(''.join(current_field).strip())
        if any(current_row):
            lines.append(current_row)

    return lines


def rows_from_table(table, drop_blank_headers=False):
    """
    Build rows from a header line followed by data lines.

    Args:
        table (list): List of lists of cell values, first entry is the header
        drop_blank_headers (bool): Leave out columns whose header is empty

    Returns:
        list: One dict per non-empty data line, keyed by header name

    Notes:
        - Header cells are stringified and trimmed
        - An empty header is kept as the '' key, unless drop_blank_headers
          is set; dropped columns keep their position, so later columns
          still line up with their header
        - Missing trailing cells become empty strings
        - Every value goes through coerce_value
    """
    if not table:
        return []

    headers = [str(header).strip() for header in table[0]]
    rows = []
    for values in table[1:]:
        cells = ['' if value is None else str(value).strip() for value in values]
        if not any(cells):
            continue
        row = {}
        for index, header in enumerate(headers):
            if drop_blank_headers and not header:
                continue
            value = cells[index] if index < len(cells) else ''
            row[header] = coerce_value(value)
        rows.append(row)
    return rows


def parse_csv(text):
    """
    Parse CSV text into rows.

    Args:
        text (str): Raw CSV content

    Returns:
        list: Rows (dicts of header -> float or str) in file order

    Raises:
        EmptyInputError: If the text has no non-whitespace content
        MalformedDelimitedTextError: If there is no header plus data row
    """
    if text is None or not text.strip():
        raise EmptyInputError("CSV content is empty")

    lines = _split_rows(text)
    logger.debug(f"Split CSV text into {len(lines)} logical rows")

    if len(lines) < 2:
        raise MalformedDelimitedTextError(
            "too few rows: CSV file must contain at least a header row and one data row"
        )

    return rows_from_table(lines)


def decode_text(data):
    """Decode uploaded bytes, trying each supported encoding in turn."""
    for encoding in ENCODINGS:
        try:
            text = data.decode(encoding)
            logger.debug(f"Decoded {len(data)} bytes with encoding: {encoding}")
            return text
        except UnicodeDecodeError:
            continue
    raise ParseError("Could not decode file with any supported encoding")


def read_spreadsheet(source):
    """
    Read the first worksheet of an Excel workbook into rows.

    Args:
        source (str, pathlib.Path or file-like): Workbook to read

    Returns:
        list: Rows built with the same rules as parse_csv
    """
    df = pd.read_excel(source, sheet_name=0, header=None, dtype=object)
    df = df.where(pd.notna(df), '')
    table = [row for row in df.values.tolist() if any(str(cell).strip() for cell in row)]
    logger.debug(f"Read {len(table)} non-empty worksheet rows")
    return rows_from_table(table, drop_blank_headers=True)


def _read_archive(file_path):
    """Read every CSV / Excel member of a ZIP archive, in name order."""
    rows = []
    with zipfile.ZipFile(file_path) as archive:
        members = sorted(name for name in archive.namelist() if not name.endswith('/'))
        supported = [
            name for name in members
            if os.path.splitext(name)[1].lower() in ['.csv'] + SPREADSHEET_EXTENSIONS
        ]
        if not supported:
            raise UnsupportedFormatError("ZIP archive contains no CSV or Excel files")
        for name in supported:
            ext = os.path.splitext(name)[1].lower()
            logger.debug(f"Reading archive member: {name}")
            if ext == '.csv':
                rows.extend(parse_csv(decode_text(archive.read(name))))
            else:
                rows.extend(read_spreadsheet(io.BytesIO(archive.read(name))))
    return rows


def import_source(file_path):
    """
    Read one uploaded source file into rows.

    Args:
        file_path (str or pathlib.Path): Path to a .csv, .xlsx or .zip file

    Returns:
        list: Rows in file order

    Raises:
        FileNotFoundError: If the file does not exist
        UnsupportedFormatError: If the extension is not supported
        ParseError: If the content cannot be parsed
    """
    file_path = pathlib.Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")
    if file_path.is_dir():
        raise ValueError("Path is a directory")

    ext = file_path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            "Unsupported file format. Please upload .xlsx, .csv, or .zip files."
        )

    if file_path.stat().st_size == 0:
        raise EmptyInputError("CSV file is empty" if ext == '.csv' else "File is empty")

    logger.debug(f"Reading file: {file_path}")
    if ext == '.zip':
        return _read_archive(file_path)
    if ext in SPREADSHEET_EXTENSIONS:
        return read_spreadsheet(file_path)
    return parse_csv(decode_text(file_path.read_bytes()))
