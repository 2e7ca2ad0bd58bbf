"""File parsing functions for CSV and XLSX imports."""

import csv
import io
from typing import Any

from openpyxl import load_workbook

from .constants import MAX_ROWS
from .values import is_blank

# Tried in order; utf-8-sig drops a leading byte-order mark
CSV_ENCODINGS = ("utf-8-sig", "latin-1")


def _decode(file_content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return file_content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError("CSV file could not be decoded")


def parse_csv(file_content: bytes, max_rows: int = MAX_ROWS) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse CSV file content into headers and rows.

    Tries UTF-8 first (with or without BOM), falls back to Latin-1. Header
    text is kept as written; cleaning happens at column resolution.

    Args:
        file_content: Raw CSV file bytes.
        max_rows: Maximum number of data rows to return.

    Returns:
        Tuple of (headers, rows) where rows are dicts keyed by header name.

    Raises:
        ValueError: If the CSV is empty or has no headers.
    """
    try:
        reader = csv.DictReader(io.StringIO(_decode(file_content), newline=""))
        fieldnames = reader.fieldnames
    except csv.Error as e:
        raise ValueError(f"CSV file could not be parsed: {e}") from e

    if fieldnames is None:
        raise ValueError("CSV file has no headers")

    headers = [h for h in fieldnames if h and h.strip()]
    if not headers:
        raise ValueError("CSV file has no valid headers")

    rows: list[dict[str, Any]] = []
    try:
        for row in reader:
            if len(rows) >= max_rows:
                break
            # DictReader puts surplus cells under the None key; drop them
            cleaned = {h: (v.strip() if isinstance(v, str) else "") for h, v in row.items() if h in headers}
            if any(cleaned.values()):
                rows.append(cleaned)
    except csv.Error as e:
        raise ValueError(f"CSV file could not be parsed: {e}") from e

    return headers, rows


def parse_xlsx(file_content: bytes, max_rows: int = MAX_ROWS) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse XLSX file content into headers and rows (first sheet only).

    Uses openpyxl read_only mode and iterates rows lazily. Cell values keep
    their native types (numbers, datetimes) so the value parsers see them
    as the spreadsheet stored them.

    Args:
        file_content: Raw XLSX file bytes.
        max_rows: Maximum number of data rows to return.

    Returns:
        Tuple of (headers, rows) where rows are dicts keyed by header name.

    Raises:
        ValueError: If the XLSX is unreadable, empty or has no headers.
    """
    try:
        wb = load_workbook(filename=io.BytesIO(file_content), read_only=True, data_only=True)
    except Exception as e:
        raise ValueError(f"XLSX file could not be opened: {e}") from e

    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            raise ValueError("XLSX file has no worksheets")

        row_iter = ws.iter_rows(values_only=True)

        # First row = headers
        try:
            raw_headers = next(row_iter)
        except StopIteration:
            raise ValueError("XLSX file is empty")

        columns = [
            (j, str(h)) for j, h in enumerate(raw_headers) if h is not None and str(h).strip()
        ]
        if not columns:
            raise ValueError("XLSX file has no valid headers")

        rows: list[dict[str, Any]] = []
        for row_values in row_iter:
            if len(rows) >= max_rows:
                break
            row_dict: dict[str, Any] = {}
            for j, header in columns:
                val = row_values[j] if j < len(row_values) else None
                row_dict[header] = val.strip() if isinstance(val, str) else val
            if any(not is_blank(v) for v in row_dict.values()):
                rows.append(row_dict)
    finally:
        wb.close()

    return [header for _, header in columns], rows


def parse_file(filename: str, file_content: bytes, max_rows: int = MAX_ROWS) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse a CSV or XLSX file, choosing the parser by extension.

    Raises:
        ValueError: If the extension is unsupported or the file is invalid.
    """
    ext = get_file_extension(filename)
    if ext == "csv":
        return parse_csv(file_content, max_rows)
    if ext in ("xlsx", "xlsm"):
        return parse_xlsx(file_content, max_rows)
    raise ValueError(f"Unsupported file type '.{ext}'. Allowed: CSV, XLSX")


def get_file_extension(filename: str | None) -> str:
    """Extract file extension from filename."""
    if not filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
