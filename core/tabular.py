# =============================================================================
# core/tabular.py  —  CSV <-> JSON Conversion
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Converts CSV text into JSON-ready records and back.  Ingestion and
#   export agents use these through the csv_to_json / json_to_csv tools,
#   and the data-ingestion workflow uses them for its first and last steps.
#
# ESCAPING RULES (records_to_csv):
#   None            → empty field
#   dict / list     → JSON text
#   anything else   → str(value)
#   A field containing the delimiter, a quote, \n or \r is wrapped in
#   quotes with inner quotes doubled.
# =============================================================================

import csv
import io
import json
from typing import Any, Optional


class TabularError(ValueError):
    """CSV input or output could not be produced."""


def csv_to_records(
    text: Optional[str],
    delimiter: str = ",",
    columns: bool = True,
    trim: bool = True,
    skip_empty_lines: bool = True,
    max_rows: Optional[int] = None,
) -> list:
    """Parse CSV text.

    Args:
        text: Raw CSV content.
        delimiter: Single-character field separator.
        columns: Treat the first row as headers and return dicts.  When
            False, every row (including the first) is returned as a list.
        trim: Strip whitespace around every field.
        skip_empty_lines: Drop blank lines.
        max_rows: Reject input with more records than this.

    Raises:
        TabularError: empty input, ragged rows, or too many records.
    """
    if not text:
        raise TabularError("Either csvData or filePath must be provided")
    if len(delimiter) != 1:
        raise TabularError(f"Delimiter must be a single character, got {delimiter!r}")

    try:
        rows = list(csv.reader(io.StringIO(text), delimiter=delimiter, skipinitialspace=trim))
    except csv.Error as exc:
        raise TabularError(f"Malformed CSV: {exc}") from exc

    if trim:
        rows = [[field.strip() for field in row] for row in rows]
    if skip_empty_lines:
        rows = [row for row in rows if row]

    if not columns:
        records: list = rows
    elif not rows:
        records = []
    else:
        headers, body = rows[0], rows[1:]
        records = []
        for line_no, row in enumerate(body, start=2):
            if not row:
                row = [""] * len(headers)
            if len(row) != len(headers):
                raise TabularError(
                    f"Invalid record length: expected {len(headers)} columns, "
                    f"got {len(row)} on line {line_no}"
                )
            records.append(dict(zip(headers, row)))

    if max_rows is not None and len(records) > max_rows:
        raise TabularError(f"Record count ({len(records)}) exceeds maximum allowed ({max_rows})")

    return records


def read_csv_file(path: str, **options) -> list:
    """Read a UTF-8 CSV file and parse it with csv_to_records."""
    try:
        with open(path, encoding="utf-8") as f:
            content = f.read()
    except OSError as exc:
        raise TabularError(f"Failed to read file at {path}: {exc}") from exc
    return csv_to_records(content, **options)


def escape_csv_value(value: Any, delimiter: str = ",") -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        text = json.dumps(value, separators=(",", ":"))
    elif isinstance(value, bool):
        # true/false, not Python's True/False
        text = "true" if value else "false"
    else:
        text = str(value)

    if delimiter in text or '"' in text or "\n" in text or "\r" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def records_to_csv(
    records: list[dict],
    delimiter: str = ",",
    include_headers: bool = True,
    max_rows: Optional[int] = None,
) -> str:
    """Render dict records as CSV.

    Headers are the union of all keys, in first-seen order.  Missing keys
    become empty fields.  Rows are joined with "\\n".
    """
    if not records:
        return ""
    if max_rows is not None and len(records) > max_rows:
        raise TabularError(f"Data length ({len(records)}) exceeds maximum allowed ({max_rows})")

    delimiter = delimiter or ","
    headers: list[str] = []
    for record in records:
        for key in record:
            if key not in headers:
                headers.append(key)

    lines = []
    if include_headers:
        lines.append(delimiter.join(escape_csv_value(h, delimiter) for h in headers))
    for record in records:
        lines.append(delimiter.join(escape_csv_value(record.get(h), delimiter) for h in headers))

    return "\n".join(lines)
