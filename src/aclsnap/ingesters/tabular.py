"""
Helpers for ingesters that parse delimited text exports.

Each tabular ingester declares a record schema mapping exact,
case-sensitive column headers to field names. Rows are returned as plain
dictionaries keyed by field name.
"""

from __future__ import annotations

import csv
import io
import logging

from aclsnap.errors import ParseError, SchemaError

logger = logging.getLogger(__name__)

# Vendor vocabulary meaning "nothing unusual about this account"
ACTIVE_STATUS = "Active"

# How many leading lines may precede the header row
MAX_PREAMBLE_LINES = 10


def decode_content(content: bytes) -> str:
    """Decode an export, tolerating a UTF-8 byte order mark."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"decode: {e}") from e


def _header_index(lines: list[str], required: set[str]) -> int:
    """Find the line holding the header row, skipping report preambles."""
    for i, line in enumerate(lines[:MAX_PREAMBLE_LINES]):
        try:
            fields = next(csv.reader([line]))
        except (csv.Error, StopIteration):
            continue
        if required.issubset(f.strip() for f in fields):
            return i
    return 0


def read_records(
    text: str,
    columns: dict[str, str],
    required: tuple[str, ...] | list[str] = (),
) -> list[dict[str, str]]:
    """
    Parse CSV text into records.

    Args:
        text: CSV text
        columns: Column header to field name mapping
        required: Column headers that must be present

    Returns:
        One dictionary per row, keyed by field name; absent optional
        columns map to empty strings

    Raises:
        ParseError: If the CSV is malformed
        SchemaError: If a required column is missing
    """
    # quoted fields may hold \r, \x85 or \u2028; only \n ends a line here
    lines = text.split("\n")
    start = _header_index(lines, set(required))
    if start:
        logger.debug(f"Skipping {start} preamble line(s) before CSV header")
    body = "\n".join(lines[start:])

    reader = csv.DictReader(io.StringIO(body), strict=True)
    try:
        headers = [h.strip() for h in reader.fieldnames or []]
        missing = [c for c in required if c not in headers]
        if missing:
            raise SchemaError(f"missing required columns: {', '.join(missing)}")

        records = []
        for row in reader:
            row = {(k or "").strip(): v for k, v in row.items()}
            records.append({
                field_name: (row.get(header) or "").strip()
                for header, field_name in columns.items()
            })
    except csv.Error as e:
        raise ParseError(f"csv line {reader.line_num}: {e}") from e

    logger.debug(f"Parsed {len(records)} CSV records")
    return records


def normalize_status(status: str) -> str:
    """Map the vendor's active vocabulary to an empty status; keep everything else."""
    if status == ACTIVE_STATUS:
        return ""
    return status
