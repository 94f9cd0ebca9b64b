"""Turn an uploaded collection CSV into typed import rows."""

from __future__ import annotations

import csv
import io
import logging

from pydantic import BaseModel, Field

from musivault.core.errors import ParseError
from musivault.utils.csv_validator import (
    OPTIONAL_HEADERS,
    REQUIRED_HEADERS,
    TEMPLATE_HEADERS,
    normalize_row,
    validate_headers,
)

logger = logging.getLogger(__name__)


class ImportRow(BaseModel):
    """One data row as read from the file. Values are raw, trimmed strings."""

    row_index: int = Field(..., ge=1, description="1-based data row number")
    artist: str = ""
    album: str = ""
    format: str = ""
    year: str | None = None
    external_id: str | None = None
    catalog_number: str | None = None
    media_condition: str | None = None
    sleeve_condition: str | None = None


def decode_upload(payload: bytes) -> str:
    if not payload or not payload.strip():
        raise ParseError("CSV file appears to be empty")
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"File encoding error: {str(e)}") from e


def parse_csv_bytes(payload: bytes, max_rows: int | None = None) -> list[ImportRow]:
    """Parse the raw upload; raise ParseError before any row is processed."""
    text = decode_upload(payload)
    try:
        reader = csv.reader(io.StringIO(text, newline=""))
        headers = next(reader, None)
        normalized = validate_headers(headers)

        unknown = [
            raw
            for raw, name in zip(headers, normalized)
            if name and name not in REQUIRED_HEADERS and name not in OPTIONAL_HEADERS
        ]
        if unknown:
            logger.info(f"Ignoring unknown CSV column(s): {', '.join(unknown)}")

        rows: list[ImportRow] = []
        for cells in reader:
            # Blank lines carry no data
            if not any(cell.strip() for cell in cells):
                continue
            row_number = len(rows) + 1
            if len(cells) > len(normalized):
                raise ParseError(
                    f"Row {row_number} has {len(cells)} columns but the header has {len(normalized)}"
                )
            mapped = {
                name: value for name, value in zip(normalized, cells) if name
            }
            rows.append(ImportRow(row_index=row_number, **normalize_row(mapped)))
            if max_rows is not None and len(rows) > max_rows:
                raise ParseError(f"CSV has more than {max_rows} rows")
    except csv.Error as e:
        raise ParseError(f"CSV parsing error: {str(e)}") from e

    if not rows:
        raise ParseError("CSV file contains no data rows")
    return rows


def render_template() -> str:
    """CSV template offered to users before they build their file."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerow(["Daft Punk", "Discovery", "Vinyl", "2001", "", "", "NM", "VG+"])
    writer.writerow(["Miles Davis", "Kind of Blue", "CD", "1959", "", "", "", ""])
    return buffer.getvalue()
