"""Validate CSV headers and normalise collection import fields."""

from __future__ import annotations

import re
from typing import Any

from musivault.core.errors import ParseError, RowValidationError
from musivault.db.models.collection_entry import MEDIA_CONDITIONS, SLEEVE_CONDITIONS


REQUIRED_HEADERS = ["artist", "album", "format"]
OPTIONAL_HEADERS = [
    "year",
    "externalid",
    "catalognumber",
    "mediacondition",
    "sleevecondition",
]
TEMPLATE_HEADERS = [
    "Artist",
    "Album",
    "Format",
    "Year",
    "ExternalId",
    "CatalogNumber",
    "MediaCondition",
    "SleeveCondition",
]

ALLOWED_FORMATS = ("Vinyl", "CD")
_FORMAT_ALIASES = {
    "vinyl": "Vinyl",
    "vinyle": "Vinyl",
    "lp": "Vinyl",
    "records": "Vinyl",
    "record": "Vinyl",
    "cd": "CD",
    "compact disc": "CD",
    "compact-disc": "CD",
}

_HINT_PATTERN = re.compile(r"\(.*?\)")
_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_header(header: str | None) -> str:
    """'Media Condition (optional)' -> 'mediacondition'."""
    if not header:
        return ""
    value = _HINT_PATTERN.sub("", header.lstrip("\ufeff")).strip().lower()
    return _SEPARATORS.sub("", value)


def validate_headers(headers: list[str] | None) -> list[str]:
    """Ensure CSV contains the required columns and return normalised names."""
    if not headers:
        raise ParseError(
            "CSV requires a header row with Artist,Album,Format columns"
        )
    normalized = [normalize_header(header) for header in headers]
    missing = [field for field in REQUIRED_HEADERS if field not in normalized]
    if missing:
        raise ParseError(f"Missing required column(s): {', '.join(missing)}")
    return normalized


def normalize_format(value: str | None) -> str:
    """Map a free-text format token onto one of ALLOWED_FORMATS."""
    token = (value or "").strip()
    if not token:
        raise RowValidationError("Missing format")
    canonical = _FORMAT_ALIASES.get(token.lower())
    if canonical is None:
        raise RowValidationError(
            f"Invalid format '{token}' (expected one of: {', '.join(ALLOWED_FORMATS)})"
        )
    return canonical


def normalize_external_id(value: str | None) -> int | None:
    token = (value or "").strip()
    if not token:
        return None
    # Discogs displays release ids as "[r12345]"
    token = token.strip("[]").lstrip("rR")
    if not token.isdigit():
        raise RowValidationError(f"Invalid external id '{value.strip()}'")
    return int(token)


def normalize_condition(value: str | None, *, sleeve: bool = False) -> str | None:
    token = (value or "").strip()
    if not token:
        return None
    grades = SLEEVE_CONDITIONS if sleeve else MEDIA_CONDITIONS
    for grade in grades:
        if grade.lower() == token.lower():
            return grade
    kind = "sleeve" if sleeve else "media"
    raise RowValidationError(f"Invalid {kind} condition '{token}'")


def normalize_row(row: dict[str, Any]) -> dict[str, Any]:
    """Clean individual row values keyed by normalised header (trim strings)."""

    def _clean(key: str) -> str:
        value = row.get(key)
        return value.strip() if isinstance(value, str) else ""

    return {
        "artist": _clean("artist"),
        "album": _clean("album"),
        "format": _clean("format"),
        "year": _clean("year") or None,
        "external_id": _clean("externalid") or None,
        "catalog_number": _clean("catalognumber") or None,
        "media_condition": _clean("mediacondition") or None,
        "sleeve_condition": _clean("sleevecondition") or None,
    }
