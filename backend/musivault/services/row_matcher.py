"""Resolve one import row to a catalog record.

Outcomes are expressed as exceptions so the orchestrator can map them onto
ImportEntry statuses:

* ``RowValidationError``  the row itself is unusable, no request is made
* ``MatchNotFoundError``  Discogs has nothing for the row
* ``CatalogLookupError``  Discogs could not be queried (incl. exhausted 429 retries)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from musivault.core.errors import (
    CatalogLookupError,
    MatchNotFoundError,
    RateLimitExceededError,
    RowValidationError,
)
from musivault.db.models.catalog_record import CatalogRecord
from musivault.services.catalog import get_or_create_catalog_record
from musivault.services.csv_ingest import ImportRow
from musivault.services.discogs_client import (
    DiscogsClient,
    DiscogsRelease,
    DiscogsSearchResult,
    clean_artist_name,
)
from musivault.utils.csv_validator import (
    normalize_condition,
    normalize_external_id,
    normalize_format,
)

logger = logging.getLogger(__name__)

NO_MATCH_REASON = "no match found"
_YEAR_PATTERN = re.compile(r"\b(\d{4})\b")


@dataclass(frozen=True)
class ValidatedRow:
    row_index: int
    artist: str
    album: str
    format: str
    year: int | None = None
    external_id: int | None = None
    catalog_number: str | None = None
    media_condition: str | None = None
    sleeve_condition: str | None = None


@dataclass
class FormatDescriptor:
    name: str
    text: str = ""
    descriptions: list[str] = field(default_factory=list)


@dataclass
class MatchResult:
    record: CatalogRecord
    release: DiscogsRelease
    format: FormatDescriptor
    media_condition: str | None = None
    sleeve_condition: str | None = None


def _parse_year(value: str | None) -> int | None:
    # Only a disambiguation hint: "2001-03-12" or "2001 (reissue)" still count
    found = _YEAR_PATTERN.search(value or "")
    return int(found.group(1)) if found else None


def validate_row(row: ImportRow) -> ValidatedRow:
    if not row.artist:
        raise RowValidationError("Missing artist")
    if not row.album:
        raise RowValidationError("Missing album")
    return ValidatedRow(
        row_index=row.row_index,
        artist=row.artist,
        album=row.album,
        format=normalize_format(row.format),
        year=_parse_year(row.year),
        external_id=normalize_external_id(row.external_id),
        catalog_number=row.catalog_number or None,
        media_condition=normalize_condition(row.media_condition),
        sleeve_condition=normalize_condition(row.sleeve_condition, sleeve=True),
    )


def _same(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


def select_candidate(
    results: list[DiscogsSearchResult],
    artist: str,
    album: str,
    year: int | None = None,
) -> DiscogsSearchResult:
    """Deterministic pick: exact artist+title, then nearest year, then Discogs ranking."""
    if not results:
        raise MatchNotFoundError(NO_MATCH_REASON)

    wanted_artist = clean_artist_name(artist)
    exact = [
        r
        for r in results
        if _same(r.artist_name, wanted_artist) and _same(r.album_title, album)
    ]
    pool = exact or results

    if year is None:
        return pool[0]

    def distance(item: tuple[int, DiscogsSearchResult]) -> tuple[int, int, int]:
        position, result = item
        if result.year and result.year.isdigit():
            return (0, abs(int(result.year) - year), position)
        return (1, 0, position)

    return min(enumerate(pool), key=distance)[1]


def pick_format(release: DiscogsRelease, format_name: str) -> FormatDescriptor:
    for entry in release.formats:
        if _same(entry.name, format_name):
            return FormatDescriptor(
                name=format_name,
                text=entry.text,
                descriptions=list(entry.descriptions),
            )
    return FormatDescriptor(name=format_name, text=format_name)


def describe_lookup_failure(exc: CatalogLookupError) -> str:
    if isinstance(exc, RateLimitExceededError):
        return f"Discogs rate limit exceeded after {exc.attempts} attempts"
    return str(exc) or "Discogs lookup failed"


class RowMatcher:
    def __init__(self, client: DiscogsClient):
        self.client = client

    def _search(self, row: ValidatedRow) -> list[DiscogsSearchResult]:
        if row.catalog_number:
            results = self.client.search(catno=row.catalog_number, artist=row.artist)
            if results:
                return results
            logger.info(
                f"Row {row.row_index}: no result for catalog number {row.catalog_number}, "
                "falling back to text search"
            )
        return self.client.search(f"{row.artist} {row.album}")

    def resolve_release(self, row: ValidatedRow) -> DiscogsRelease:
        if row.external_id is not None:
            try:
                return self.client.get_release(row.external_id)
            except MatchNotFoundError as e:
                # Direct lookups never fall back to search
                raise CatalogLookupError(
                    f"Discogs release {row.external_id} not found"
                ) from e

        candidate = select_candidate(self._search(row), row.artist, row.album, row.year)
        logger.info(
            f"Row {row.row_index}: selected Discogs release {candidate.id} ({candidate.title})"
        )
        try:
            return self.client.get_release(candidate.id)
        except MatchNotFoundError as e:
            raise CatalogLookupError(
                f"Discogs release {candidate.id} could not be fetched"
            ) from e

    def match_validated(self, db: Session, row: ValidatedRow) -> MatchResult:
        release = self.resolve_release(row)
        record = get_or_create_catalog_record(db, release)
        return MatchResult(
            record=record,
            release=release,
            format=pick_format(release, row.format),
            media_condition=row.media_condition,
            sleeve_condition=row.sleeve_condition,
        )

    def match(self, db: Session, row: ImportRow) -> MatchResult:
        return self.match_validated(db, validate_row(row))
