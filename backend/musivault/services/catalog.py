"""Create-on-first-reference for shared catalog records."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from musivault.db.models.catalog_record import CatalogRecord
from musivault.services.discogs_client import DiscogsRelease

logger = logging.getLogger(__name__)


def find_by_discogs_id(db: Session, discogs_id: int) -> CatalogRecord | None:
    return db.scalar(select(CatalogRecord).where(CatalogRecord.discogs_id == discogs_id))


def build_catalog_record(release: DiscogsRelease) -> CatalogRecord:
    return CatalogRecord(
        discogs_id=release.id,
        title=release.title,
        artist=release.artist,
        year=release.year,
        thumb=release.thumb,
        cover_image=release.cover_image,
        styles=list(release.styles),
        tracklist=[track.model_dump() for track in release.tracklist],
        labels=[label.model_dump() for label in release.labels],
    )


def insert_or_fetch(db: Session, release: DiscogsRelease) -> CatalogRecord:
    """Insert inside a savepoint; if another job won the race, reuse its row."""
    try:
        with db.begin_nested():
            record = build_catalog_record(release)
            db.add(record)
        logger.info(f"Catalog record created: {release.artist} - {release.title} ({release.id})")
        return record
    except IntegrityError:
        existing = find_by_discogs_id(db, release.id)
        if existing is None:
            raise
        logger.info(f"Catalog record {release.id} created concurrently, reusing it")
        return existing


def get_or_create_catalog_record(db: Session, release: DiscogsRelease) -> CatalogRecord:
    existing = find_by_discogs_id(db, release.id)
    if existing is not None:
        return existing
    return insert_or_fetch(db, release)
