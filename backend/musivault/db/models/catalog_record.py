"""Shared, deduplicated Discogs releases referenced by collections."""

from sqlalchemy import Column, Index, Integer, String, Text
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from musivault.db.base import Base, JSONType


class CatalogRecord(Base):
    __tablename__ = "catalog_records"

    id = Column(Integer, primary_key=True)
    # NULL for manually entered records; unique indexes ignore NULLs
    discogs_id = Column(Integer, nullable=True)
    title = Column(Text, nullable=False)
    artist = Column(Text, nullable=False)
    year = Column(String(8))
    thumb = Column(Text)
    cover_image = Column(Text)
    styles = Column(JSONType, nullable=False, default=list)
    tracklist = Column(JSONType, nullable=False, default=list)
    labels = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ux_catalog_records_discogs_id", discogs_id, unique=True),
    )
