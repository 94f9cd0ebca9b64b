"""A user's physical copy of a catalog record."""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from musivault.db.base import Base, JSONType

MEDIA_CONDITIONS = ("M", "NM", "VG+", "VG", "G+", "G", "F", "P")
SLEEVE_CONDITIONS = MEDIA_CONDITIONS + ("Not Graded", "Generic", "No Cover")


class CollectionEntry(Base):
    __tablename__ = "collection_entries"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    catalog_record_id = Column(
        Integer, ForeignKey("catalog_records.id"), nullable=False
    )
    format_name = Column(String(32), nullable=False)
    format_text = Column(Text, nullable=False, default="")
    format_descriptions = Column(JSONType, nullable=False, default=list)
    media_condition = Column(String(16))
    sleeve_condition = Column(String(16))
    added_at = Column(DateTime(timezone=True), server_default=func.now())

    catalog_record = relationship("CatalogRecord", lazy="joined")

    __table_args__ = (
        Index("ix_collection_entries_user_record", user_id, catalog_record_id),
    )
