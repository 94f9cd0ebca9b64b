"""Database models package."""
from musivault.db.models.user import User
from musivault.db.models.catalog_record import CatalogRecord
from musivault.db.models.collection_entry import CollectionEntry
from musivault.db.models.import_job import ImportEntry, ImportJob

__all__ = ["User", "CatalogRecord", "CollectionEntry", "ImportJob", "ImportEntry"]
