"""Read-only view of collections their owners chose to share."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from musivault.api.dependencies.db import get_session
from musivault.api.routers.collection import list_entries, serialize_entry
from musivault.api.schemas.collection import PublicCollectionRead
from musivault.db.models.user import User

router = APIRouter()


@router.get("/{share_id}", response_model=PublicCollectionRead)
async def get_public_collection(
    share_id: str,
    db: Session = Depends(get_session),
) -> PublicCollectionRead:
    user = db.scalar(select(User).where(User.public_share_id == share_id))
    # Private collections look exactly like unknown ones
    if not user or not user.is_public:
        raise HTTPException(status_code=404, detail="Collection not found")

    entries = sorted(
        list_entries(db, user.id),
        key=lambda e: (e.catalog_record.artist.casefold(), e.catalog_record.title.casefold()),
    )
    return PublicCollectionRead(
        username=user.username,
        collection=[serialize_entry(entry) for entry in entries],
        total=len(entries),
    )
