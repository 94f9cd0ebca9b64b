"""Read and maintain the caller's collection."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from musivault.api.dependencies.auth import get_current_user
from musivault.api.dependencies.db import get_session
from musivault.api.dependencies.discogs import get_row_matcher
from musivault.api.schemas.collection import (
    CatalogRecordRead,
    CollectionEntryRead,
    CollectionEntryUpdate,
    ConditionUpdate,
    FormatRead,
    ManualAlbumCreate,
    RematchRequest,
)
from musivault.core.errors import CatalogLookupError, MatchNotFoundError
from musivault.db.models.catalog_record import CatalogRecord
from musivault.db.models.collection_entry import CollectionEntry
from musivault.db.models.user import User
from musivault.services.import_orchestrator import ALREADY_OWNED_REASON
from musivault.services.row_matcher import (
    NO_MATCH_REASON,
    RowMatcher,
    ValidatedRow,
    describe_lookup_failure,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def serialize_entry(entry: CollectionEntry) -> CollectionEntryRead:
    return CollectionEntryRead(
        id=entry.id,
        album=CatalogRecordRead.model_validate(entry.catalog_record),
        format=FormatRead(
            name=entry.format_name,
            text=entry.format_text or "",
            descriptions=entry.format_descriptions or [],
        ),
        media_condition=entry.media_condition,
        sleeve_condition=entry.sleeve_condition,
        added_at=entry.added_at,
    )


def list_entries(db: Session, user_id: int) -> list[CollectionEntry]:
    return list(
        db.scalars(
            select(CollectionEntry)
            .where(CollectionEntry.user_id == user_id)
            .order_by(CollectionEntry.added_at.desc(), CollectionEntry.id.desc())
        )
        .unique()
        .all()
    )


def _get_owned_entry(db: Session, entry_id: int, user: User) -> CollectionEntry:
    entry = db.get(CollectionEntry, entry_id)
    if not entry or entry.user_id != user.id:
        raise HTTPException(status_code=404, detail="Collection item not found")
    return entry


def _ensure_not_duplicate(
    db: Session, entry: CollectionEntry, catalog_record_id: int, format_name: str
) -> None:
    duplicate = db.scalar(
        select(CollectionEntry.id).where(
            CollectionEntry.user_id == entry.user_id,
            CollectionEntry.catalog_record_id == catalog_record_id,
            CollectionEntry.format_name == format_name,
            CollectionEntry.id != entry.id,
        )
    )
    if duplicate is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_OWNED_REASON)


@router.get("/styles", summary="Styles present in my collection", response_model=list[str])
async def get_styles(
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> list[str]:
    style_lists = db.scalars(
        select(CatalogRecord.styles)
        .join(CollectionEntry, CollectionEntry.catalog_record_id == CatalogRecord.id)
        .where(CollectionEntry.user_id == user.id)
    ).all()
    styles = {style for styles in style_lists for style in styles or [] if style}
    return sorted(styles, key=str.casefold)


@router.post(
    "/manual",
    summary="Add an album that is not on Discogs",
    status_code=status.HTTP_201_CREATED,
    response_model=CollectionEntryRead,
)
async def add_manual_album(
    payload: ManualAlbumCreate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> CollectionEntryRead:
    # Manual records never share a row, so every one gets discogs_id NULL
    record = CatalogRecord(
        discogs_id=None,
        artist=payload.artist,
        title=payload.title,
        year=payload.year or None,
        thumb=payload.cover_image,
        cover_image=payload.cover_image,
        styles=[style.strip() for style in payload.styles if style.strip()],
    )
    db.add(record)
    db.flush()
    entry = CollectionEntry(
        user_id=user.id,
        catalog_record=record,
        format_name=payload.format,
        format_text=payload.format,
        format_descriptions=[],
        media_condition=payload.media_condition,
        sleeve_condition=payload.sleeve_condition,
    )
    db.add(entry)
    db.commit()
    logger.info(f"User {user.id} added manual album {payload.artist} - {payload.title}")
    return serialize_entry(entry)


@router.get("", summary="List my collection", response_model=list[CollectionEntryRead])
async def get_my_collection(
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> list[CollectionEntryRead]:
    try:
        return [serialize_entry(entry) for entry in list_entries(db, user.id)]
    except SQLAlchemyError as e:
        logger.error(f"Database error listing collection: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve collection",
        ) from e


@router.get("/{entry_id}", summary="One collection item", response_model=CollectionEntryRead)
async def get_entry(
    entry_id: int,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> CollectionEntryRead:
    return serialize_entry(_get_owned_entry(db, entry_id, user))


@router.put("/{entry_id}", summary="Update format or condition", response_model=CollectionEntryRead)
async def update_entry(
    entry_id: int,
    payload: CollectionEntryUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> CollectionEntryRead:
    entry = _get_owned_entry(db, entry_id, user)
    provided = payload.model_fields_set
    if payload.format is not None and payload.format.name != entry.format_name:
        _ensure_not_duplicate(db, entry, entry.catalog_record_id, payload.format.name)
        entry.format_name = payload.format.name
    if "media_condition" in provided:
        entry.media_condition = payload.media_condition
    if "sleeve_condition" in provided:
        entry.sleeve_condition = payload.sleeve_condition
    db.commit()
    return serialize_entry(entry)


@router.post(
    "/{entry_id}/rematch",
    summary="Point an item at another Discogs release",
    response_model=CollectionEntryRead,
)
def rematch_entry(
    entry_id: int,
    payload: RematchRequest,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    matcher: RowMatcher = Depends(get_row_matcher),
) -> CollectionEntryRead:
    entry = _get_owned_entry(db, entry_id, user)
    record = entry.catalog_record
    wanted = ValidatedRow(
        row_index=0,
        artist=record.artist,
        album=record.title,
        format=entry.format_name,
        year=int(record.year) if (record.year or "").isdigit() else None,
        external_id=payload.new_discogs_id,
    )
    try:
        result = matcher.match_validated(db, wanted)
    except MatchNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_MATCH_REASON) from e
    except CatalogLookupError as e:
        code = (
            status.HTTP_404_NOT_FOUND
            if isinstance(e.__cause__, MatchNotFoundError)
            else status.HTTP_502_BAD_GATEWAY
        )
        raise HTTPException(status_code=code, detail=describe_lookup_failure(e)) from e

    _ensure_not_duplicate(db, entry, result.record.id, result.format.name)
    entry.catalog_record_id = result.record.id
    entry.format_text = result.format.text
    entry.format_descriptions = result.format.descriptions
    db.commit()
    db.refresh(entry)
    logger.info(
        f"User {user.id} rematched collection item {entry_id} "
        f"to Discogs release {result.record.discogs_id}"
    )
    return serialize_entry(entry)


@router.patch(
    "/{entry_id}/condition",
    summary="Grade media and sleeve condition",
    response_model=CollectionEntryRead,
)
async def update_condition(
    entry_id: int,
    payload: ConditionUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> CollectionEntryRead:
    entry = _get_owned_entry(db, entry_id, user)
    entry.media_condition = payload.media_condition
    entry.sleeve_condition = payload.sleeve_condition
    db.commit()
    return serialize_entry(entry)


@router.delete(
    "/{entry_id}",
    summary="Remove an item from my collection",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_entry(
    entry_id: int,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> Response:
    entry = _get_owned_entry(db, entry_id, user)
    db.delete(entry)
    db.commit()
    logger.info(f"User {user.id} removed collection item {entry_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
