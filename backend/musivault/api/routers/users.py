"""Per-user account settings: profile, password and preferences."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from musivault.api.dependencies.auth import get_current_user
from musivault.api.dependencies.db import get_session
from musivault.api.schemas.user import (
    PasswordUpdate,
    PreferencesRead,
    PreferencesUpdate,
    ProfileUpdate,
    UserRead,
)
from musivault.core.security import hash_password, verify_password
from musivault.db.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


def _preferences(user: User) -> PreferencesRead:
    return PreferencesRead(
        is_public=user.is_public,
        enable_condition_grading=user.enable_condition_grading,
        # The share link is only revealed while the collection is public
        public_share_id=user.public_share_id if user.is_public else None,
    )


@router.get("/me/preferences", response_model=PreferencesRead)
async def get_preferences(user: User = Depends(get_current_user)) -> PreferencesRead:
    return _preferences(user)


@router.patch("/me/preferences", response_model=PreferencesRead)
async def update_preferences(
    payload: PreferencesUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> PreferencesRead:
    if payload.is_public is not None:
        user.is_public = payload.is_public
    if payload.enable_condition_grading is not None:
        user.enable_condition_grading = payload.enable_condition_grading
    db.commit()
    return _preferences(user)


@router.put(
    "/me/password",
    summary="Change my password",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def update_password(
    payload: PasswordUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> Response:
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid current password",
        )
    user.password_hash = hash_password(payload.new_password)
    db.commit()
    logger.info(f"User {user.id} changed their password")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/me/profile", summary="Update my profile", response_model=UserRead)
async def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> UserRead:
    if payload.username and payload.username != user.username:
        taken = db.scalar(
            select(User.id).where(User.username == payload.username, User.id != user.id)
        )
        if taken is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username is already taken",
            )
        user.username = payload.username

    email = payload.email.lower() if payload.email else None
    if email and email != user.email:
        taken = db.scalar(
            select(User.id).where(func.lower(User.email) == email, User.id != user.id)
        )
        if taken is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email is already in use",
            )
        user.email = email

    # An empty display name clears it
    if "display_name" in payload.model_fields_set:
        user.display_name = payload.display_name or None
    db.commit()
    return UserRead.model_validate(user)
