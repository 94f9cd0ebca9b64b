"""Cookie-based JWT authentication endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from musivault.api.dependencies.auth import get_current_user
from musivault.api.dependencies.db import get_session
from musivault.api.schemas.user import LoginRequest, RegisterRequest, UserRead
from musivault.core.config import get_settings
from musivault.core.security import create_access_token, hash_password, verify_password
from musivault.db.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


def _set_auth_cookie(response: Response, user: User) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=create_access_token(user.id),
        max_age=settings.access_token_expire_days * 24 * 60 * 60,
        httponly=True,
        samesite="strict",
        secure=settings.cookie_secure,
    )


@router.post(
    "/register",
    summary="Create an account",
    status_code=status.HTTP_201_CREATED,
    response_model=UserRead,
)
async def register(
    payload: RegisterRequest,
    response: Response,
    db: Session = Depends(get_session),
) -> UserRead:
    email = payload.email.lower()
    existing = db.scalar(
        select(User).where(
            or_(func.lower(User.email) == email, User.username == payload.username)
        )
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username or email already in use",
        )
    user = User(
        username=payload.username,
        email=email,
        password_hash=hash_password(payload.password),
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username or email already in use",
        ) from exc
    logger.info(f"Registered user {user.id} ({user.username})")
    _set_auth_cookie(response, user)
    return UserRead.model_validate(user)


@router.post("/login", summary="Log in", response_model=UserRead)
async def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_session),
) -> UserRead:
    user = db.scalar(select(User).where(func.lower(User.email) == payload.email.lower()))
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    _set_auth_cookie(response, user)
    return UserRead.model_validate(user)


@router.post("/logout", summary="Log out", status_code=status.HTTP_204_NO_CONTENT)
async def logout() -> Response:
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(get_settings().auth_cookie_name)
    return response


@router.get("/me", summary="Current user", response_model=UserRead)
async def me(user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(user)
