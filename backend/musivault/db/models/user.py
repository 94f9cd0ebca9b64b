"""SQLAlchemy model for Musivault accounts."""

import secrets

from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from musivault.db.base import Base


def generate_share_id() -> str:
    return secrets.token_urlsafe(12)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(64), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(128))
    is_admin = Column(Boolean, nullable=False, default=False)
    is_public = Column(Boolean, nullable=False, default=False)
    enable_condition_grading = Column(Boolean, nullable=False, default=False)
    public_share_id = Column(
        String(32), nullable=False, unique=True, default=generate_share_id
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True))
