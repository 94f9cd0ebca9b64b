"""Account and preference payloads."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from musivault.api.schemas.import_job import CamelModel


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=2, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserRead(CamelModel):
    id: int
    username: str
    email: str
    display_name: str | None = None
    is_admin: bool
    created_at: datetime | None = None


class PreferencesRead(CamelModel):
    is_public: bool
    enable_condition_grading: bool
    public_share_id: str | None = None


class PreferencesUpdate(CamelModel):
    is_public: bool | None = None
    enable_condition_grading: bool | None = None


class PasswordUpdate(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class ProfileUpdate(CamelModel):
    username: str | None = Field(None, min_length=2, max_length=64)
    email: EmailStr | None = None
    display_name: str | None = Field(None, max_length=128)
