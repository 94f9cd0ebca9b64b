"""Collection payloads."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from musivault.api.schemas.import_job import CamelModel
from musivault.core.errors import RowValidationError
from musivault.db.models.collection_entry import MEDIA_CONDITIONS, SLEEVE_CONDITIONS
from musivault.utils.csv_validator import normalize_format


class CatalogRecordRead(CamelModel):
    id: int
    discogs_id: int | None = None
    title: str
    artist: str
    year: str | None = None
    thumb: str | None = None
    cover_image: str | None = None
    styles: list[str] = Field(default_factory=list)
    tracklist: list[dict] = Field(default_factory=list)
    labels: list[dict] = Field(default_factory=list)


class FormatRead(CamelModel):
    name: str
    text: str = ""
    descriptions: list[str] = Field(default_factory=list)


class CollectionEntryRead(CamelModel):
    id: int
    album: CatalogRecordRead
    format: FormatRead
    media_condition: str | None = None
    sleeve_condition: str | None = None
    added_at: datetime | None = None


class ConditionUpdate(BaseModel):
    media_condition: str | None = Field(None, alias="mediaCondition")
    sleeve_condition: str | None = Field(None, alias="sleeveCondition")

    model_config = {"populate_by_name": True}

    @field_validator("media_condition")
    @classmethod
    def check_media(cls, v: str | None) -> str | None:
        if v is not None and v not in MEDIA_CONDITIONS:
            raise ValueError(f"Unknown media condition '{v}'")
        return v

    @field_validator("sleeve_condition")
    @classmethod
    def check_sleeve(cls, v: str | None) -> str | None:
        if v is not None and v not in SLEEVE_CONDITIONS:
            raise ValueError(f"Unknown sleeve condition '{v}'")
        return v


class PublicCollectionRead(BaseModel):
    username: str
    collection: list[CollectionEntryRead]
    total: int


def _check_format(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        return normalize_format(value)
    except RowValidationError as e:
        raise ValueError(str(e)) from e


class FormatUpdate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return _check_format(v)


class CollectionEntryUpdate(ConditionUpdate):
    """Partial update; omitted fields keep their value."""

    format: FormatUpdate | None = None


class RematchRequest(BaseModel):
    new_discogs_id: int | None = Field(None, alias="newDiscogsId", gt=0)

    model_config = {"populate_by_name": True}


class ManualAlbumCreate(ConditionUpdate):
    artist: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    year: str | None = Field(None, max_length=8)
    format: str
    cover_image: str | None = Field(None, alias="coverImage")
    styles: list[str] = Field(default_factory=list)

    @field_validator("artist", "title")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("format")
    @classmethod
    def check_format(cls, v: str) -> str:
        return _check_format(v)
