"""Import log payloads returned to pollers and downloads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class ImportEntryRead(CamelModel):
    row_index: int
    input_artist: str
    input_album: str
    input_year: str | None = None
    input_format: str
    matched_artist: str | None = None
    matched_album: str | None = None
    matched_year: str | None = None
    external_id: int | None = None
    status: str = Field(..., description="success|failed|skipped")
    reason: str | None = None


class ImportAccepted(CamelModel):
    log_id: str
    total_rows: int
    status: str


class ImportJobSummary(CamelModel):
    id: str
    file_name: str | None = None
    status: str = Field(..., description="pending|processing|completed|error")
    total_rows: int
    success_count: int
    fail_count: int
    skip_count: int
    progress: float | None = Field(None, description="0-1 range for UI progress bars")
    message: str | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class ImportJobRead(ImportJobSummary):
    poll_interval: float | None = Field(
        None, description="Seconds to wait before polling again; null once terminal"
    )
    entries: list[ImportEntryRead] = Field(default_factory=list)
