"""Track CSV import runs and their per-row outcomes for auditing."""

import uuid

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from musivault.db.base import Base

JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_COMPLETED = "completed"
JOB_ERROR = "error"
TERMINAL_STATUSES = frozenset({JOB_COMPLETED, JOB_ERROR})

_ALLOWED_TRANSITIONS = {
    JOB_PENDING: {JOB_PROCESSING, JOB_ERROR},
    JOB_PROCESSING: {JOB_COMPLETED, JOB_ERROR},
    JOB_COMPLETED: set(),
    JOB_ERROR: set(),
}

ENTRY_SUCCESS = "success"
ENTRY_FAILED = "failed"
ENTRY_SKIPPED = "skipped"


class InvalidTransitionError(ValueError):
    """Raised when a job is moved out of a terminal state or backwards."""


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    file_name = Column(String(255))
    status = Column(String(32), nullable=False, default=JOB_PENDING)
    total_rows = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    fail_count = Column(Integer, nullable=False, default=0)
    skip_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    entries = relationship(
        "ImportEntry",
        order_by="ImportEntry.row_index",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_import_jobs_user_created", user_id, created_at),)

    @property
    def processed_rows(self) -> int:
        return (self.success_count or 0) + (self.fail_count or 0) + (self.skip_count or 0)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition_to(self, status: str) -> None:
        current = self.status or JOB_PENDING
        if status not in _ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(
                f"Import job {self.id} cannot move from {current} to {status}"
            )
        self.status = status

    def record_entry(self, entry: "ImportEntry") -> None:
        """Append an outcome and bump the matching counter in the same unit of work."""
        if self.status != JOB_PROCESSING:
            raise InvalidTransitionError(
                f"Import job {self.id} is {self.status}, entries can no longer be added"
            )
        if self.processed_rows >= (self.total_rows or 0):
            raise ValueError(f"Import job {self.id} already recorded {self.total_rows} rows")
        if entry.status == ENTRY_SUCCESS:
            self.success_count = (self.success_count or 0) + 1
        elif entry.status == ENTRY_FAILED:
            self.fail_count = (self.fail_count or 0) + 1
        elif entry.status == ENTRY_SKIPPED:
            self.skip_count = (self.skip_count or 0) + 1
        else:
            raise ValueError(f"Unknown entry status {entry.status!r}")
        self.entries.append(entry)


class ImportEntry(Base):
    __tablename__ = "import_entries"

    id = Column(Integer, primary_key=True)
    job_id = Column(
        String(36), ForeignKey("import_jobs.id", ondelete="CASCADE"), nullable=False
    )
    # 1-based: the first data row after the header is row 1
    row_index = Column(Integer, nullable=False)
    # Raw cell values are unbounded, so every echoed input is Text
    input_artist = Column(Text, nullable=False, default="")
    input_album = Column(Text, nullable=False, default="")
    input_year = Column(Text)
    input_format = Column(Text, nullable=False, default="")
    matched_artist = Column(Text)
    matched_album = Column(Text)
    matched_year = Column(String(16))
    external_id = Column(Integer)
    status = Column(String(16), nullable=False)
    reason = Column(Text)

    __table_args__ = (
        UniqueConstraint("job_id", "row_index", name="uq_import_entries_job_row"),
    )
