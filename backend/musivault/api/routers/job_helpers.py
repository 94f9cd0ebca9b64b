"""Shared helpers for shaping import job responses."""
from __future__ import annotations

from musivault.api.schemas.import_job import (
    ImportEntryRead,
    ImportJobRead,
    ImportJobSummary,
)
from musivault.core.config import get_settings
from musivault.db.models.import_job import ImportJob


def _summary_fields(job: ImportJob, progress_payload: dict | None) -> dict:
    """Counters and status always come from the database; Redis only adds a message."""
    progress_payload = progress_payload or {}

    processed = job.processed_rows
    progress = processed / job.total_rows if job.total_rows else None

    message = progress_payload.get("message")
    if not message:
        total_display = job.total_rows if job.total_rows else "?"
        message = f"Processed {processed}/{total_display} rows"

    return {
        "id": job.id,
        "file_name": job.file_name,
        "status": job.status,
        "total_rows": job.total_rows,
        "success_count": job.success_count,
        "fail_count": job.fail_count,
        "skip_count": job.skip_count,
        "progress": progress,
        "message": message,
        "error_message": job.error_message,
        "created_at": job.created_at,
        "started_at": job.started_at,
        "finished_at": job.finished_at,
    }


def serialize_job_summary(job: ImportJob, progress_payload: dict | None) -> ImportJobSummary:
    return ImportJobSummary(**_summary_fields(job, progress_payload))


def serialize_job(job: ImportJob, progress_payload: dict | None) -> ImportJobRead:
    """Combine DB state + cached progress snapshot into the polling payload."""
    poll_interval = None if job.is_terminal else get_settings().import_poll_interval_seconds
    return ImportJobRead(
        **_summary_fields(job, progress_payload),
        poll_interval=poll_interval,
        entries=[ImportEntryRead.model_validate(entry) for entry in job.entries],
    )
