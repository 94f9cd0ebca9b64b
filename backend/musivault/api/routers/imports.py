"""Endpoints for CSV collection imports and their logs."""

from __future__ import annotations

import logging

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse, Response
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from musivault.api.dependencies.auth import get_current_user
from musivault.api.dependencies.db import get_session
from musivault.api.routers.job_helpers import serialize_job, serialize_job_summary
from musivault.api.schemas.import_job import (
    ImportAccepted,
    ImportJobRead,
    ImportJobSummary,
)
from musivault.core.config import get_settings
from musivault.core.errors import ParseError
from musivault.db.models.import_job import JOB_ERROR, JOB_PENDING, ImportJob
from musivault.db.models.user import User
from musivault.services.csv_ingest import parse_csv_bytes, render_template
from musivault.services.progress_tracker import fetch_progress, publish_progress
from musivault.workers.tasks.import_collection import import_collection_task

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_owned_job(db: Session, log_id: str, user: User) -> ImportJob:
    job = db.get(ImportJob, log_id)
    # Other users' logs are reported as missing rather than forbidden
    if not job or job.user_id != user.id:
        raise HTTPException(status_code=404, detail="Import log not found")
    return job


@router.post(
    "/import",
    summary="Start a CSV collection import",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportAccepted,
)
async def enqueue_import(
    file: UploadFile = File(...),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ImportAccepted:
    """Parse the upload synchronously, persist the job and hand it to the worker."""
    settings = get_settings()

    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV uploads are supported",
        )

    payload = await file.read()
    if len(payload) > settings.import_max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.import_max_upload_bytes} bytes",
        )

    try:
        rows = parse_csv_bytes(payload, max_rows=settings.import_max_rows)
    except ParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid CSV: {exc}",
        ) from exc

    try:
        job = ImportJob(
            user_id=user.id,
            file_name=file.filename,
            total_rows=len(rows),
            status=JOB_PENDING,
        )
        db.add(job)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Database error creating import job: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create import job",
        ) from exc

    try:
        publish_progress(job.id, 0.0, "Queued")
        import_collection_task.apply_async(
            args=(job.id, [row.model_dump() for row in rows]),
            queue="imports",
        )
    except Exception as exc:
        logger.error(f"Error enqueueing import task: {exc}", exc_info=True)
        job.transition_to(JOB_ERROR)
        job.error_message = "Failed to start import process"
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start import process",
        ) from exc

    logger.info(
        f"Created import job {job.id} for user {user.id} "
        f"({file.filename}, {job.total_rows} rows)"
    )
    return ImportAccepted(log_id=job.id, total_rows=job.total_rows, status=job.status)


@router.get(
    "/template",
    summary="Download an empty CSV template",
)
async def download_template() -> Response:
    return Response(
        content=render_template(),
        media_type="text/csv",
        headers={
            "Content-Disposition": 'attachment; filename="musivault_import_template.csv"'
        },
    )


@router.get(
    "/import/logs",
    summary="List the caller's import logs",
    response_model=list[ImportJobSummary],
)
async def list_import_logs(
    limit: int = Query(20, ge=1, le=100, description="Maximum number of logs to return"),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> list[ImportJobSummary]:
    """Newest first."""
    try:
        jobs = db.scalars(
            select(ImportJob)
            .where(ImportJob.user_id == user.id)
            .order_by(ImportJob.created_at.desc(), ImportJob.id)
            .limit(limit)
        ).all()
    except SQLAlchemyError as exc:
        logger.error(f"Database error listing import logs: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve import logs",
        ) from exc
    return [serialize_job_summary(job, fetch_progress(job.id)) for job in jobs]


@router.get(
    "/import/logs/{log_id}",
    summary="Poll an import log",
    response_model=ImportJobRead,
)
async def get_import_log(
    log_id: str,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ImportJobRead:
    """Current counters, status and entries; poll until the status is terminal."""
    try:
        job = _get_owned_job(db, log_id, user)
        return serialize_job(job, fetch_progress(log_id))
    except HTTPException:
        raise
    except SQLAlchemyError as exc:
        logger.error(f"Database error fetching import log {log_id}: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve import log",
        ) from exc


@router.get(
    "/import/logs/{log_id}/download",
    summary="Download the full import log as JSON",
)
async def download_import_log(
    log_id: str,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> JSONResponse:
    job = _get_owned_job(db, log_id, user)
    document = serialize_job(job, None).model_dump(
        mode="json", by_alias=True, exclude={"poll_interval", "progress", "message"}
    )
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="import_log_{job.id}.json"'},
    )
