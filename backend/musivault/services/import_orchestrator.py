"""Drive an ImportJob from pending to a terminal state, one row at a time."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from musivault.core.errors import (
    CatalogLookupError,
    MatchNotFoundError,
    RowValidationError,
)
from musivault.db.models.collection_entry import CollectionEntry
from musivault.db.models.import_job import (
    ENTRY_FAILED,
    ENTRY_SKIPPED,
    ENTRY_SUCCESS,
    JOB_COMPLETED,
    JOB_ERROR,
    JOB_PENDING,
    JOB_PROCESSING,
    ImportEntry,
    ImportJob,
)
from musivault.services.csv_ingest import ImportRow
from musivault.services.progress_tracker import publish_progress
from musivault.services.row_matcher import (
    NO_MATCH_REASON,
    MatchResult,
    RowMatcher,
    describe_lookup_failure,
)

logger = logging.getLogger(__name__)

ALREADY_OWNED_REASON = "Already in collection (same format)"

ProgressPublisher = Callable[..., None]


class JobSupersededError(Exception):
    """Another worker moved the job to a terminal state while this one was running."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _base_entry(row: ImportRow) -> dict[str, Any]:
    return {
        "row_index": row.row_index,
        "input_artist": row.artist,
        "input_album": row.album,
        "input_year": row.year,
        "input_format": row.format,
    }


def _matched_fields(result: MatchResult) -> dict[str, Any]:
    return {
        "matched_artist": result.record.artist,
        "matched_album": result.record.title,
        "matched_year": result.record.year,
        "external_id": result.record.discogs_id,
    }


class ImportOrchestrator:
    """Sequential row processing; each row is committed with its counter update."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        matcher: RowMatcher,
        *,
        progress: ProgressPublisher = publish_progress,
    ):
        self.session_factory = session_factory
        self.matcher = matcher
        self.progress = progress

    def run(self, job_id: str, rows: Iterable[ImportRow]) -> str | None:
        """Process every row and return the job's final status."""
        db = self.session_factory()
        try:
            job = db.get(ImportJob, job_id)
            if job is None:
                logger.warning(f"Import job {job_id} not found, nothing to do")
                return None
            if job.is_terminal:
                logger.info(f"Import job {job_id} already {job.status}, skipping")
                return job.status

            try:
                self._start(db, job)
                # Redelivered tasks continue after the rows already on record
                recorded = {entry.row_index for entry in job.entries}
                for row in rows:
                    if row.row_index in recorded:
                        continue
                    self._process_row(db, job, row)
                    self._publish(job)
                self._finish(db, job)
            except JobSupersededError as exc:
                db.rollback()
                logger.warning(f"Import job {job_id} stopped: {exc}")
                job = db.get(ImportJob, job_id)
                return job.status if job else None
            except Exception as exc:
                db.rollback()
                logger.error(f"Import job {job_id} aborted: {exc}", exc_info=True)
                return self._fail(db, job_id, exc)
            return job.status
        finally:
            db.close()

    @staticmethod
    def _lock_job(db: Session, job: ImportJob) -> None:
        """Reload the job under a row lock so concurrent deliveries serialise."""
        db.refresh(job, with_for_update=True)
        if job.is_terminal:
            raise JobSupersededError(f"job is already {job.status}")

    @staticmethod
    def _row_recorded(db: Session, job_id: str, row_index: int) -> bool:
        existing = db.scalar(
            select(ImportEntry.id).where(
                ImportEntry.job_id == job_id, ImportEntry.row_index == row_index
            )
        )
        return existing is not None

    def _start(self, db: Session, job: ImportJob) -> None:
        self._lock_job(db, job)
        if job.status == JOB_PENDING:
            job.transition_to(JOB_PROCESSING)
            job.started_at = _now()
            db.commit()
        logger.info(f"Import job {job.id} processing {job.total_rows} row(s)")
        self._publish(job)

    def _process_row(self, db: Session, job: ImportJob, row: ImportRow) -> None:
        self._lock_job(db, job)
        if self._row_recorded(db, job.id, row.row_index):
            db.commit()
            logger.info(f"Import job {job.id} row {row.row_index} already recorded, skipping")
            return

        fields = _base_entry(row)
        try:
            result = self.matcher.match(db, row)
        except RowValidationError as e:
            entry = ImportEntry(status=ENTRY_FAILED, reason=str(e), **fields)
        except MatchNotFoundError:
            entry = ImportEntry(status=ENTRY_SKIPPED, reason=NO_MATCH_REASON, **fields)
        except CatalogLookupError as e:
            entry = ImportEntry(
                status=ENTRY_FAILED, reason=describe_lookup_failure(e), **fields
            )
        else:
            fields.update(_matched_fields(result))
            if self._already_owned(db, job.user_id, result):
                entry = ImportEntry(
                    status=ENTRY_SKIPPED, reason=ALREADY_OWNED_REASON, **fields
                )
            else:
                db.add(
                    CollectionEntry(
                        user_id=job.user_id,
                        catalog_record_id=result.record.id,
                        format_name=result.format.name,
                        format_text=result.format.text,
                        format_descriptions=result.format.descriptions,
                        media_condition=result.media_condition,
                        sleeve_condition=result.sleeve_condition,
                    )
                )
                entry = ImportEntry(status=ENTRY_SUCCESS, **fields)

        job.record_entry(entry)
        db.commit()
        logger.info(
            f"Import job {job.id} row {row.row_index}: {entry.status}"
            + (f" ({entry.reason})" if entry.reason else "")
        )

    @staticmethod
    def _already_owned(db: Session, user_id: int, result: MatchResult) -> bool:
        existing = db.scalar(
            select(CollectionEntry.id).where(
                CollectionEntry.user_id == user_id,
                CollectionEntry.catalog_record_id == result.record.id,
                CollectionEntry.format_name == result.format.name,
            )
        )
        return existing is not None

    def _finish(self, db: Session, job: ImportJob) -> None:
        self._lock_job(db, job)
        job.transition_to(JOB_COMPLETED)
        job.finished_at = _now()
        db.commit()
        logger.info(
            f"Import job {job.id} completed: {job.success_count} imported, "
            f"{job.skip_count} skipped, {job.fail_count} failed"
        )
        self._publish(job, message="Import complete")

    def _fail(self, db: Session, job_id: str, exc: BaseException) -> str | None:
        try:
            job = db.get(ImportJob, job_id, with_for_update=True)
            if job is None:
                return None
            if not job.is_terminal:
                job.transition_to(JOB_ERROR)
                job.error_message = str(exc) or exc.__class__.__name__
                job.finished_at = _now()
                db.commit()
            self._publish(job, message="Import failed")
            return job.status
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"Could not mark import job {job_id} as {JOB_ERROR}: {e}", exc_info=True
            )
            return None

    def _publish(self, job: ImportJob, message: str | None = None) -> None:
        processed = job.processed_rows
        total = job.total_rows or 0
        self.progress(
            job.id,
            processed / total if total else 0.0,
            message or f"Processed {processed}/{total} rows",
        )
