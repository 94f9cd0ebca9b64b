"""Celery task running a collection import in the background."""

from __future__ import annotations

import logging
from typing import Any

from musivault.db.session import get_fresh_session
from musivault.services.discogs_client import DiscogsClient
from musivault.services.csv_ingest import ImportRow
from musivault.services.import_orchestrator import ImportOrchestrator
from musivault.services.rate_limiter import get_shared_rate_limiter
from musivault.services.row_matcher import RowMatcher
from musivault.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="musivault.workers.tasks.import_collection")
def import_collection_task(self, job_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Match every row against Discogs and record the outcome on the job."""
    parsed = [ImportRow.model_validate(row) for row in rows]
    logger.info(f"Starting import job {job_id} ({len(parsed)} rows)")

    with DiscogsClient.from_settings(get_shared_rate_limiter()) as client:
        orchestrator = ImportOrchestrator(get_fresh_session, RowMatcher(client))
        # SoftTimeLimitExceeded surfaces inside the row loop and ends the job in error
        status = orchestrator.run(job_id, parsed)
        logger.info(
            f"Import job {job_id} finished with status {status} "
            f"after {client.request_count} Discogs request(s)"
        )
    return {"job_id": job_id, "status": status}
