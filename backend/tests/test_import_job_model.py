"""Tests for musivault.db.models.import_job."""

from __future__ import annotations

import pytest

from musivault.db.models.import_job import (
    JOB_COMPLETED,
    JOB_ERROR,
    JOB_PENDING,
    JOB_PROCESSING,
    ImportEntry,
    ImportJob,
    InvalidTransitionError,
)


def _job(status=JOB_PENDING, total_rows=2) -> ImportJob:
    return ImportJob(
        id="job-1",
        user_id=1,
        status=status,
        total_rows=total_rows,
        success_count=0,
        fail_count=0,
        skip_count=0,
    )


def _entry(index: int, status: str) -> ImportEntry:
    return ImportEntry(
        row_index=index,
        input_artist="A",
        input_album="B",
        input_format="Vinyl",
        status=status,
        reason=None if status == "success" else "why",
    )


class TestTransitions:
    @pytest.mark.parametrize(
        "start, target",
        [
            (JOB_PENDING, JOB_PROCESSING),
            (JOB_PENDING, JOB_ERROR),
            (JOB_PROCESSING, JOB_COMPLETED),
            (JOB_PROCESSING, JOB_ERROR),
        ],
    )
    def test_allowed(self, start, target):
        job = _job(start)
        job.transition_to(target)
        assert job.status == target

    @pytest.mark.parametrize(
        "start, target",
        [
            (JOB_COMPLETED, JOB_PROCESSING),
            (JOB_COMPLETED, JOB_ERROR),
            (JOB_ERROR, JOB_COMPLETED),
            (JOB_PENDING, JOB_COMPLETED),
            (JOB_PROCESSING, JOB_PENDING),
        ],
    )
    def test_rejected(self, start, target):
        job = _job(start)
        with pytest.raises(InvalidTransitionError):
            job.transition_to(target)
        assert job.status == start


class TestRecordEntry:
    def test_counters_follow_entries(self):
        job = _job(JOB_PROCESSING, total_rows=3)
        job.record_entry(_entry(1, "success"))
        job.record_entry(_entry(2, "failed"))
        job.record_entry(_entry(3, "skipped"))

        assert (job.success_count, job.fail_count, job.skip_count) == (1, 1, 1)
        assert job.processed_rows == 3
        assert len(job.entries) == 3

    def test_cannot_exceed_total_rows(self):
        job = _job(JOB_PROCESSING, total_rows=1)
        job.record_entry(_entry(1, "success"))
        with pytest.raises(ValueError):
            job.record_entry(_entry(2, "success"))
        assert job.processed_rows == 1

    def test_only_while_processing(self):
        job = _job(JOB_COMPLETED)
        with pytest.raises(InvalidTransitionError):
            job.record_entry(_entry(1, "success"))

    def test_unknown_status(self):
        job = _job(JOB_PROCESSING)
        with pytest.raises(ValueError, match="Unknown entry status"):
            job.record_entry(_entry(1, "maybe"))
        assert job.processed_rows == 0


@pytest.mark.parametrize(
    "column",
    ["input_artist", "input_album", "input_year", "input_format", "matched_artist", "matched_album"],
)
def test_echoed_cells_are_unbounded(column):
    assert ImportEntry.__table__.c[column].type.length is None
