"""Tests for musivault.core.config and the worker limits derived from it."""

from __future__ import annotations

from musivault.core.config import DISCOGS_REQUESTS_PER_ROW, Settings
from musivault.workers.celery_app import celery_app


class TestImportTimeLimits:
    def test_default_limit_covers_a_full_upload_at_discogs_pace(self):
        settings = Settings()

        paced = settings.import_max_rows * settings.discogs_rate_limit_seconds
        assert paced <= settings.import_soft_time_limit
        assert paced * DISCOGS_REQUESTS_PER_ROW <= settings.import_soft_time_limit

    def test_limit_follows_row_cap_and_pacing(self):
        small = Settings(import_max_rows=10, discogs_rate_limit_ms=1000)
        large = Settings(import_max_rows=10_000, discogs_rate_limit_ms=1000)

        assert large.import_soft_time_limit - small.import_soft_time_limit == (
            (10_000 - 10) * DISCOGS_REQUESTS_PER_ROW
        )

    def test_explicit_limit_wins(self):
        settings = Settings(import_time_limit_seconds=900)

        assert settings.import_soft_time_limit == 900
        assert settings.import_hard_time_limit > 900

    def test_visibility_timeout_outlasts_hard_limit(self):
        settings = Settings()

        assert settings.broker_visibility_timeout > settings.import_hard_time_limit


def test_celery_app_uses_derived_limits():
    conf = celery_app.conf

    assert conf.task_acks_late is True
    assert conf.task_soft_time_limit < conf.task_time_limit
    assert conf.broker_transport_options["visibility_timeout"] > conf.task_time_limit
