"""Tests for the /api/collection/import endpoints."""

from __future__ import annotations

import json

from musivault.db.models.import_job import JOB_COMPLETED, JOB_PENDING, ImportJob
from musivault.db.session import SessionLocal
from musivault.services.csv_ingest import ImportRow
from musivault.services.import_orchestrator import ImportOrchestrator

CSV = (
    b"Artist,Album,Format,Year,ExternalId\n"
    b"Daft Punk,Discovery,Vinyl,2001,123\n"
    b"Some Band,Some Album,8-Track,,\n"
)


def _upload(client, payload=CSV, filename="collection.csv"):
    return client.post(
        "/api/collection/import",
        files={"file": (filename, payload, "text/csv")},
    )


def _run_queued(queued, matcher):
    job_id, rows = queued.calls[-1]["args"]
    orchestrator = ImportOrchestrator(SessionLocal, matcher, progress=lambda *a, **k: None)
    orchestrator.run(job_id, [ImportRow.model_validate(row) for row in rows])
    return job_id


class TestUpload:
    def test_accepted_and_enqueued(self, auth_client, queued, db, user):
        response = _upload(auth_client)

        assert response.status_code == 202
        body = response.json()
        assert body["totalRows"] == 2
        assert body["status"] == JOB_PENDING

        call = queued.calls[0]
        assert call["options"]["queue"] == "imports"
        job_id, rows = call["args"]
        assert job_id == body["logId"]
        assert [row["row_index"] for row in rows] == [1, 2]
        assert rows[0]["external_id"] == "123"

        job = db.get(ImportJob, job_id)
        assert job.user_id == user.id
        assert job.file_name == "collection.csv"
        assert job.total_rows == 2

    def test_requires_authentication(self, client, queued):
        response = _upload(client)
        assert response.status_code == 401
        assert queued.calls == []

    def test_parse_error_creates_no_job(self, auth_client, queued, db):
        response = _upload(auth_client, b"Artist,Album\nDaft Punk,Discovery\n")

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid CSV:")
        assert queued.calls == []
        assert db.query(ImportJob).count() == 0

    def test_rejects_non_csv_files(self, auth_client, queued):
        response = _upload(auth_client, filename="collection.xlsx")
        assert response.status_code == 400

    def test_rejects_oversized_upload(self, auth_client, queued, monkeypatch):
        from musivault.core.config import get_settings

        monkeypatch.setattr(get_settings(), "import_max_upload_bytes", 10)
        response = _upload(auth_client)
        assert response.status_code == 413

    def test_enqueue_failure_marks_job_as_error(self, auth_client, monkeypatch, db):
        from musivault.api.routers import imports as imports_router

        class _BrokenTask:
            def apply_async(self, *args, **kwargs):
                raise ConnectionError("broker unreachable")

        monkeypatch.setattr(imports_router, "import_collection_task", _BrokenTask())

        response = _upload(auth_client)

        assert response.status_code == 500
        job = db.query(ImportJob).one()
        assert job.status == "error"
        assert job.error_message == "Failed to start import process"


class TestLogs:
    def test_poll_until_completed(self, auth_client, queued, matcher, discogs):
        discogs.add_release(123)
        log_id = _upload(auth_client).json()["logId"]

        pending = auth_client.get(f"/api/collection/import/logs/{log_id}").json()
        assert pending["status"] == JOB_PENDING
        assert pending["pollInterval"] == 2.0
        assert pending["entries"] == []

        _run_queued(queued, matcher)

        done = auth_client.get(f"/api/collection/import/logs/{log_id}").json()
        assert done["status"] == JOB_COMPLETED
        assert done["pollInterval"] is None
        assert done["successCount"] == 1
        assert done["failCount"] == 1
        assert done["progress"] == 1.0
        assert [e["rowIndex"] for e in done["entries"]] == [1, 2]
        assert done["entries"][0]["matchedAlbum"] == "Discovery"
        assert done["entries"][1]["status"] == "failed"
        assert "Invalid format" in done["entries"][1]["reason"]

    def test_list_is_scoped_to_the_caller(self, auth_client, queued, db, other_user):
        mine = _upload(auth_client).json()["logId"]
        db.add(ImportJob(user_id=other_user.id, file_name="theirs.csv", total_rows=1))
        db.commit()

        response = auth_client.get("/api/collection/import/logs")

        assert response.status_code == 200
        assert [item["id"] for item in response.json()] == [mine]

    def test_other_users_log_is_not_found(self, auth_client, db, other_user):
        job = ImportJob(user_id=other_user.id, file_name="theirs.csv", total_rows=1)
        db.add(job)
        db.commit()

        assert auth_client.get(f"/api/collection/import/logs/{job.id}").status_code == 404
        assert auth_client.get(f"/api/collection/import/logs/{job.id}/download").status_code == 404
        assert auth_client.get("/api/collection/import/logs/unknown").status_code == 404

    def test_download(self, auth_client, queued, matcher, discogs):
        discogs.add_release(123)
        log_id = _upload(auth_client).json()["logId"]
        _run_queued(queued, matcher)

        response = auth_client.get(f"/api/collection/import/logs/{log_id}/download")

        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            f'attachment; filename="import_log_{log_id}.json"'
        )
        document = json.loads(response.content)
        assert document["id"] == log_id
        assert document["totalRows"] == 2
        assert len(document["entries"]) == 2
        assert "pollInterval" not in document


def test_template(client):
    response = client.get("/api/collection/template")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    header = response.text.splitlines()[0]
    assert header == "Artist,Album,Format,Year,ExternalId,CatalogNumber,MediaCondition,SleeveCondition"
