"""Tests for the HTTP control surface."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from backup_worker.config import Settings
from backup_worker.errors import ListFailed
from backup_worker.main import app
from backup_worker.models import (
    BatchReport, DatabaseTarget, JobReport, StoredObject, SweepReport, TargetResult
)


@pytest.fixture
def settings():
    return Settings(
        access_key="key",
        secret_key="secret",
        region="us-east-1",
        endpoint="https://s3.example.com",
        bucket="backups",
        targets=[DatabaseTarget.from_uri("postgresql://u:p@h:5432/db1")],
        retention_days=None,
    )


@pytest.fixture
def client(settings):
    app.state.settings = settings
    app.state.storage = MagicMock()
    app.state.schedule = None
    app.state.last_report = None
    # no context manager: startup would load real configuration
    yield TestClient(app)
    app.state.settings = None
    app.state.storage = None


def completed_report():
    report = BatchReport(started_at=datetime(2024, 1, 1, 3, 0, 0), finished_at=datetime(2024, 1, 1, 3, 0, 5))
    report.results.append(TargetResult(
        label="postgresql/db1@h", engine="postgresql", database="db1", host="h",
        status="completed", key="backup-postgresql-2024-01-01_03:00:00-db1-h.tar.gz",
        size_bytes=42, duration_seconds=5.0,
    ))
    return report


class TestBackupsRouter:
    def test_run_backups_now(self, client, settings):
        with patch("backup_worker.routers.backups.run_backups", return_value=completed_report()) as mock_run:
            response = client.post("/backups/run")

        assert response.status_code == 200
        body = response.json()
        assert body["succeeded"] == 1
        assert body["failed"] == 0
        assert body["results"][0]["key"] == "backup-postgresql-2024-01-01_03:00:00-db1-h.tar.gz"
        assert mock_run.call_args.args[0] == settings.targets

    def test_run_backups_with_no_targets(self, client, settings):
        settings.targets = []
        response = client.post("/backups/run")
        assert response.status_code == 200
        assert response.json()["results"] == []
        app.state.storage.put_object.assert_not_called()

    def test_list_backups(self, client):
        modified = datetime(2024, 1, 2, tzinfo=timezone.utc)
        app.state.storage.list_objects.return_value = iter([StoredObject("backup-a.tar.gz", modified, 12)])

        response = client.get("/backups")

        assert response.status_code == 200
        assert response.json()[0]["key"] == "backup-a.tar.gz"
        assert response.json()[0]["size"] == 12

    def test_list_backups_storage_error(self, client):
        app.state.storage.list_objects.side_effect = ListFailed("denied")
        response = client.get("/backups")
        assert response.status_code == 502


class TestSystemRouter:
    def test_retention_disabled(self, client):
        response = client.post("/system/retention/run")
        assert response.status_code == 200
        assert response.json()["skipped"] is True
        app.state.storage.list_objects.assert_not_called()

    def test_run_job_and_status(self, client):
        report = JobReport(backups=completed_report(), sweep=SweepReport(skipped=True))
        with patch("backup_worker.main.run_job", return_value=report):
            response = client.post("/system/run")

        assert response.status_code == 200
        assert response.json()["backups"]["succeeded"] == 1
        assert response.json()["sweep"]["skipped"] is True

        status = client.get("/system/status").json()
        assert status["running"] is False
        assert status["targets"] == ["postgresql/db1@h"]
        assert status["last_run"]["backups"]["results"][0]["status"] == "completed"

    def test_status_before_any_run(self, client):
        response = client.get("/system/status")
        assert response.status_code == 200
        assert response.json()["last_run"] is None
        assert response.json()["schedule"] is None
