"""Unit tests for the run failure sensor's Job Record updates."""

from datetime import datetime, timezone

import pytest

from services.dagster.ingest_pipelines.sensors.run_status_sensor import (
    TRACKED_JOBS,
    _mark_job_failed,
)


END = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def jobs(db):
    db["batch_jobs"].insert_many(
        [
            {"job_id": "running", "status": "processing", "progress": {"stage": "Validating records"}},
            {"job_id": "split", "status": "partitioned", "progress": {"stage": "Large file"}},
            {"job_id": "done", "status": "completed", "progress": {"stage": "Processing completed"}},
        ]
    )
    return db["batch_jobs"]


def test_tracks_both_ingestion_jobs():
    assert TRACKED_JOBS == {"ingest_upload_job", "process_partition_job"}


@pytest.mark.parametrize("job_id", ["running", "split"])
def test_active_job_is_failed(db, jobs, job_id):
    assert _mark_job_failed(db, job_id, "Run failed", END) is True

    document = jobs.find_one({"job_id": job_id})
    assert document["status"] == "failed"
    assert document["error_message"] == "Run failed"
    assert document["progress"]["stage"] == "Processing failed"
    assert document["completed_at"] is not None


def test_terminal_job_is_untouched(db, jobs):
    assert _mark_job_failed(db, "done", "Run failed", END) is False
    assert jobs.find_one({"job_id": "done"})["status"] == "completed"


def test_missing_job(db, jobs):
    assert _mark_job_failed(db, "ghost", "Run failed", END) is False
