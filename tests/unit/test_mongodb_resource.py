"""
Unit tests for MongoDBResource.

Uses mongomock to exercise MongoDB operations without a live service.
"""

import pytest

from libs.models import JobRecord, JobStage, JobStatus, PartitionEntry


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def job():
    return JobRecord(
        job_id="job42",
        tenant_id="tenant_a",
        workspace_id="ws_1",
        file_path="uploads/tenant_a/ws_1/job42_1.csv",
        file_name="job42_1.csv",
    )


@pytest.fixture
def created(mongo_resource, job):
    assert mongo_resource.create_job(job) is True
    return job


def _partitions(n):
    return [
        PartitionEntry(
            partition_id=f"job42_part_{i}",
            start_index=i * 10,
            end_index=(i + 1) * 10,
            record_count=10,
        )
        for i in range(n)
    ]


# =============================================================================
# Test: create and read
# =============================================================================


def test_create_job_is_idempotent(mongo_resource, db, created, job):
    assert mongo_resource.create_job(job) is False
    assert db["batch_jobs"].count_documents({"job_id": "job42"}) == 1


def test_get_job_and_status(mongo_resource, created):
    record = mongo_resource.get_job("job42")

    assert record.file_name == "job42_1.csv"
    assert mongo_resource.get_job_status("job42") == "processing"
    assert mongo_resource.is_job_active("job42") is True
    assert mongo_resource.get_job("missing") is None


def test_get_workspace(mongo_resource, workspace):
    assert mongo_resource.get_workspace("tenant_a", "ws_1")["activity_type"] == "VEHICULOS"
    assert mongo_resource.get_workspace("tenant_a", "nope") is None


# =============================================================================
# Test: progress updates
# =============================================================================


def test_apply_progress_increments_and_never_regresses(mongo_resource, created):
    mongo_resource.apply_progress(
        "job42", counters={"valid_rows": 3, "invalid_rows": 1}, current=4, percent=20, total=10
    )
    mongo_resource.apply_progress("job42", counters={"valid_rows": 2}, current=2, percent=10)

    record = mongo_resource.get_job("job42")
    assert record.statistics.valid_rows == 5
    assert record.statistics.invalid_rows == 1
    assert record.progress.current == 4
    assert record.progress.percent == 20
    assert record.progress.total == 10


def test_apply_progress_caps_error_list(mongo_resource, created):
    errors = [{"row": i + 2, "type": "error", "errors": []} for i in range(150)]
    mongo_resource.apply_progress("job42", errors=errors[:80])
    mongo_resource.apply_progress("job42", errors=errors[80:])

    record = mongo_resource.get_job("job42")
    assert len(record.errors) == 100
    assert record.errors[0].row == 2


def test_apply_progress_ignores_terminal_jobs(mongo_resource, created):
    mongo_resource.finish_job("job42", JobStatus.FAILED, stage=JobStage.FAILED, error_message="x")

    assert mongo_resource.apply_progress("job42", counters={"valid_rows": 1}) is False
    assert mongo_resource.get_job("job42").statistics.valid_rows == 0


# =============================================================================
# Test: transitions
# =============================================================================


def test_finish_job_stamps_completion(mongo_resource, created):
    assert mongo_resource.finish_job("job42", JobStatus.COMPLETED, stage=JobStage.COMPLETED)

    record = mongo_resource.get_job("job42")
    assert record.status == "completed"
    assert record.progress.percent == 100
    assert record.completed_at is not None
    assert record.processing_time_ms >= 0


def test_terminal_status_is_final(mongo_resource, created):
    mongo_resource.finish_job("job42", JobStatus.CANCELLED, stage=JobStage.CANCELLED)

    assert mongo_resource.finish_job("job42", JobStatus.FAILED, stage=JobStage.FAILED) is False
    assert mongo_resource.get_job_status("job42") == "cancelled"


def test_set_partitioned_only_from_processing(mongo_resource, created):
    assert mongo_resource.set_partitioned("job42", _partitions(3)) is True
    assert mongo_resource.set_partitioned("job42", _partitions(2)) is False

    record = mongo_resource.get_job("job42")
    assert record.status == "partitioned"
    assert record.total_partitions == 3
    assert record.completed_partitions == 0


def test_complete_partition_counts_once(mongo_resource, created):
    mongo_resource.set_partitioned("job42", _partitions(2))

    first = mongo_resource.complete_partition("job42", "job42_part_1")
    again = mongo_resource.complete_partition("job42", "job42_part_1")

    assert first.completed_partitions == 1
    assert first.partitions[1].status == "completed"
    assert first.partitions[0].status == "pending"
    assert again is None
    assert mongo_resource.complete_partition("job42", "job42_part_9") is None


# =============================================================================
# Test: target collections
# =============================================================================


def test_insert_write_group(mongo_resource, db):
    assert mongo_resource.insert_write_group([{"n": 1}, {"n": 2}]) == 2
    assert mongo_resource.insert_write_group([]) == 0
    assert db["records"].count_documents({}) == 2


def test_increment_workspace_records(mongo_resource, db, workspace):
    mongo_resource.increment_workspace_records("tenant_a", "ws_1", 7)
    mongo_resource.increment_workspace_records("tenant_a", "ws_1", 3)

    document = db["workspaces"].find_one({"workspace_id": "ws_1"})
    assert document["statistics"]["total_records"] == 10
    assert "last_activity" in document["statistics"]
