"""Unit tests for the partitioner."""

import pytest

from libs.errors import DispatchFailure, JobCancelled, PartitionWriteFailure
from libs.models import JobRecord
from services.dagster.ingest_pipelines.ops.partition_ops import (
    needs_partitioning,
    partition_job,
    slice_partitions,
)


@pytest.fixture
def job(mongo_resource):
    record = JobRecord(
        job_id="job42",
        tenant_id="tenant_a",
        workspace_id="ws_1",
        file_path="uploads/tenant_a/ws_1/job42_1.csv",
        file_name="job42_1.csv",
    )
    mongo_resource.create_job(record)
    return record


def _rows(n):
    return [{"i": i} for i in range(n)]


def test_threshold_is_exclusive():
    assert needs_partitioning(5000, 5000) is False
    assert needs_partitioning(5001, 5000) is True


def test_slices_cover_rows_exactly_once():
    rows = _rows(5001)
    slices = slice_partitions("job42", rows, 2000)

    assert [entry.record_count for entry, _ in slices] == [2000, 2000, 1001]
    assert [entry.partition_id for entry, _ in slices] == [
        "job42_part_0",
        "job42_part_1",
        "job42_part_2",
    ]
    covered = [row["i"] for _, chunk in slices for row in chunk]
    assert covered == list(range(5001))
    for (left, _), (right, _) in zip(slices, slices[1:]):
        assert left.end_index == right.start_index


def test_slices_keep_original_offsets():
    slices = slice_partitions("job42", _rows(150), 100, offset=200)
    assert [(e.start_index, e.end_index) for e, _ in slices] == [(200, 300), (300, 350)]


def test_slice_size_must_be_positive():
    with pytest.raises(ValueError):
        slice_partitions("job42", _rows(3), 0)


def test_partition_job_spills_records_and_dispatches(job, mongo_resource, minio, blob_store, dispatcher, log):
    entries = partition_job(minio, mongo_resource, dispatcher, job, _rows(450), partition_size=200, log=log)

    assert len(entries) == 3
    assert sorted(blob_store) == [
        "partitions/tenant_a/job42/job42_part_0.json",
        "partitions/tenant_a/job42/job42_part_1.json",
        "partitions/tenant_a/job42/job42_part_2.json",
    ]
    assert minio.get_json("partitions/tenant_a/job42/job42_part_2.json")["start_index"] == 400
    assert [t.partition_id for t in dispatcher.dispatched] == [e.partition_id for e in entries]

    record = mongo_resource.get_job("job42")
    assert record.status == "partitioned"
    assert record.total_partitions == 3


def test_failed_blob_write_removes_written_blobs(job, mongo_resource, minio, blob_store, dispatcher, log):
    writes = []

    def flaky_put(key, payload):
        if writes:
            raise OSError("disk full")
        writes.append(key)
        blob_store[key] = b"{}"

    minio.put_json.side_effect = flaky_put

    with pytest.raises(PartitionWriteFailure):
        partition_job(minio, mongo_resource, dispatcher, job, _rows(450), partition_size=200, log=log)

    assert blob_store == {}
    assert dispatcher.dispatched == []
    assert mongo_resource.get_job("job42").status == "processing"


def test_failed_dispatch_removes_every_blob(job, mongo_resource, minio, blob_store, dispatcher, log):
    launched = []

    def flaky_dispatch(task):
        if launched:
            raise RuntimeError("dagster unavailable")
        launched.append(task)
        return "run-1"

    dispatcher.dispatch.side_effect = flaky_dispatch

    with pytest.raises(DispatchFailure, match="job42_part_1"):
        partition_job(minio, mongo_resource, dispatcher, job, _rows(450), partition_size=200, log=log)

    assert blob_store == {}
    assert len(launched) == 1


def test_cancelled_job_is_not_partitioned(job, mongo_resource, db, minio, blob_store, dispatcher, log):
    db["batch_jobs"].update_one({"job_id": "job42"}, {"$set": {"status": "cancelled"}})

    with pytest.raises(JobCancelled):
        partition_job(minio, mongo_resource, dispatcher, job, _rows(10), partition_size=5, log=log)

    assert blob_store == {}
    assert dispatcher.dispatched == []
