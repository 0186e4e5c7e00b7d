# =============================================================================
# Partitioner
# =============================================================================
# Splits an oversized job into contiguous partitions, spills each one to
# blob storage as JSON, records the partition entries on the Job Record and
# dispatches one `process_partition_job` run per partition.
# =============================================================================

from typing import Any, Dict, List, Sequence, Tuple

from libs.errors import DispatchFailure, JobCancelled, PartitionWriteFailure
from libs.models import JobRecord, PartitionEntry, PartitionTask
from libs.upload_paths import partition_blob_key, partition_id_for

__all__ = [
    "needs_partitioning",
    "slice_partitions",
    "partition_job",
    "partition_payload",
]


def needs_partitioning(row_count: int, threshold: int) -> bool:
    """
    Examples:
        >>> needs_partitioning(5000, 5000), needs_partitioning(5001, 5000)
        (False, True)
    """
    return row_count > threshold


def slice_partitions(
    job_id: str,
    rows: Sequence[Dict[str, Any]],
    size: int,
    offset: int = 0,
) -> List[Tuple[PartitionEntry, Sequence[Dict[str, Any]]]]:
    """
    Slice ``rows`` into ordinal, contiguous chunks of ``size`` rows.

    ``offset`` is the index of ``rows[0]`` in the original file, so entries
    always carry original indices. The last chunk may be shorter.
    """
    if size <= 0:
        raise ValueError(f"Partition size must be positive, got {size}")

    slices = []
    for ordinal, start in enumerate(range(0, len(rows), size)):
        chunk = rows[start:start + size]
        entry = PartitionEntry(
            partition_id=partition_id_for(job_id, ordinal),
            start_index=offset + start,
            end_index=offset + start + len(chunk),
            record_count=len(chunk),
        )
        slices.append((entry, chunk))
    return slices


def partition_payload(job_id: str, entry: PartitionEntry, rows: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "job_id": job_id,
        "partition_id": entry.partition_id,
        "start_index": entry.start_index,
        "rows": list(rows),
    }


def _remove_blobs(minio, keys: List[str], log) -> None:
    for key in keys:
        try:
            minio.remove_object(key)
        except Exception as e:
            log.warning(f"Failed to clean up partition blob '{key}': {e}")


def partition_job(
    minio,
    mongodb,
    dispatcher,
    job: JobRecord,
    rows: Sequence[Dict[str, Any]],
    *,
    partition_size: int,
    partitions_prefix: str = "partitions/",
    offset: int = 0,
    log,
) -> List[PartitionEntry]:
    """
    Spill ``rows`` to blob storage and hand them to partition workers.

    Either every partition blob is written, recorded and dispatched, or none
    is left behind: a failed write or dispatch removes the blobs written.

    Raises:
        PartitionWriteFailure: A partition blob could not be written
        JobCancelled: The job left ``processing`` before partitions were recorded
        DispatchFailure: A partition worker could not be launched
    """
    slices = slice_partitions(job.job_id, rows, partition_size, offset)
    log.info(
        f"Partitioning job {job.job_id}: {len(rows)} rows into {len(slices)} "
        f"partitions of up to {partition_size} (offset {offset})"
    )

    written: List[str] = []
    for entry, chunk in slices:
        key = partition_blob_key(job.tenant_id, job.job_id, entry.partition_id, partitions_prefix)
        try:
            minio.put_json(key, partition_payload(job.job_id, entry, chunk))
        except Exception as e:
            log.error(f"Failed to write partition {entry.partition_id}: {e}")
            _remove_blobs(minio, written, log)
            raise PartitionWriteFailure(
                f"Failed to write partition {entry.partition_id} of job {job.job_id}: {e}"
            ) from e
        written.append(key)

    entries = [entry for entry, _ in slices]
    if not mongodb.set_partitioned(job.job_id, entries):
        _remove_blobs(minio, written, log)
        raise JobCancelled(f"Job {job.job_id} left 'processing' before partitioning")

    for entry in entries:
        task = PartitionTask(
            job_id=job.job_id,
            tenant_id=job.tenant_id,
            workspace_id=job.workspace_id,
            partition_id=entry.partition_id,
        )
        try:
            run_id = dispatcher.dispatch(task)
        except Exception as e:
            # Workers already launched skip once the job is failed.
            log.error(f"Failed to dispatch partition {entry.partition_id}: {e}")
            _remove_blobs(minio, written, log)
            raise DispatchFailure(
                f"Failed to dispatch partition {entry.partition_id} of job {job.job_id}: {e}"
            ) from e
        log.info(f"Dispatched partition {entry.partition_id} (run {run_id})")

    return entries
