# =============================================================================
# Ingest Ops - Upload and partition processing
# =============================================================================
# Core logic lives in plain functions that take resources and a logger so it
# can be unit tested without a Dagster context; the @op wrappers only wire
# resources, config and settings.
# =============================================================================

from typing import Any, Dict, Optional

from dagster import Config, OpExecutionContext, op

from libs.errors import JobCancelled
from libs.models import IngestSettings, JobRecord, JobStatus, PartitionTask
from libs.upload_paths import parse_upload_path

from .lifecycle import JobOrchestrator

__all__ = [
    "UploadConfig",
    "PartitionConfig",
    "create_job_record",
    "ingest_upload",
    "process_partition",
]


class UploadConfig(Config):
    """Upload detected by the sensor."""

    object_key: str
    file_size: int = 0
    uploaded_by: Optional[str] = None


class PartitionConfig(Config):
    """Partition task handed over by the dispatcher."""

    job_id: str
    tenant_id: str
    workspace_id: str
    partition_id: str


# =============================================================================
# Core logic
# =============================================================================

def _create_job_record(
    mongodb,
    object_key: str,
    file_size: int,
    uploaded_by: Optional[str],
    settings: IngestSettings,
    log,
) -> Dict[str, Any]:
    """
    Create the Job Record for a detected upload.

    Returns:
        Dict with the job document and ``created`` (False when a record with
        the same job_id already existed and processing must be skipped)

    Raises:
        InvalidUploadPath: The key does not follow the upload path convention
    """
    upload = parse_upload_path(object_key, settings.uploads_prefix)
    job = JobRecord(
        job_id=upload.job_id,
        tenant_id=upload.tenant_id,
        workspace_id=upload.workspace_id,
        file_path=upload.key,
        file_name=upload.file_name,
        file_size=file_size,
        created_by=uploaded_by or "system",
    )

    created = mongodb.create_job(job)
    if created:
        log.info(
            f"Created job {job.job_id} for '{upload.key}' "
            f"(tenant={job.tenant_id}, workspace={job.workspace_id}, {file_size} bytes)"
        )
    else:
        log.warning(f"Job {job.job_id} already exists; skipping '{upload.key}'")

    return {"job": job.model_dump(mode="json"), "created": created}


def _ingest_upload(
    mongodb,
    minio,
    dispatcher,
    job_info: Dict[str, Any],
    settings: IngestSettings,
    log,
    **orchestrator_kwargs,
) -> Dict[str, Any]:
    """
    Run an upload job to completion, partitioning, or failure.

    Non-row failures are recorded on the Job Record as ``failed`` and then
    re-raised so the Dagster run fails too. Cancellation is not a failure.
    """
    job = JobRecord(**job_info["job"])
    if not job_info.get("created", True):
        return {"job_id": job.job_id, "status": "skipped", "skipped": True}

    orchestrator = JobOrchestrator(
        mongodb, minio, dispatcher, settings, log, **orchestrator_kwargs
    )
    try:
        return orchestrator.run_upload(job).as_dict()
    except JobCancelled as e:
        log.info(f"Stopped job {job.job_id}: {e}")
        return {"job_id": job.job_id, "status": JobStatus.CANCELLED.value}
    except Exception as e:
        orchestrator.fail(job.job_id, e)
        raise


def _process_partition(
    mongodb,
    minio,
    dispatcher,
    task: PartitionTask,
    settings: IngestSettings,
    log,
    **orchestrator_kwargs,
) -> Dict[str, Any]:
    """Process one partition; same failure policy as ``_ingest_upload``."""
    orchestrator = JobOrchestrator(
        mongodb, minio, dispatcher, settings, log, **orchestrator_kwargs
    )
    try:
        return orchestrator.run_partition(task).as_dict()
    except JobCancelled as e:
        log.info(f"Stopped partition {task.partition_id}: {e}")
        return {"job_id": task.job_id, "status": JobStatus.CANCELLED.value}
    except Exception as e:
        orchestrator.fail_partition(task, e)
        raise


# =============================================================================
# Ops
# =============================================================================

@op(required_resource_keys={"mongodb"})
def create_job_record(context: OpExecutionContext, config: UploadConfig) -> dict:
    """
    Create the Job Record the moment an upload is picked up.

    Must run first so the job is queryable even if everything after fails.
    """
    return _create_job_record(
        mongodb=context.resources.mongodb,
        object_key=config.object_key,
        file_size=config.file_size,
        uploaded_by=config.uploaded_by,
        settings=IngestSettings(),
        log=context.log,
    )


@op(required_resource_keys={"mongodb", "minio", "dispatcher"})
def ingest_upload(context: OpExecutionContext, job_info: dict) -> dict:
    """
    Read, validate and persist an uploaded file, or split it into partitions.
    """
    return _ingest_upload(
        mongodb=context.resources.mongodb,
        minio=context.resources.minio,
        dispatcher=context.resources.dispatcher,
        job_info=job_info,
        settings=IngestSettings(),
        log=context.log,
    )


@op(required_resource_keys={"mongodb", "minio", "dispatcher"})
def process_partition(context: OpExecutionContext, config: PartitionConfig) -> dict:
    """
    Validate and persist one spilled partition and report its completion.
    """
    return _process_partition(
        mongodb=context.resources.mongodb,
        minio=context.resources.minio,
        dispatcher=context.resources.dispatcher,
        task=PartitionTask(**config.model_dump()),
        settings=IngestSettings(),
        log=context.log,
    )
