# =============================================================================
# Run Status Sensor - Job Record failure tracking
# =============================================================================
# Marks Job Records failed when an ingestion run dies outside the ops' own
# error handling (process crash, run worker killed, Dagster cancellation).
# =============================================================================

"""Run failure sensor for Job Record lifecycle tracking."""

from datetime import datetime, timezone

from dagster import (
    DagsterRunStatus,
    DefaultSensorStatus,
    RunFailureSensorContext,
    run_failure_sensor,
)

from libs.models import ACTIVE_STATUSES, JobStage, JobStatus


__all__ = ["job_run_failure_sensor"]


TRACKED_JOBS = frozenset(["ingest_upload_job", "process_partition_job"])


def _get_mongodb_client():
    """Create a MongoDB client using settings from environment."""
    from libs.models.config import MongoSettings
    from pymongo import MongoClient

    settings = MongoSettings()
    client = MongoClient(settings.connection_string)
    return client, settings.database


def _mark_job_failed(db, job_id: str, error_message: str, end_time: datetime) -> bool:
    """Fail the job if it is still active; terminal records are left untouched."""
    result = db["batch_jobs"].update_one(
        {"job_id": job_id, "status": {"$in": [s.value for s in ACTIVE_STATUSES]}},
        {
            "$set": {
                "status": JobStatus.FAILED.value,
                "error_message": error_message,
                "completed_at": end_time,
                "progress.stage": JobStage.FAILED.value,
            }
        },
    )
    return result.modified_count > 0


@run_failure_sensor(
    name="job_run_failure_sensor",
    description="Marks active Job Records failed when their ingestion run fails or is canceled",
    default_status=DefaultSensorStatus.RUNNING,
)
def job_run_failure_sensor(context: RunFailureSensorContext):
    dagster_run = context.dagster_run
    job_name = dagster_run.job_name

    if job_name not in TRACKED_JOBS:
        context.log.debug(f"Skipping untracked job: {job_name}")
        return

    dagster_run_id = dagster_run.run_id
    job_id = dagster_run.tags.get("job_id")

    if not job_id:
        context.log.warning(
            f"Run {dagster_run_id} has no job_id tag, cannot update Job Record"
        )
        return

    if dagster_run.status == DagsterRunStatus.CANCELED:
        error_message = f"Run canceled. See Dagster UI for details: {dagster_run_id}"
    else:
        error_message = f"Run failed. See Dagster UI for details: {dagster_run_id}"

    run_stats = context.instance.get_run_stats(dagster_run_id)
    end_time = (
        datetime.fromtimestamp(run_stats.end_time, tz=timezone.utc)
        if run_stats and run_stats.end_time
        else datetime.now(timezone.utc)
    )

    client, db_name = _get_mongodb_client()
    try:
        if _mark_job_failed(client[db_name], job_id, error_message, end_time):
            context.log.info(f"Marked job {job_id} failed after run {dagster_run_id}")
        else:
            context.log.info(f"Job {job_id} already terminal; run {dagster_run_id} ignored")
    finally:
        client.close()
