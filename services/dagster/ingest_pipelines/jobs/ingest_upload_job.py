"""Upload ingestion job: one run per uploaded spreadsheet/CSV."""

from dagster import job

from ..ops.ingest_ops import create_job_record, ingest_upload


@job(
    name="ingest_upload_job",
    description="Create the Job Record for an upload, then validate and persist its rows or split it into partitions.",
    tags={"pipeline": "batch_ingest"},
)
def ingest_upload_job():
    """
    Upload ingestion pipeline.

    Flow:
    1. Create the Job Record (status=processing)
    2. Check format/size/workspace, read, validate, write or partition
    """
    job_info = create_job_record()
    ingest_upload(job_info)
