"""Partition worker job: one run per spilled partition."""

from dagster import job

from ..ops.ingest_ops import process_partition


@job(
    name="process_partition_job",
    description="Validate and persist one partition of a large upload and report its completion to the parent job.",
    tags={"pipeline": "batch_ingest"},
)
def process_partition_job():
    process_partition()
