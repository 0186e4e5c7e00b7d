"""Dagster Jobs - Executable Workflows."""

from .ingest_upload_job import ingest_upload_job
from .process_partition_job import process_partition_job

__all__ = ["ingest_upload_job", "process_partition_job"]
