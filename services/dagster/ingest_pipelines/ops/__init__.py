"""Dagster Ops - Reusable Computation Units."""

from .ingest_ops import create_job_record, ingest_upload, process_partition

__all__ = [
    "create_job_record",
    "ingest_upload",
    "process_partition",
]
