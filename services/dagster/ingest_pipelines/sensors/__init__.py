"""Dagster Sensors - Event-Driven Job Triggers."""

from .upload_sensor import upload_sensor
from .run_status_sensor import job_run_failure_sensor

__all__ = [
    "upload_sensor",
    "job_run_failure_sensor",
]
