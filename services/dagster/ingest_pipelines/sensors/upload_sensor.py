"""Upload sensor.

Polls `landing-zone/uploads/` for new spreadsheet/CSV uploads and triggers
`ingest_upload_job` once per object.
"""

from __future__ import annotations

import json

from dagster import (
    DefaultSensorStatus,
    RunRequest,
    SensorEvaluationContext,
    SkipReason,
    sensor,
)

from libs.errors import InvalidUploadPath
from libs.models import IngestSettings
from libs.upload_paths import parse_upload_path
from ..resources import MinIOResource


CURSOR_VERSION = 1
MAX_CURSOR_KEYS = 1000


def _parse_cursor(cursor: str | None) -> list[str]:
    if not cursor:
        return []
    try:
        cursor_data = json.loads(cursor)
        if isinstance(cursor_data, dict) and cursor_data.get("v") == CURSOR_VERSION:
            processed_keys = cursor_data.get("processed_keys", [])
            seen: set[str] = set()
            result: list[str] = []
            for key in processed_keys:
                if isinstance(key, str) and key.strip() and key not in seen:
                    seen.add(key)
                    result.append(key)
            return result
    except (json.JSONDecodeError, TypeError, AttributeError):
        return []
    return []


def _build_cursor(processed_keys: list[str]) -> str:
    keys_list = processed_keys[-MAX_CURSOR_KEYS:]
    return json.dumps(
        {"v": CURSOR_VERSION, "processed_keys": keys_list, "max_keys": MAX_CURSOR_KEYS}
    )


@sensor(
    job_name="ingest_upload_job",
    minimum_interval_seconds=30,
    default_status=DefaultSensorStatus.RUNNING,
    name="upload_sensor",
    description="Polls uploads/ in the landing zone and launches ingest_upload_job per new file",
)
def upload_sensor(context: SensorEvaluationContext, minio: MinIOResource):
    settings = IngestSettings()

    try:
        uploads = minio.list_uploads(settings.uploads_prefix)
    except Exception as e:
        context.log.error(f"Failed to list uploads: {e}")
        yield SkipReason(f"Error listing uploads: {e}")
        return

    processed_order = _parse_cursor(context.cursor)
    processed_set = set(processed_order)
    new_uploads = [key for key in uploads if key not in processed_set]

    if not new_uploads:
        yield SkipReason("No new uploads found")
        return

    processed_this_run: list[str] = []

    for object_key in new_uploads:
        try:
            try:
                upload = parse_upload_path(object_key, settings.uploads_prefix)
            except InvalidUploadPath as e:
                context.log.error(f"{e}. Marking as processed to prevent retry.")
                processed_this_run.append(object_key)
                continue

            file_size = minio.get_object_size(object_key)

            yield RunRequest(
                run_key=f"ingest_upload:{object_key}",
                run_config={
                    "ops": {
                        "create_job_record": {
                            "config": {
                                "object_key": object_key,
                                "file_size": file_size,
                            }
                        },
                    }
                },
                tags={
                    "job_id": upload.job_id,
                    "tenant_id": upload.tenant_id,
                    "workspace_id": upload.workspace_id,
                    "object_key": object_key,
                    "sensor": "upload_sensor",
                    "dagster/max_runtime": str(int(settings.timeout_ceiling_seconds)),
                },
            )
            processed_this_run.append(object_key)

            context.log.info(
                f"Triggered ingest_upload_job for '{object_key}' "
                f"(job_id={upload.job_id}, {file_size} bytes)"
            )
        except Exception as e:
            context.log.error(
                f"Error processing upload '{object_key}': {e}. Marking as processed to prevent retry."
            )
            processed_this_run.append(object_key)

    if processed_this_run:
        all_processed = processed_order + [
            k for k in processed_this_run if k not in processed_set
        ]
        context.update_cursor(_build_cursor(all_processed))
