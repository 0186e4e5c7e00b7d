# =============================================================================
# Upload Path Utilities
# =============================================================================
# Shared utilities for parsing landing-zone object keys.
# Used by the upload sensor, the ingest ops and the partitioner.
# =============================================================================

"""
Object key utilities for the ingestion pipeline.

This module provides functions for:
- Parsing S3 paths into bucket and key components
- Deriving tenant/workspace/job identity from an upload key
- Building partition blob keys
"""

import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Tuple

from libs.errors import InvalidUploadPath

__all__ = [
    "UploadPath",
    "parse_s3_path",
    "extract_s3_key",
    "parse_upload_path",
    "partition_blob_key",
    "partition_id_for",
]

UPLOADS_PREFIX = "uploads/"
PARTITIONS_PREFIX = "partitions/"


@dataclass(frozen=True)
class UploadPath:
    """Identity derived from ``uploads/{tenant_id}/{workspace_id}/{job_id}_{timestamp}.{ext}``."""

    key: str
    tenant_id: str
    workspace_id: str
    job_id: str
    file_name: str


def parse_s3_path(s3_path: str) -> Tuple[str, str]:
    """
    Parse S3 path into bucket and key components.

    Raises:
        ValueError: If path is not valid s3:// format or missing key

    Examples:
        >>> parse_s3_path("s3://landing-zone/uploads/t1/w1/job_1.csv")
        ('landing-zone', 'uploads/t1/w1/job_1.csv')
    """
    if not s3_path.startswith("s3://"):
        raise ValueError(
            f"Invalid S3 path format: '{s3_path}'. Must start with 's3://'"
        )

    parts = s3_path[5:].split("/", 1)

    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(
            f"Invalid S3 path format: '{s3_path}'. Expected 's3://bucket/key'"
        )

    return parts[0], parts[1]


def extract_s3_key(s3_path: str) -> str:
    """
    Extract the key portion from an S3 path.

    For paths that are already keys (not s3:// format), returns them unchanged.

    Examples:
        >>> extract_s3_key("s3://landing-zone/uploads/t1/w1/job_1.csv")
        'uploads/t1/w1/job_1.csv'
        >>> extract_s3_key("uploads/t1/w1/job_1.csv")
        'uploads/t1/w1/job_1.csv'
    """
    if s3_path.startswith("s3://"):
        _, key = parse_s3_path(s3_path)
        return key
    return s3_path


def parse_upload_path(path: str, prefix: str = UPLOADS_PREFIX) -> UploadPath:
    """
    Derive job identity purely from an upload object key.

    The job id is the part of the file name before the first ``_``; a file
    name without one uses its stem, and an empty prefix gets a generated id.

    Raises:
        InvalidUploadPath: If the key is outside ``prefix`` or has fewer than
            four segments.

    Examples:
        >>> p = parse_upload_path("uploads/tenant_a/ws_1/job42_1737800000.xlsx")
        >>> (p.tenant_id, p.workspace_id, p.job_id)
        ('tenant_a', 'ws_1', 'job42')
    """
    key = extract_s3_key(path)
    if not key.startswith(prefix):
        raise InvalidUploadPath(f"Object '{key}' is outside the '{prefix}' prefix")

    parts = key.split("/")
    if len(parts) < 4 or not all(parts[1:4]):
        raise InvalidUploadPath(
            f"Invalid upload path '{key}'. Expected "
            f"{prefix}{{tenant_id}}/{{workspace_id}}/{{job_id}}_{{timestamp}}.{{ext}}"
        )

    tenant_id, workspace_id = parts[1], parts[2]
    file_name = parts[-1]

    if "_" in file_name:
        job_id = file_name.split("_", 1)[0]
    else:
        job_id = PurePosixPath(file_name).stem
    if not job_id:
        job_id = f"job_{int(time.time() * 1000)}"

    return UploadPath(
        key=key,
        tenant_id=tenant_id,
        workspace_id=workspace_id,
        job_id=job_id,
        file_name=file_name,
    )


def partition_id_for(job_id: str, ordinal: int) -> str:
    """
    Examples:
        >>> partition_id_for("job42", 0)
        'job42_part_0'
    """
    return f"{job_id}_part_{ordinal}"


def partition_blob_key(
    tenant_id: str,
    job_id: str,
    partition_id: str,
    prefix: str = PARTITIONS_PREFIX,
) -> str:
    """
    Examples:
        >>> partition_blob_key("tenant_a", "job42", "job42_part_1")
        'partitions/tenant_a/job42/job42_part_1.json'
    """
    return f"{prefix}{tenant_id}/{job_id}/{partition_id}.json"
