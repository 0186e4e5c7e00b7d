# =============================================================================
# MinIO Resource - S3-Compatible Object Storage Operations
# =============================================================================
# Blob storage for the ingestion pipeline: uploaded files under `uploads/`
# and spilled partition payloads under `partitions/` in the landing bucket.
# Used by the upload sensor to list uploads, by ops to read files and to
# write/read/delete partition blobs.
# =============================================================================

import io
import json
from datetime import date, datetime
from typing import Any, Optional

from dagster import ConfigurableResource
from minio import Minio
from minio.error import S3Error
from pydantic import Field


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class MinIOResource(ConfigurableResource):
    """
    Dagster resource for MinIO (S3-compatible object storage) operations.

    Provides methods for:
    - Listing uploaded files in the landing zone
    - Checking size/existence and downloading uploaded files
    - Writing, reading and deleting partition blobs

    Attributes:
        endpoint: MinIO server endpoint (host:port)
        access_key: Access key for authentication
        secret_key: Secret key for authentication
        use_ssl: Whether to use SSL/TLS (default: False)
        landing_bucket: Landing zone bucket name (default: "landing-zone")
    """

    endpoint: str = Field(..., description="MinIO server endpoint (host:port)")
    access_key: str = Field(..., description="Access key for authentication")
    secret_key: str = Field(..., description="Secret key for authentication")
    use_ssl: bool = Field(False, description="Whether to use SSL/TLS")
    landing_bucket: str = Field("landing-zone", description="Landing zone bucket name")

    def get_client(self) -> Minio:
        """
        Create a MinIO client instance.

        Returns:
            Configured Minio client
        """
        return Minio(
            self.endpoint,
            access_key=self.access_key,
            secret_key=self.secret_key,
            secure=self.use_ssl,
        )

    def list_uploads(self, prefix: str = "uploads/") -> list[str]:
        """
        List uploaded object keys under ``prefix`` in the landing zone.

        Directory markers (keys ending in ``/``) are skipped.

        Raises:
            RuntimeError: If the landing bucket does not exist
            S3Error: For other storage errors
        """
        client = self.get_client()

        try:
            objects = client.list_objects(
                self.landing_bucket,
                prefix=prefix,
                recursive=True,
            )
            return [
                obj.object_name
                for obj in objects
                if not obj.object_name.endswith("/")
            ]

        except S3Error as exc:
            if exc.code == "NoSuchBucket":
                raise RuntimeError(
                    f"Landing bucket '{self.landing_bucket}' does not exist"
                ) from exc
            raise

    def get_object_size(self, key: str) -> int:
        """
        Return the size in bytes of an object without downloading it.

        Raises:
            RuntimeError: If the object does not exist
        """
        client = self.get_client()
        try:
            return client.stat_object(self.landing_bucket, key).size
        except S3Error as exc:
            if exc.code == "NoSuchKey":
                raise RuntimeError(
                    f"Object '{key}' not found in bucket '{self.landing_bucket}'"
                ) from exc
            raise

    def download_bytes(self, key: str) -> bytes:
        """
        Download an object from the landing zone into memory.

        Raises:
            RuntimeError: If the object does not exist
            S3Error: For other storage errors
        """
        client = self.get_client()

        try:
            response = client.get_object(self.landing_bucket, key)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        except S3Error as exc:
            if exc.code == "NoSuchKey":
                raise RuntimeError(
                    f"Object '{key}' not found in bucket '{self.landing_bucket}'"
                ) from exc
            raise

    def put_json(self, key: str, payload: dict) -> None:
        """
        Serialize ``payload`` as JSON and store it at ``key``.

        Dates and datetimes are written as ISO strings.
        """
        client = self.get_client()
        body = json.dumps(payload, default=_json_default).encode("utf-8")
        client.put_object(
            self.landing_bucket,
            key,
            io.BytesIO(body),
            length=len(body),
            content_type="application/json",
        )

    def get_json(self, key: str) -> Optional[dict]:
        """
        Load a JSON object.

        Returns:
            Parsed payload, or None if the object does not exist

        Raises:
            RuntimeError: If the object is not valid JSON
        """
        client = self.get_client()

        try:
            response = client.get_object(self.landing_bucket, key)
            try:
                data = response.read()
            finally:
                response.close()
                response.release_conn()
        except S3Error as exc:
            if exc.code == "NoSuchKey":
                return None
            raise

        try:
            return json.loads(data)
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Object '{key}' contains invalid JSON: {exc}") from exc

    def remove_object(self, key: str) -> None:
        """Delete an object, tolerating one that is already gone."""
        client = self.get_client()
        try:
            client.remove_object(self.landing_bucket, key)
        except S3Error as exc:
            if exc.code != "NoSuchKey":
                raise
