# =============================================================================
# Configuration Models Module
# =============================================================================
# Provides Pydantic Settings models for the pipeline configuration:
# - MongoSettings: MongoDB job store configuration
# - IngestSettings: batch sizes, thresholds and time limits of the pipeline
# =============================================================================

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "MongoSettings",
    "IngestSettings",
]


# =============================================================================
# MongoDB Settings (Job Store)
# =============================================================================

class MongoSettings(BaseSettings):
    """
    Configuration for MongoDB (job store and target collections).

    Maps environment variables:
    - MONGO_HOST → host
    - MONGO_PORT → port
    - MONGO_INITDB_ROOT_USERNAME → username
    - MONGO_INITDB_ROOT_PASSWORD → password
    - MONGO_DATABASE → database
    - MONGO_AUTH_SOURCE → auth_source
    """

    host: str = Field("mongodb", validation_alias="MONGO_HOST", description="MongoDB host")
    port: int = Field(27017, validation_alias="MONGO_PORT", description="MongoDB port")
    username: str = Field(..., validation_alias="MONGO_INITDB_ROOT_USERNAME", description="MongoDB username")
    password: str = Field(..., validation_alias="MONGO_INITDB_ROOT_PASSWORD", description="MongoDB password")
    database: str = Field("batch_ingest", validation_alias="MONGO_DATABASE", description="Database name")
    auth_source: str = Field("admin", validation_alias="MONGO_AUTH_SOURCE", description="Authentication source")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def connection_string(self) -> str:
        """
        Build MongoDB connection URI.

        Format: mongodb://[username]:[password]@[host]:[port]/[database]?authSource=[auth_source]
        """
        return (
            f"mongodb://{self.username}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?authSource={self.auth_source}"
        )


# =============================================================================
# Ingest Settings (Pipeline Limits)
# =============================================================================

class IngestSettings(BaseSettings):
    """
    Limits of the batch ingestion pipeline.

    Maps environment variables with prefix "INGEST_" (e.g. INGEST_BATCH_SIZE).

    Attributes:
        batch_size: Rows per atomic write group (store limit is ~500)
        progress_interval: Validated rows between progress updates
        partition_threshold: Row count above which a job is partitioned
        partition_size: Rows per partition
        timeout_warning_seconds: Elapsed validation time that triggers the
            fallback to partitioning
        timeout_ceiling_seconds: Hard execution limit of one upload run
            (applied as the `dagster/max_runtime` run tag)
        max_file_size_bytes: Uploads larger than this fail before parsing
        max_error_entries: Cap on the Job Record error list
        allowed_extensions: Accepted upload extensions
        uploads_prefix: Landing bucket prefix watched for uploads
        partitions_prefix: Landing bucket prefix for spilled partitions
    """

    batch_size: int = Field(400, ge=1, le=500)
    progress_interval: int = Field(100, ge=1)
    partition_threshold: int = Field(5000, ge=1)
    partition_size: int = Field(2000, ge=1)
    timeout_warning_seconds: float = Field(8 * 60, ge=0)
    timeout_ceiling_seconds: float = Field(9 * 60, ge=0)
    max_file_size_bytes: int = Field(50 * 1024 * 1024, ge=1)
    max_error_entries: int = Field(100, ge=0)
    allowed_extensions: tuple[str, ...] = (".xlsx", ".xls", ".csv")
    uploads_prefix: str = "uploads/"
    partitions_prefix: str = "partitions/"

    model_config = SettingsConfigDict(
        env_prefix="INGEST_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )
