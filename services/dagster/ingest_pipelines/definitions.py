"""Dagster Definitions - Repository Configuration.

Defines jobs, resources, and sensors for the batch ingestion pipeline.
"""

from dagster import Definitions, EnvVar

from .jobs import ingest_upload_job, process_partition_job
from .resources import DagsterDispatcherResource, MinIOResource, MongoDBResource
from .sensors import job_run_failure_sensor, upload_sensor


# =============================================================================
# Definitions
# =============================================================================

defs = Definitions(
    jobs=[
        ingest_upload_job,  # One run per upload
        process_partition_job,  # One run per partition, launched by the dispatcher
    ],
    resources={
        "minio": MinIOResource(
            endpoint=EnvVar("MINIO_ENDPOINT"),
            access_key=EnvVar("MINIO_ROOT_USER"),
            secret_key=EnvVar("MINIO_ROOT_PASSWORD"),
            use_ssl=False,
            landing_bucket="landing-zone",
        ),
        "mongodb": MongoDBResource(
            connection_string=EnvVar("MONGO_CONNECTION_STRING"),
            database="batch_ingest",
        ),
        "dispatcher": DagsterDispatcherResource(
            graphql_url=EnvVar("DAGSTER_GRAPHQL_URL"),
        ),
    },
    schedules=[],
    sensors=[
        upload_sensor,  # Routes new uploads to ingest_upload_job
        job_run_failure_sensor,  # Lifecycle: fails Job Records of crashed runs
    ],
)
