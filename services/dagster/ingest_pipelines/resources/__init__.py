"""Dagster Resources - External Service Connections."""

from .dispatcher_resource import DagsterDispatcherResource
from .minio_resource import MinIOResource
from .mongodb_resource import MongoDBResource

__all__ = [
    "DagsterDispatcherResource",
    "MinIOResource",
    "MongoDBResource",
]
