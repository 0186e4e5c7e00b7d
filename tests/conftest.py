"""
Shared pytest fixtures for pipeline tests.

Provides an in-memory job store (mongomock), a dict-backed MinIO mock, a
recording dispatcher and row builders reused across test files.
"""

import csv
import io
import json
from unittest.mock import Mock

import mongomock
import pandas as pd
import pytest

from libs.models import IngestSettings, PartitionTask
from services.dagster.ingest_pipelines.resources import (
    DagsterDispatcherResource,
    MinIOResource,
    MongoDBResource,
)


TENANT = "tenant_a"
WORKSPACE = "ws_1"


# =============================================================================
# Row builders
# =============================================================================

def valid_row(i: int = 0) -> dict:
    """A row the default compliance rules accept."""
    return {
        "TIPO_PERSONA": "PM",
        "RAZON_SOCIAL_CLIENTE": f"Comercial {i} SA de CV",
        "RFC_CLIENTE": "ABC123456XY1",
        "TIPO_OPERACION": "VENTA",
        "FECHA_OPERACION": "2024-01-15",
        "MONTO_OPERACION": "15000.00",
        "MONEDA": "MXN",
        "FORMA_PAGO": "TRANSFERENCIA",
    }


def invalid_row(i: int = 0) -> dict:
    """A row with a malformed RFC."""
    row = valid_row(i)
    row["RFC_CLIENTE"] = "BAD-RFC"
    return row


def csv_bytes(rows: list[dict]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()))
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def xlsx_bytes(rows: list[dict]) -> bytes:
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


@pytest.fixture
def make_valid_row():
    return valid_row


@pytest.fixture
def make_invalid_row():
    return invalid_row


@pytest.fixture
def to_csv():
    return csv_bytes


@pytest.fixture
def to_xlsx():
    return xlsx_bytes


# =============================================================================
# Settings
# =============================================================================

@pytest.fixture
def settings():
    """Pipeline limits with the documented defaults."""
    return IngestSettings(
        batch_size=400,
        progress_interval=100,
        partition_threshold=5000,
        partition_size=2000,
    )


# =============================================================================
# Resources
# =============================================================================

@pytest.fixture
def mongomock_client():
    """In-memory MongoDB client for tests."""
    return mongomock.MongoClient()


@pytest.fixture
def mongo_resource(monkeypatch, mongomock_client):
    """MongoDBResource backed by mongomock (no transactions on mongomock)."""
    monkeypatch.setattr(
        "services.dagster.ingest_pipelines.resources.mongodb_resource.MongoClient",
        lambda *args, **kwargs: mongomock_client,
    )
    return MongoDBResource(
        connection_string="mongodb://localhost:27017",
        database="batch_ingest_test",
        transactional_writes=False,
    )


@pytest.fixture
def db(mongomock_client):
    return mongomock_client["batch_ingest_test"]


@pytest.fixture
def workspace(db):
    """Target workspace every test upload points at."""
    document = {
        "tenant_id": TENANT,
        "workspace_id": WORKSPACE,
        "activity_type": "VEHICULOS",
        "statistics": {"total_records": 0},
    }
    db["workspaces"].insert_one(document)
    return document


@pytest.fixture
def blob_store():
    """Backing dict of the MinIO mock: key -> bytes."""
    return {}


@pytest.fixture
def minio(blob_store):
    """MinIOResource mock whose object operations read and write ``blob_store``."""
    resource = Mock(spec=MinIOResource)

    def download_bytes(key):
        if key not in blob_store:
            raise RuntimeError(f"Object '{key}' not found in bucket 'landing-zone'")
        return blob_store[key]

    def put_json(key, payload):
        blob_store[key] = json.dumps(payload, default=str).encode("utf-8")

    def get_json(key):
        data = blob_store.get(key)
        return json.loads(data) if data is not None else None

    resource.download_bytes.side_effect = download_bytes
    resource.put_json.side_effect = put_json
    resource.get_json.side_effect = get_json
    resource.remove_object.side_effect = lambda key: blob_store.pop(key, None)
    resource.get_object_size.side_effect = lambda key: len(blob_store[key])
    resource.list_uploads.side_effect = lambda prefix="uploads/": [
        key for key in blob_store if key.startswith(prefix)
    ]
    return resource


@pytest.fixture
def dispatcher():
    """Dispatcher mock that records every PartitionTask it is given."""
    resource = Mock(spec=DagsterDispatcherResource)
    resource.dispatched = []

    def dispatch(task: PartitionTask) -> str:
        resource.dispatched.append(task)
        return f"run-{len(resource.dispatched)}"

    resource.dispatch.side_effect = dispatch
    return resource


@pytest.fixture
def log():
    return Mock()
