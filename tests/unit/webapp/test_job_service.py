"""Unit tests for JobService against mongomock."""

import mongomock
import pytest

from app.auth.providers import Caller, GatewayHeaderProvider
from app.services.job_service import JobService
from libs.errors import FailedPrecondition, NotFound, PermissionDenied
from libs.models import JobRecord


@pytest.fixture
def service(monkeypatch):
    client = mongomock.MongoClient()
    monkeypatch.setattr("app.services.job_service.MongoClient", lambda *args, **kwargs: client)
    return JobService()


@pytest.fixture
def stored_job(service):
    def _store(job_id="job42", status="processing", tenant_id="tenant_a"):
        job = JobRecord(
            job_id=job_id,
            tenant_id=tenant_id,
            workspace_id="ws_1",
            file_path=f"uploads/{tenant_id}/ws_1/{job_id}_1.csv",
            file_name=f"{job_id}_1.csv",
            status=status,
            created_by="user_1",
        )
        service._get_collection(JobService.JOBS).insert_one(job.model_dump())
        return job

    return _store


OWNER = Caller(tenant_id="tenant_a", user_id="user_1")
STRANGER = Caller(tenant_id="tenant_b", user_id="user_2")
ADMIN = GatewayHeaderProvider().identify(
    {"tenant_id": "tenant_b", "user_id": "root", "role": "super_admin"}
)


def test_status_hides_internal_fields(service, stored_job):
    stored_job()

    view = service.get_job_status("job42", OWNER)

    assert view["job_id"] == "job42"
    assert view["status"] == "processing"
    assert "file_path" not in view
    assert "created_by" not in view
    assert "_id" not in view


def test_status_of_missing_job(service):
    with pytest.raises(NotFound):
        service.get_job_status("ghost", OWNER)


def test_status_of_other_tenant_is_denied(service, stored_job):
    stored_job()

    with pytest.raises(PermissionDenied):
        service.get_job_status("job42", STRANGER)


def test_cross_tenant_role_can_read(service, stored_job):
    stored_job()
    assert service.get_job_status("job42", ADMIN)["job_id"] == "job42"


@pytest.mark.parametrize("status", ["processing", "partitioned"])
def test_cancel_active_job(service, stored_job, status):
    stored_job(status=status)

    view = service.cancel_job("job42", OWNER)

    assert view["status"] == "cancelled"
    assert view["cancelled_by"] == "user_1"
    assert view["cancelled_at"] is not None
    assert view["progress"]["stage"] == "Cancelled by user"


@pytest.mark.parametrize("status", ["completed", "failed", "cancelled"])
def test_cancel_terminal_job_fails(service, stored_job, status):
    stored_job(status=status)

    with pytest.raises(FailedPrecondition):
        service.cancel_job("job42", OWNER)

    assert service.get_job_status("job42", OWNER)["status"] == status


def test_cancel_other_tenant_is_denied(service, stored_job):
    stored_job()

    with pytest.raises(PermissionDenied):
        service.cancel_job("job42", STRANGER)
    assert service.get_job_status("job42", OWNER)["status"] == "processing"
