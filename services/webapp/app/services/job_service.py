# =============================================================================
# Job Service - Job Record status and cancellation
# =============================================================================
# Service wrapper for Job Record reads and the cancel mutation.
# =============================================================================

from datetime import datetime, timezone
from typing import Any, Optional

from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from app.auth.providers import Caller
from app.config import get_settings
from libs.errors import FailedPrecondition, NotFound, PermissionDenied
from libs.models import ACTIVE_STATUSES, JobRecord, JobStage, JobStatus

_ACTIVE = [s.value for s in ACTIVE_STATUSES]


class JobService:
    """Service for Job Record operations."""

    JOBS = "batch_jobs"

    def __init__(self) -> None:
        settings = get_settings()
        self._client = MongoClient(settings.mongo_connection_string)
        self._db: Database = self._client[settings.mongo_database]

    def _get_collection(self, name: str) -> Collection:
        return self._db[name]

    def ping(self) -> bool:
        self._client.admin.command("ping")
        return True

    def _load_for(self, job_id: str, caller: Caller) -> JobRecord:
        document = self._get_collection(self.JOBS).find_one({"job_id": job_id})
        if not document:
            raise NotFound(f"Job '{job_id}' not found")

        document.pop("_id", None)
        job = JobRecord(**document)
        if not caller.can_access_tenant(job.tenant_id):
            raise PermissionDenied(f"Job '{job_id}' belongs to another tenant")
        return job

    def get_job_status(self, job_id: str, caller: Caller) -> dict[str, Any]:
        """
        Return the Job Record without internal-only fields.

        Raises:
            NotFound: No such job
            PermissionDenied: Job belongs to another tenant
        """
        return self._load_for(job_id, caller).public_view()

    def cancel_job(self, job_id: str, caller: Caller) -> dict[str, Any]:
        """
        Cancel a job that is still ``processing`` or ``partitioned``.

        Rows already committed stay committed; running workers observe the
        new status before their next write group.

        Raises:
            NotFound: No such job
            PermissionDenied: Job belongs to another tenant
            FailedPrecondition: Job is already terminal
        """
        job = self._load_for(job_id, caller)
        if job.status not in _ACTIVE:
            raise FailedPrecondition(f"Job '{job_id}' is already {job.status}")

        now = datetime.now(timezone.utc)
        document = self._get_collection(self.JOBS).find_one_and_update(
            {"job_id": job_id, "status": {"$in": _ACTIVE}},
            {
                "$set": {
                    "status": JobStatus.CANCELLED.value,
                    "cancelled_at": now,
                    "cancelled_by": caller.user_id,
                    "completed_at": now,
                    "progress.stage": JobStage.CANCELLED.value,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if not document:
            raise FailedPrecondition(f"Job '{job_id}' finished before it could be cancelled")

        document.pop("_id", None)
        return JobRecord(**document).public_view()


# Singleton instance
_job_service: Optional[JobService] = None


def get_job_service() -> JobService:
    """Get or create the Job service singleton."""
    global _job_service
    if _job_service is None:
        _job_service = JobService()
    return _job_service
