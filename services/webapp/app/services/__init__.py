# =============================================================================
# Services Module
# =============================================================================
# Service wrappers for the job store.
# =============================================================================

from app.services.job_service import JobService, get_job_service

__all__ = [
    "JobService",
    "get_job_service",
]
