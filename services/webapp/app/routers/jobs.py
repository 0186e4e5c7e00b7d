# =============================================================================
# Jobs Router
# =============================================================================
# Job Record status lookup and cancellation, scoped to the caller's tenant.
# =============================================================================

from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.dependencies import get_current_caller
from app.auth.providers import Caller
from app.services.job_service import get_job_service
from libs.errors import FailedPrecondition, IngestError, NotFound, PermissionDenied

router = APIRouter(prefix="/jobs", tags=["jobs"])

_STATUS_CODES = {
    NotFound: status.HTTP_404_NOT_FOUND,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    FailedPrecondition: status.HTTP_409_CONFLICT,
}


def _to_http(exc: IngestError) -> HTTPException:
    status_code = _STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message},
    )


@router.get("/{job_id}")
async def get_job_status(
    job_id: str,
    caller: Caller = Depends(get_current_caller),
) -> dict:
    """
    Get the status of an ingestion job.

    Returns the Job Record without internal-only fields.
    """
    try:
        return get_job_service().get_job_status(job_id, caller)
    except IngestError as exc:
        raise _to_http(exc) from exc


@router.post("/{job_id}/cancel")
async def cancel_job(
    job_id: str,
    caller: Caller = Depends(get_current_caller),
) -> dict:
    """
    Cancel a job in processing or partitioned state.

    Returns 409 if the job is already completed, failed or cancelled.
    """
    try:
        return get_job_service().cancel_job(job_id, caller)
    except IngestError as exc:
        raise _to_http(exc) from exc
