# =============================================================================
# Job Models Module
# =============================================================================
# Defines the Job Record that tracks one ingestion run in MongoDB:
# - JobStatus: lifecycle states and the allowed transitions between them
# - JobProgress / JobStatistics: live progress and cumulative counters
# - RowError: structured per-row error entry
# - PartitionEntry / PartitionTask: partition metadata and dispatch payload
# - JobRecord: the persisted document
# =============================================================================

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "JobStatus",
    "JobStage",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "can_transition",
    "PartitionStatus",
    "JobProgress",
    "JobStatistics",
    "RowError",
    "PartitionEntry",
    "PartitionTask",
    "JobRecord",
    "INTERNAL_FIELDS",
]


class JobStatus(str, Enum):
    """Lifecycle status of a batch ingestion job."""

    PROCESSING = "processing"
    PARTITIONED = "partitioned"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES = frozenset([JobStatus.PROCESSING, JobStatus.PARTITIONED])
TERMINAL_STATUSES = frozenset(
    [JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED]
)

_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PROCESSING: frozenset(
        [
            JobStatus.PARTITIONED,
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.CANCELLED,
        ]
    ),
    JobStatus.PARTITIONED: frozenset(
        [JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED]
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current: JobStatus | str, target: JobStatus | str) -> bool:
    """
    Check whether a status transition is allowed.

    Transitions are monotone: nothing goes back to ``processing`` and no
    terminal status ever changes.

    Examples:
        >>> can_transition("processing", "partitioned")
        True
        >>> can_transition("partitioned", "processing")
        False
    """
    return JobStatus(target) in _TRANSITIONS[JobStatus(current)]


class JobStage(str, Enum):
    """Human-readable stage shown in ``progress.stage``."""

    STARTED = "Processing started"
    VALIDATING = "Validating records"
    WRITING = "Saving valid records"
    PARTITIONED = "Large file - split into partitions"
    COMPLETED = "Processing completed"
    FAILED = "Processing failed"
    CANCELLED = "Cancelled by user"


class PartitionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class JobProgress(BaseModel):
    """Live progress; ``current`` and ``percent`` never decrease while active."""

    current: int = Field(0, ge=0)
    total: int = Field(0, ge=0)
    percent: int = Field(0, ge=0, le=100)
    stage: str = JobStage.STARTED.value


class JobStatistics(BaseModel):
    """
    Cumulative row counters.

    Blocked rows are counted in both ``blocked_rows`` and ``invalid_rows`` so
    that ``valid_rows + invalid_rows == total_rows`` once validation is done.
    """

    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    blocked_rows: int = 0
    warnings: int = 0
    requires_followup: int = 0


class RowError(BaseModel):
    """A rejected row, identified by its 1-based row number in the source file."""

    row: int = Field(..., ge=2, description="1-based file row (row 1 is the header)")
    type: Literal["error", "blocked"]
    errors: list[Any] = Field(default_factory=list)


class PartitionEntry(BaseModel):
    """Metadata for one contiguous slice ``[start_index, end_index)`` of the rows."""

    partition_id: str
    start_index: int = Field(..., ge=0)
    end_index: int = Field(..., ge=0)
    record_count: int = Field(..., ge=0)
    status: PartitionStatus = PartitionStatus.PENDING

    model_config = ConfigDict(use_enum_values=True)


class PartitionTask(BaseModel):
    """Payload handed to the task dispatcher for one partition worker."""

    job_id: str
    tenant_id: str
    workspace_id: str
    partition_id: str


# Fields never returned by the status API.
INTERNAL_FIELDS = frozenset(["_id", "file_path", "created_by"])


class JobRecord(BaseModel):
    """
    Job Record document stored in the ``batch_jobs`` collection.

    Created as soon as an upload is detected; mutated only by the
    orchestrator, the batch writer and the progress tracker; immutable once
    ``status`` is terminal.
    """

    job_id: str
    tenant_id: str
    workspace_id: str
    file_path: str
    file_name: str
    file_size: int = 0
    status: JobStatus = JobStatus.PROCESSING
    progress: JobProgress = Field(default_factory=JobProgress)
    statistics: JobStatistics = Field(default_factory=JobStatistics)
    errors: list[RowError] = Field(default_factory=list)
    partitions: list[PartitionEntry] = Field(default_factory=list)
    total_partitions: Optional[int] = None
    completed_partitions: Optional[int] = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    error_message: Optional[str] = None
    processing_time_ms: Optional[int] = None
    created_by: str = "system"

    model_config = ConfigDict(use_enum_values=True)

    def public_view(self) -> dict[str, Any]:
        """Dump the record without internal-only fields."""
        document = self.model_dump(mode="json", exclude=set(INTERNAL_FIELDS))
        document["partitions"] = [
            {
                "partition_id": p["partition_id"],
                "record_count": p["record_count"],
                "status": p["status"],
            }
            for p in document["partitions"]
        ]
        return document
