# =============================================================================
# Batch Writer
# =============================================================================
# Persists validated rows to the `records` collection in write groups of at
# most `batch_size`, each committed atomically. Every persisted document
# carries batch-import provenance linking it back to its job.
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Sequence

from bson import ObjectId
from pymongo.errors import PyMongoError

from libs.errors import JobCancelled, WriteGroupFailure
from libs.models import CanonicalRecord

__all__ = [
    "ValidRow",
    "BatchWriter",
    "build_document",
    "chunked",
    "PENDING_REVIEW",
    "CREATED_BY_BATCH",
]

PENDING_REVIEW = "pending_review"
CREATED_BY_BATCH = "batch_import"


@dataclass
class ValidRow:
    """A row that passed validation, with the verdict details persisted alongside it."""

    row_number: int
    record: CanonicalRecord
    requires_followup: bool = False
    warnings: List[Any] = field(default_factory=list)


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    """
    Examples:
        >>> [len(c) for c in chunked(list(range(900)), 400)]
        [400, 400, 100]
    """
    for start in range(0, len(items), size):
        yield items[start:start + size]


def build_document(
    row: ValidRow,
    *,
    job_id: str,
    tenant_id: str,
    workspace_id: str,
    created_at: datetime,
) -> Dict[str, Any]:
    document = row.record.model_dump()
    document.update(
        {
            "record_id": str(ObjectId()),
            "tenant_id": tenant_id,
            "workspace_id": workspace_id,
            "status": PENDING_REVIEW,
            "created_at": created_at,
            "created_by": CREATED_BY_BATCH,
            "batch_job_id": job_id,
            "_validation": {
                "row_number": row.row_number,
                "requires_followup": row.requires_followup,
                "warnings": row.warnings,
            },
        }
    )
    return document


class BatchWriter:
    """
    Writes valid rows in bounded, atomic write groups.

    Before each group the job status is polled; a job that is no longer
    active stops the writer with ``JobCancelled``. Groups already committed
    stay committed.
    """

    def __init__(
        self,
        mongodb,
        tracker,
        *,
        job_id: str,
        tenant_id: str,
        workspace_id: str,
        batch_size: int = 400,
        log,
    ):
        self.mongodb = mongodb
        self.tracker = tracker
        self.job_id = job_id
        self.tenant_id = tenant_id
        self.workspace_id = workspace_id
        self.batch_size = batch_size
        self.log = log
        self.commits = 0
        self.written = 0

    def write(self, rows: Sequence[ValidRow]) -> int:
        """
        Persist ``rows``; returns the number of write groups committed.

        Raises:
            JobCancelled: The job left its active states between groups
            WriteGroupFailure: A group commit failed; later groups are not attempted
        """
        for group in chunked(rows, self.batch_size):
            if not self.mongodb.is_job_active(self.job_id):
                raise JobCancelled(
                    f"Job {self.job_id} is no longer active; "
                    f"stopping after {self.written} records"
                )

            created_at = datetime.now(timezone.utc)
            documents = [
                build_document(
                    row,
                    job_id=self.job_id,
                    tenant_id=self.tenant_id,
                    workspace_id=self.workspace_id,
                    created_at=created_at,
                )
                for row in group
            ]

            try:
                inserted = self.mongodb.insert_write_group(documents)
            except PyMongoError as e:
                raise WriteGroupFailure(
                    f"Write group {self.commits + 1} of job {self.job_id} failed "
                    f"(rows {group[0].row_number}-{group[-1].row_number}): {e}"
                ) from e

            self.commits += 1
            self.written += inserted
            self.log.info(
                f"Committed write group {self.commits} ({inserted} records) for job {self.job_id}"
            )
            self.tracker.record_write(inserted)

        return self.commits
