# =============================================================================
# Job Orchestrator
# =============================================================================
# Owns the Job Record lifecycle for both units of work:
# - upload jobs: checks, read, validate, then write or partition
# - partition jobs: validate and write one spilled partition, then
#   aggregate completion into the parent job
#
#   processing ──► completed | failed | cancelled
#        │
#        └──► partitioned ──► completed | failed | cancelled
# =============================================================================

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from libs.errors import FileTooLarge, JobCancelled, TargetNotFound
from libs.models import (
    IngestSettings,
    JobRecord,
    JobStage,
    JobStatus,
    PartitionStatus,
    PartitionTask,
    RowOutcome,
)
from libs.tabular import detect_format, file_row_number, normalize_row, read_rows
from libs.upload_paths import partition_blob_key
from libs.validation import ComplianceRowValidator, RowValidator, ValidatorAdapter

from .batch_writer import BatchWriter, ValidRow
from .partition_ops import needs_partitioning, partition_job
from .progress import ProgressTracker

__all__ = ["JobOrchestrator", "ValidationPass", "UnitResult"]


@dataclass
class ValidationPass:
    """Outcome of validating a run of rows."""

    valid: List[ValidRow]
    consumed: int
    timed_out: bool = False


@dataclass
class UnitResult:
    """Summary of one unit of work, returned as op output."""

    job_id: str
    status: str
    rows: int = 0
    valid_rows: int = 0
    write_groups: int = 0
    partitions: int = 0
    skipped: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


class JobOrchestrator:
    """
    Drives one unit of work against the job store, blob storage and the
    task dispatcher.

    Args:
        mongodb: MongoDBResource
        minio: MinIOResource
        dispatcher: DagsterDispatcherResource
        settings: Pipeline limits
        log: Logger (``context.log`` inside ops)
        validator_factory: Builds a ``RowValidator`` from the workspace
            activity type
        clock: Monotonic clock used for the timeout fallback
    """

    def __init__(
        self,
        mongodb,
        minio,
        dispatcher,
        settings: IngestSettings,
        log,
        validator_factory: Callable[[Optional[str]], RowValidator] = ComplianceRowValidator,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.mongodb = mongodb
        self.minio = minio
        self.dispatcher = dispatcher
        self.settings = settings
        self.log = log
        self.validator_factory = validator_factory
        self.clock = clock

    # ------------------------------------------------------------------
    # Shared pieces
    # ------------------------------------------------------------------

    def _adapter_for(self, job: JobRecord) -> ValidatorAdapter:
        workspace = self.mongodb.get_workspace(job.tenant_id, job.workspace_id)
        if workspace is None:
            raise TargetNotFound(
                f"Workspace '{job.workspace_id}' not found for tenant '{job.tenant_id}'"
            )
        return ValidatorAdapter(self.validator_factory(workspace.get("activity_type")))

    def _tracker(self, job_id: str, total: int, partition_mode: bool) -> ProgressTracker:
        return ProgressTracker(
            self.mongodb,
            job_id,
            total=total,
            interval=self.settings.progress_interval,
            max_error_entries=self.settings.max_error_entries,
            partition_mode=partition_mode,
        )

    def _writer(self, job: JobRecord, tracker: ProgressTracker) -> BatchWriter:
        return BatchWriter(
            self.mongodb,
            tracker,
            job_id=job.job_id,
            tenant_id=job.tenant_id,
            workspace_id=job.workspace_id,
            batch_size=self.settings.batch_size,
            log=self.log,
        )

    def validate_rows(
        self,
        rows: Sequence[Dict[str, Any]],
        adapter: ValidatorAdapter,
        tracker: ProgressTracker,
        *,
        start_index: int = 0,
        deadline: Optional[float] = None,
    ) -> ValidationPass:
        """
        Normalize and validate rows strictly in order.

        With a ``deadline`` the clock is checked at every progress cadence
        boundary; once passed, the loop stops before consuming more rows.
        """
        valid: List[ValidRow] = []
        interval = self.settings.progress_interval

        for i, row in enumerate(rows):
            if deadline is not None and i and i % interval == 0 and self.clock() >= deadline:
                return ValidationPass(valid=valid, consumed=i, timed_out=True)

            row_number = file_row_number(start_index + i)
            record = normalize_row(row)
            verdict = adapter.validate(record, row_number)
            tracker.record(verdict, row_number)

            if verdict.outcome == RowOutcome.VALID:
                valid.append(
                    ValidRow(
                        row_number=row_number,
                        record=record,
                        requires_followup=verdict.requires_followup,
                        warnings=verdict.warnings,
                    )
                )

        return ValidationPass(valid=valid, consumed=len(rows))

    def fail(self, job_id: str, error: Exception) -> bool:
        """Record a non-row failure; returns False if the job was already terminal."""
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        self.log.error(f"Job {job_id} failed: {message}")
        return self.mongodb.finish_job(
            job_id,
            JobStatus.FAILED,
            stage=JobStage.FAILED,
            error_message=message,
        )

    def fail_partition(self, task: PartitionTask, error: Exception) -> bool:
        """Fail the parent job; its spilled partition is of no further use."""
        failed = self.fail(task.job_id, error)
        self._discard_blob(task)
        return failed

    # ------------------------------------------------------------------
    # Upload unit
    # ------------------------------------------------------------------

    def check_upload(self, job: JobRecord) -> None:
        """
        Fail-fast preconditions evaluated before any download.

        Raises:
            UnsupportedFormat: Extension not allowed
            FileTooLarge: Upload exceeds ``max_file_size_bytes``
        """
        detect_format(job.file_name, self.settings.allowed_extensions)
        if job.file_size > self.settings.max_file_size_bytes:
            raise FileTooLarge(
                f"File '{job.file_name}' is {job.file_size} bytes; "
                f"limit is {self.settings.max_file_size_bytes}"
            )

    def run_upload(self, job: JobRecord) -> UnitResult:
        """
        Process a freshly created upload job.

        Raises:
            IngestError: Any non-row failure (the caller records ``failed``)
            JobCancelled: The job was cancelled while running
        """
        started = self.clock()
        deadline = started + self.settings.timeout_warning_seconds

        self.check_upload(job)
        adapter = self._adapter_for(job)

        data = self.minio.download_bytes(job.file_path)
        rows = read_rows(data, job.file_name, self.settings.allowed_extensions)
        total = len(rows)
        self.log.info(f"Job {job.job_id}: {total} rows read from '{job.file_name}'")

        if not self.mongodb.apply_progress(
            job.job_id,
            counters={"total_rows": total},
            total=total,
            stage=JobStage.VALIDATING.value,
        ):
            raise JobCancelled(f"Job {job.job_id} is no longer active")

        if needs_partitioning(total, self.settings.partition_threshold):
            entries = self._partition(job, rows, offset=0)
            return UnitResult(
                job_id=job.job_id,
                status=JobStatus.PARTITIONED.value,
                rows=total,
                partitions=len(entries),
            )

        tracker = self._tracker(job.job_id, total, partition_mode=False)
        validation = self.validate_rows(rows, adapter, tracker, deadline=deadline)
        tracker.finish_validation()

        tracker.begin_writing(len(validation.valid), scope=validation.consumed / total)
        writer = self._writer(job, tracker)
        writer.write(validation.valid)

        self.mongodb.increment_workspace_records(job.tenant_id, job.workspace_id, writer.written)

        if validation.timed_out:
            remaining = rows[validation.consumed:]
            self.log.warning(
                f"Job {job.job_id} passed the {self.settings.timeout_warning_seconds}s "
                f"warning threshold after {validation.consumed} of {total} rows; "
                f"handing {len(remaining)} rows to partitions"
            )
            entries = self._partition(job, remaining, offset=validation.consumed)
            return UnitResult(
                job_id=job.job_id,
                status=JobStatus.PARTITIONED.value,
                rows=validation.consumed,
                valid_rows=len(validation.valid),
                write_groups=writer.commits,
                partitions=len(entries),
            )

        if not self.mongodb.finish_job(
            job.job_id,
            JobStatus.COMPLETED,
            stage=JobStage.COMPLETED,
            from_statuses=[JobStatus.PROCESSING],
        ):
            raise JobCancelled(f"Job {job.job_id} is no longer active")

        self.log.info(
            f"Job {job.job_id} completed: {len(validation.valid)}/{total} valid rows "
            f"in {writer.commits} write groups ({self.clock() - started:.1f}s)"
        )
        return UnitResult(
            job_id=job.job_id,
            status=JobStatus.COMPLETED.value,
            rows=total,
            valid_rows=len(validation.valid),
            write_groups=writer.commits,
        )

    def _partition(self, job: JobRecord, rows: Sequence[Dict[str, Any]], offset: int):
        return partition_job(
            self.minio,
            self.mongodb,
            self.dispatcher,
            job,
            rows,
            partition_size=self.settings.partition_size,
            partitions_prefix=self.settings.partitions_prefix,
            offset=offset,
            log=self.log,
        )

    # ------------------------------------------------------------------
    # Partition unit
    # ------------------------------------------------------------------

    def run_partition(self, task: PartitionTask) -> UnitResult:
        """
        Process one spilled partition.

        Re-running a partition whose blob is gone or whose entry is already
        completed is a no-op.

        Raises:
            IngestError: Any non-row failure (the caller records ``failed``)
            JobCancelled: The job was cancelled while running
        """
        skipped = UnitResult(job_id=task.job_id, status="skipped", skipped=True)

        job = self.mongodb.get_job(task.job_id)
        if job is None:
            self.log.warning(f"Partition {task.partition_id}: job {task.job_id} not found")
            return skipped
        if job.status != JobStatus.PARTITIONED.value:
            if JobStatus(job.status).is_terminal:
                self._discard_blob(task)
            if job.status == JobStatus.CANCELLED.value:
                raise JobCancelled(f"Job {task.job_id} was cancelled")
            self.log.info(
                f"Partition {task.partition_id}: job {task.job_id} is '{job.status}', nothing to do"
            )
            return skipped

        entry = next((p for p in job.partitions if p.partition_id == task.partition_id), None)
        if entry is None:
            self.log.warning(f"Partition {task.partition_id} is not part of job {task.job_id}")
            return skipped
        if entry.status == PartitionStatus.COMPLETED.value:
            self.log.info(f"Partition {task.partition_id} already completed")
            return skipped

        key = partition_blob_key(
            job.tenant_id, job.job_id, task.partition_id, self.settings.partitions_prefix
        )
        payload = self.minio.get_json(key)
        if payload is None:
            self.log.info(f"Partition blob '{key}' is gone; treating as already processed")
            return skipped

        adapter = self._adapter_for(job)
        rows = payload.get("rows", [])
        start_index = int(payload.get("start_index", entry.start_index))

        tracker = self._tracker(job.job_id, len(rows), partition_mode=True)
        validation = self.validate_rows(rows, adapter, tracker, start_index=start_index)
        tracker.finish_validation()

        writer = self._writer(job, tracker)
        writer.write(validation.valid)

        updated = self.mongodb.complete_partition(job.job_id, task.partition_id)
        if updated is None:
            if not self.mongodb.is_job_active(job.job_id):
                raise JobCancelled(f"Job {job.job_id} is no longer active")
            self.log.warning(f"Partition {task.partition_id} was completed by another worker")
        else:
            self._aggregate(updated)

        self.minio.remove_object(key)
        self.mongodb.increment_workspace_records(job.tenant_id, job.workspace_id, writer.written)

        return UnitResult(
            job_id=job.job_id,
            status=JobStatus.PARTITIONED.value,
            rows=len(rows),
            valid_rows=len(validation.valid),
            write_groups=writer.commits,
        )

    def _discard_blob(self, task: PartitionTask) -> None:
        key = partition_blob_key(
            task.tenant_id, task.job_id, task.partition_id, self.settings.partitions_prefix
        )
        try:
            self.minio.remove_object(key)
        except Exception as e:
            self.log.warning(f"Failed to remove partition blob '{key}': {e}")

    def _aggregate(self, job: JobRecord) -> None:
        completed = job.completed_partitions or 0
        total = job.total_partitions or 0
        percent = int(completed / total * 100) if total else 100

        self.mongodb.apply_progress(job.job_id, percent=percent)
        self.log.info(f"Job {job.job_id}: {completed}/{total} partitions completed")

        if total and completed >= total:
            if self.mongodb.finish_job(
                job.job_id,
                JobStatus.COMPLETED,
                stage=JobStage.COMPLETED,
                from_statuses=[JobStatus.PARTITIONED],
            ):
                self.log.info(f"Job {job.job_id} completed after {total} partitions")
