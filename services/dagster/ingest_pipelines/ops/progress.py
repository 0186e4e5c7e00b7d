# =============================================================================
# Progress Tracker
# =============================================================================
# Buffers per-row counters and errors and flushes them to the Job Record at
# a fixed cadence: every `interval` validated rows and after every write
# group. Validation covers 0-50 %, persistence 50-100 %.
# =============================================================================

from typing import Any, Dict, List

from libs.errors import JobCancelled
from libs.models import JobStage, RowError, RowOutcome, RowVerdict

__all__ = ["ProgressTracker", "validation_percent", "writing_percent"]

_COUNTERS = (
    "valid_rows",
    "invalid_rows",
    "blocked_rows",
    "warnings",
    "requires_followup",
)


def validation_percent(validated: int, total: int) -> int:
    """
    Examples:
        >>> validation_percent(999, 1000)
        50
        >>> validation_percent(100, 1000)
        5
    """
    if total <= 0:
        return 0
    return min(50, round(validated / total * 50))


def writing_percent(written: int, to_write: int, scope: float = 1.0) -> int:
    """
    ``scope`` is the share of the whole file this unit covers, so a job that
    will hand the rest of its rows to partitions never reports 100 %.

    Examples:
        >>> writing_percent(200, 400)
        75
        >>> writing_percent(0, 0)
        100
    """
    if to_write <= 0:
        return 50 + round(50 * scope)
    return 50 + round(50 * scope * min(1.0, written / to_write))


class ProgressTracker:
    """
    Cadence-based progress reporting for one unit of work.

    In ``partition_mode`` the tracker only increments ``progress.current``
    and counters; overall percent for partitioned jobs is owned by the
    orchestrator.
    """

    def __init__(
        self,
        mongodb,
        job_id: str,
        *,
        total: int,
        interval: int = 100,
        max_error_entries: int = 100,
        partition_mode: bool = False,
    ):
        self.mongodb = mongodb
        self.job_id = job_id
        self.total = total
        self.interval = interval
        self.max_error_entries = max_error_entries
        self.partition_mode = partition_mode

        self.validated = 0
        self.written = 0
        self.flushes = 0
        self.totals: Dict[str, int] = {name: 0 for name in _COUNTERS}

        self._pending: Dict[str, int] = {name: 0 for name in _COUNTERS}
        self._pending_errors: List[Dict[str, Any]] = []
        self._pending_current = 0
        self._errors_sent = 0
        self._to_write = 0
        self._scope = 1.0

    # ------------------------------------------------------------------
    # Validation phase
    # ------------------------------------------------------------------

    def record(self, verdict: RowVerdict, row_number: int) -> None:
        """Account for one validated row; flushes on the cadence boundary."""
        outcome = verdict.outcome
        if outcome == RowOutcome.VALID:
            self._bump("valid_rows")
            # Only stored rows carry warnings and follow-up flags.
            if verdict.has_warnings:
                self._bump("warnings")
            if verdict.requires_followup:
                self._bump("requires_followup")
        else:
            self._bump("invalid_rows")
            if outcome == RowOutcome.BLOCKED:
                self._bump("blocked_rows")
            self._queue_error(verdict, row_number)

        self.validated += 1
        self._pending_current += 1

        if self.validated % self.interval == 0:
            self.flush(stage=JobStage.VALIDATING)

    def finish_validation(self) -> None:
        self.flush(stage=JobStage.VALIDATING)

    # ------------------------------------------------------------------
    # Writing phase
    # ------------------------------------------------------------------

    def begin_writing(self, to_write: int, scope: float = 1.0) -> None:
        self._to_write = to_write
        self._scope = scope

    def record_write(self, count: int) -> None:
        self.written += count
        self.flush(stage=JobStage.WRITING)

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def flush(self, stage: JobStage) -> None:
        """
        Push buffered deltas in one atomic update.

        Raises:
            JobCancelled: If the job is no longer active.
        """
        kwargs: Dict[str, Any] = {
            "counters": dict(self._pending),
            "errors": list(self._pending_errors),
        }
        if self.partition_mode:
            kwargs["current_delta"] = self._pending_current
        else:
            kwargs["stage"] = stage.value
            kwargs["current"] = self.validated
            if stage == JobStage.WRITING:
                kwargs["percent"] = writing_percent(self.written, self._to_write, self._scope)
            else:
                kwargs["percent"] = validation_percent(self.validated, self.total)

        active = self.mongodb.apply_progress(self.job_id, **kwargs)
        self.flushes += 1

        self._pending = {name: 0 for name in _COUNTERS}
        self._pending_errors = []
        self._pending_current = 0

        if not active:
            raise JobCancelled(f"Job {self.job_id} is no longer active")

    def _bump(self, name: str) -> None:
        self._pending[name] += 1
        self.totals[name] += 1

    def _queue_error(self, verdict: RowVerdict, row_number: int) -> None:
        if self._errors_sent >= self.max_error_entries:
            return
        entry = RowError(
            row=row_number,
            type="blocked" if verdict.outcome == RowOutcome.BLOCKED else "error",
            errors=verdict.errors,
        )
        self._pending_errors.append(entry.model_dump())
        self._errors_sent += 1
