"""Unit tests for ProgressTracker cadence and percent math."""

from unittest.mock import Mock

import pytest

from libs.errors import JobCancelled
from libs.models import RowVerdict
from services.dagster.ingest_pipelines.ops.progress import (
    ProgressTracker,
    validation_percent,
    writing_percent,
)


VALID = RowVerdict()
INVALID = RowVerdict(is_valid=False, errors=[{"code": "E001"}])
BLOCKED = RowVerdict(is_valid=False, is_blocked=True, errors=[{"code": "E100"}])


@pytest.fixture
def mongodb():
    store = Mock()
    store.apply_progress.return_value = True
    return store


def _calls(mongodb):
    return [call.kwargs for call in mongodb.apply_progress.call_args_list]


class TestPercentMath:
    def test_validation_covers_first_half(self):
        assert validation_percent(0, 1000) == 0
        assert validation_percent(500, 1000) == 25
        assert validation_percent(1000, 1000) == 50
        assert validation_percent(10, 0) == 0

    def test_writing_covers_second_half(self):
        assert writing_percent(0, 400) == 50
        assert writing_percent(400, 400) == 100
        assert writing_percent(0, 0) == 100

    def test_writing_scaled_by_scope(self):
        assert writing_percent(200, 200, scope=0.5) == 75
        assert writing_percent(0, 0, scope=0.5) == 75


class TestProgressTracker:
    def test_flushes_every_interval(self, mongodb):
        tracker = ProgressTracker(mongodb, "job42", total=250, interval=100)
        for i in range(250):
            tracker.record(VALID, i + 2)
        tracker.finish_validation()

        calls = _calls(mongodb)
        assert len(calls) == 3
        assert [c["current"] for c in calls] == [100, 200, 250]
        assert [c["percent"] for c in calls] == [20, 40, 50]
        assert sum(c["counters"]["valid_rows"] for c in calls) == 250

    def test_counts_outcomes_and_queues_errors(self, mongodb):
        tracker = ProgressTracker(mongodb, "job42", total=3, interval=100)
        tracker.record(VALID, 2)
        tracker.record(INVALID, 3)
        tracker.record(BLOCKED, 4)
        tracker.finish_validation()

        call = _calls(mongodb)[0]
        assert call["counters"]["valid_rows"] == 1
        assert call["counters"]["invalid_rows"] == 2
        assert call["counters"]["blocked_rows"] == 1
        assert [(e["row"], e["type"]) for e in call["errors"]] == [(3, "error"), (4, "blocked")]

    def test_flags_count_only_for_valid_rows(self, mongodb):
        flagged = {"has_warnings": True, "requires_followup": True}
        tracker = ProgressTracker(mongodb, "job42", total=3, interval=100)
        tracker.record(RowVerdict(**flagged), 2)
        tracker.record(RowVerdict(is_valid=False, errors=[{"code": "E001"}], **flagged), 3)
        tracker.record(RowVerdict(is_valid=False, is_blocked=True, errors=[{"code": "E100"}], **flagged), 4)
        tracker.finish_validation()

        counters = _calls(mongodb)[0]["counters"]
        assert counters["warnings"] == 1
        assert counters["requires_followup"] == 1

    def test_error_entries_are_capped(self, mongodb):
        tracker = ProgressTracker(mongodb, "job42", total=20, interval=5, max_error_entries=3)
        for i in range(20):
            tracker.record(INVALID, i + 2)

        sent = [e for call in _calls(mongodb) for e in call["errors"]]
        assert len(sent) == 3
        assert tracker.totals["invalid_rows"] == 20

    def test_writes_report_second_half(self, mongodb):
        tracker = ProgressTracker(mongodb, "job42", total=800, interval=100)
        tracker.begin_writing(800)
        tracker.record_write(400)
        tracker.record_write(400)

        assert [c["percent"] for c in _calls(mongodb)] == [75, 100]

    def test_partition_mode_increments_only(self, mongodb):
        tracker = ProgressTracker(mongodb, "job42", total=150, interval=100, partition_mode=True)
        for i in range(150):
            tracker.record(VALID, i + 2)
        tracker.finish_validation()

        calls = _calls(mongodb)
        assert [c["current_delta"] for c in calls] == [100, 50]
        assert all("percent" not in c and "stage" not in c for c in calls)

    def test_inactive_job_cancels(self, mongodb):
        mongodb.apply_progress.return_value = False
        tracker = ProgressTracker(mongodb, "job42", total=10, interval=1)

        with pytest.raises(JobCancelled):
            tracker.record(VALID, 2)
