"""MongoDB Resource - Job store and target collection operations."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import cached_property
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Sequence

from dagster import ConfigurableResource
from pydantic import Field
from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from libs.models import (
    ACTIVE_STATUSES,
    JobRecord,
    JobStage,
    JobStatus,
    PartitionEntry,
    PartitionStatus,
    can_transition,
)

__all__ = ["MongoDBResource"]

_ACTIVE = [status.value for status in ACTIVE_STATUSES]


class MongoDBResource(ConfigurableResource):
    """
    Dagster resource for the job store.

    Every Job Record mutation is a single atomic update filtered on a
    non-terminal status, so terminal records are never modified and
    concurrent partition workers never read-modify-write counters.
    """

    connection_string: str = Field(..., description="MongoDB connection URI")
    database: str = Field("batch_ingest", description="MongoDB database name")
    transactional_writes: bool = Field(
        True,
        description="Commit write groups inside a multi-document transaction (needs a replica set)",
    )
    max_error_entries: int = Field(100, description="Cap on the Job Record error list")

    JOBS: ClassVar[str] = "batch_jobs"
    RECORDS: ClassVar[str] = "records"
    WORKSPACES: ClassVar[str] = "workspaces"

    @cached_property
    def _client(self) -> MongoClient:
        return MongoClient(self.connection_string)

    def _get_db(self) -> Database:
        return self._client[self.database]

    def _get_collection(self, name: str) -> Collection:
        return self._get_db()[name]

    @staticmethod
    def _strip_object_id(doc: Dict) -> Dict:
        stripped = dict(doc)
        stripped.pop("_id", None)
        return stripped

    @staticmethod
    def _active_filter(job_id: str) -> Dict[str, Any]:
        return {"job_id": job_id, "status": {"$in": _ACTIVE}}

    # ------------------------------------------------------------------
    # Job Record reads
    # ------------------------------------------------------------------

    def create_job(self, job: JobRecord) -> bool:
        """
        Insert a Job Record unless one with the same job_id already exists.

        Returns True when a new record was created.
        """
        collection = self._get_collection(self.JOBS)
        result = collection.update_one(
            {"job_id": job.job_id},
            {"$setOnInsert": job.model_dump()},
            upsert=True,
        )
        return result.upserted_id is not None

    def get_job(self, job_id: str) -> JobRecord | None:
        collection = self._get_collection(self.JOBS)
        document = collection.find_one({"job_id": job_id})
        if not document:
            return None
        return JobRecord(**self._strip_object_id(document))

    def get_job_status(self, job_id: str) -> str | None:
        collection = self._get_collection(self.JOBS)
        document = collection.find_one({"job_id": job_id}, projection={"status": 1})
        return document["status"] if document else None

    def is_job_active(self, job_id: str) -> bool:
        return self.get_job_status(job_id) in _ACTIVE

    def get_workspace(self, tenant_id: str, workspace_id: str) -> Dict[str, Any] | None:
        collection = self._get_collection(self.WORKSPACES)
        document = collection.find_one(
            {"tenant_id": tenant_id, "workspace_id": workspace_id}
        )
        return self._strip_object_id(document) if document else None

    # ------------------------------------------------------------------
    # Job Record mutations
    # ------------------------------------------------------------------

    def apply_progress(
        self,
        job_id: str,
        *,
        counters: Optional[Dict[str, int]] = None,
        current: Optional[int] = None,
        percent: Optional[int] = None,
        current_delta: int = 0,
        stage: Optional[str] = None,
        total: Optional[int] = None,
        errors: Sequence[Dict[str, Any]] = (),
    ) -> bool:
        """
        Apply one progress flush as a single atomic update.

        Counters are incremented, ``current``/``percent`` only move forward
        (``$max``) and errors are appended up to ``max_error_entries``.

        Returns:
            False when no active job matched (terminal or missing).
        """
        update: Dict[str, Dict[str, Any]] = {}

        increments = {
            f"statistics.{name}": delta
            for name, delta in (counters or {}).items()
            if delta
        }
        if current_delta:
            increments["progress.current"] = current_delta
        if increments:
            update["$inc"] = increments

        maxima: Dict[str, int] = {}
        if current is not None:
            maxima["progress.current"] = current
        if percent is not None:
            maxima["progress.percent"] = max(0, min(100, int(percent)))
        if maxima:
            update["$max"] = maxima

        sets: Dict[str, Any] = {}
        if stage is not None:
            sets["progress.stage"] = stage
        if total is not None:
            sets["progress.total"] = total
        if sets:
            update["$set"] = sets

        if errors:
            update["$push"] = {
                "errors": {"$each": list(errors), "$slice": self.max_error_entries}
            }

        collection = self._get_collection(self.JOBS)
        if not update:
            return collection.count_documents(self._active_filter(job_id), limit=1) > 0
        result = collection.update_one(self._active_filter(job_id), update)
        return result.matched_count > 0

    def transition(
        self,
        job_id: str,
        target: JobStatus,
        *,
        fields: Optional[Dict[str, Any]] = None,
        from_statuses: Iterable[JobStatus] = ACTIVE_STATUSES,
    ) -> bool:
        """
        Move a job to ``target`` if its current status allows it.

        Returns:
            True when the transition was applied.
        """
        allowed = [s.value for s in from_statuses if can_transition(s, target)]
        if not allowed:
            return False

        update_doc: Dict[str, Any] = {"status": target.value, **(fields or {})}
        collection = self._get_collection(self.JOBS)
        result = collection.update_one(
            {"job_id": job_id, "status": {"$in": allowed}},
            {"$set": update_doc},
        )
        return result.modified_count > 0

    def finish_job(
        self,
        job_id: str,
        target: JobStatus,
        *,
        stage: JobStage,
        error_message: str | None = None,
        from_statuses: Iterable[JobStatus] = ACTIVE_STATUSES,
    ) -> bool:
        """Transition to a terminal status, stamping completion time and duration."""
        job = self.get_job(job_id)
        now = datetime.now(timezone.utc)
        fields: Dict[str, Any] = {"completed_at": now, "progress.stage": stage.value}
        if target == JobStatus.COMPLETED:
            fields["progress.percent"] = 100
        if error_message:
            fields["error_message"] = error_message
        if job is not None:
            started_at = job.started_at
            if started_at.tzinfo is None:
                started_at = started_at.replace(tzinfo=timezone.utc)
            fields["processing_time_ms"] = int((now - started_at).total_seconds() * 1000)
        return self.transition(job_id, target, fields=fields, from_statuses=from_statuses)

    def set_partitioned(self, job_id: str, entries: List[PartitionEntry]) -> bool:
        """Record partition metadata and move ``processing`` → ``partitioned``."""
        return self.transition(
            job_id,
            JobStatus.PARTITIONED,
            fields={
                "partitions": [entry.model_dump() for entry in entries],
                "total_partitions": len(entries),
                "completed_partitions": 0,
                "progress.stage": JobStage.PARTITIONED.value,
            },
            from_statuses=[JobStatus.PROCESSING],
        )

    def find_partition(self, job_id: str, partition_id: str) -> tuple[int, PartitionEntry] | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        for index, entry in enumerate(job.partitions):
            if entry.partition_id == partition_id:
                return index, entry
        return None

    def complete_partition(self, job_id: str, partition_id: str) -> JobRecord | None:
        """
        Atomically mark one partition completed and bump ``completed_partitions``.

        The update only matches while the job is ``partitioned`` and the entry
        is still pending, so a retried worker can never count twice.

        Returns:
            The updated Job Record, or None if nothing matched.
        """
        located = self.find_partition(job_id, partition_id)
        if located is None:
            return None
        index, _ = located

        collection = self._get_collection(self.JOBS)
        document = collection.find_one_and_update(
            {
                "job_id": job_id,
                "status": JobStatus.PARTITIONED.value,
                f"partitions.{index}.partition_id": partition_id,
                f"partitions.{index}.status": PartitionStatus.PENDING.value,
            },
            {
                "$set": {f"partitions.{index}.status": PartitionStatus.COMPLETED.value},
                "$inc": {"completed_partitions": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not document:
            return None
        return JobRecord(**self._strip_object_id(document))

    # ------------------------------------------------------------------
    # Target collections
    # ------------------------------------------------------------------

    def insert_write_group(self, documents: List[Dict[str, Any]]) -> int:
        """
        Commit one write group atomically.

        With ``transactional_writes`` the group is inserted inside a
        transaction; otherwise as a single ordered ``insert_many``.
        """
        if not documents:
            return 0
        collection = self._get_collection(self.RECORDS)
        if self.transactional_writes:
            with self._client.start_session() as session:
                with session.start_transaction():
                    result = collection.insert_many(documents, session=session)
        else:
            result = collection.insert_many(documents, ordered=True)
        return len(result.inserted_ids)

    def increment_workspace_records(
        self, tenant_id: str, workspace_id: str, count: int
    ) -> None:
        collection = self._get_collection(self.WORKSPACES)
        collection.update_one(
            {"tenant_id": tenant_id, "workspace_id": workspace_id},
            {
                "$inc": {"statistics.total_records": count},
                "$set": {"statistics.last_activity": datetime.now(timezone.utc)},
            },
        )
