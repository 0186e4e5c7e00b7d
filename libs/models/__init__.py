# =============================================================================
# Data Models Library
# =============================================================================
# Pydantic models and schemas for the batch ingestion pipeline.
# =============================================================================

"""
Data models for the batch ingestion pipeline.

This library provides:
- Job models: Job Record, status machine, partitions
- Canonical record: normalized shape of one uploaded row
- Row verdicts: validator outcome taxonomy
- Configuration models
"""

__version__ = "0.1.0"

# Job models
from .job import (
    ACTIVE_STATUSES,
    INTERNAL_FIELDS,
    TERMINAL_STATUSES,
    JobProgress,
    JobRecord,
    JobStage,
    JobStatistics,
    JobStatus,
    PartitionEntry,
    PartitionStatus,
    PartitionTask,
    RowError,
    can_transition,
)

# Canonical record models
from .record import (
    BeneficialOwner,
    CanonicalRecord,
    ClientData,
    OperationDetails,
)

# Verdict models
from .verdict import (
    RowOutcome,
    RowVerdict,
)

# Configuration models
from .config import (
    IngestSettings,
    MongoSettings,
)

__all__ = [
    # Job models
    "ACTIVE_STATUSES",
    "INTERNAL_FIELDS",
    "TERMINAL_STATUSES",
    "JobProgress",
    "JobRecord",
    "JobStage",
    "JobStatistics",
    "JobStatus",
    "PartitionEntry",
    "PartitionStatus",
    "PartitionTask",
    "RowError",
    "can_transition",
    # Canonical record models
    "BeneficialOwner",
    "CanonicalRecord",
    "ClientData",
    "OperationDetails",
    # Verdict models
    "RowOutcome",
    "RowVerdict",
    # Configuration models
    "IngestSettings",
    "MongoSettings",
]
