# =============================================================================
# Ingestion Errors
# =============================================================================
# Error taxonomy shared by the pipeline ops, resources and the webapp.
# Row-level failures are not exceptions: they are RowOutcome values recorded
# in the Job Record error list.
# =============================================================================

"""
Error taxonomy for the batch ingestion pipeline.

Every error carries a stable ``code`` so that the Job Record and the HTTP
layer can report it without inspecting class names.
"""

__all__ = [
    "IngestError",
    "UnsupportedFormat",
    "FileTooLarge",
    "EmptyInput",
    "TabularParseError",
    "TargetNotFound",
    "InvalidUploadPath",
    "PartitionWriteFailure",
    "WriteGroupFailure",
    "DispatchFailure",
    "PermissionDenied",
    "NotFound",
    "FailedPrecondition",
    "JobCancelled",
]


class IngestError(Exception):
    """Base class for all pipeline errors."""

    code = "ingest_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnsupportedFormat(IngestError):
    code = "unsupported_format"


class FileTooLarge(IngestError):
    code = "file_too_large"


class EmptyInput(IngestError):
    code = "empty_input"


class TabularParseError(IngestError):
    """The file has an allowed extension but its content could not be decoded."""

    code = "parse_error"


class TargetNotFound(IngestError):
    """The tenant/workspace the upload targets does not exist."""

    code = "target_not_found"


class InvalidUploadPath(IngestError):
    code = "invalid_upload_path"


class PartitionWriteFailure(IngestError):
    """A partition blob could not be written; the whole partitioning attempt is void."""

    code = "partition_write_failure"


class WriteGroupFailure(IngestError):
    """A write group commit failed; remaining rows are not attempted."""

    code = "write_group_failure"


class DispatchFailure(IngestError):
    """A partition worker could not be launched; the spilled partitions are removed."""

    code = "dispatch_failure"


class PermissionDenied(IngestError):
    code = "permission_denied"


class NotFound(IngestError):
    code = "not_found"


class FailedPrecondition(IngestError):
    code = "failed_precondition"


class JobCancelled(IngestError):
    """
    Raised inside a running unit when it observes that its job is no longer
    active. Not a failure: the Job Record keeps its ``cancelled`` status.
    """

    code = "cancelled"
