# =============================================================================
# Row Verdict Models
# =============================================================================
# The pipeline's view of a validator result for one row.
# =============================================================================

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

__all__ = ["RowOutcome", "RowVerdict"]


class RowOutcome(str, Enum):
    """
    Row outcome taxonomy.

    ``INVALID`` rows are skipped and recorded; ``BLOCKED`` rows are a stricter
    failure (e.g. a cash amount that can never be accepted) and are counted
    in their own bucket as well as in the invalid total.
    """

    VALID = "valid"
    INVALID = "invalid"
    BLOCKED = "blocked"


class RowVerdict(BaseModel):
    is_valid: bool = True
    is_blocked: bool = False
    has_warnings: bool = False
    requires_followup: bool = False
    errors: list[Any] = Field(default_factory=list)
    warnings: list[Any] = Field(default_factory=list)

    @property
    def outcome(self) -> RowOutcome:
        if self.is_blocked:
            return RowOutcome.BLOCKED
        if not self.is_valid:
            return RowOutcome.INVALID
        return RowOutcome.VALID
