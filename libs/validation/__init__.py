"""
Row validation.

- adapter: ``RowValidator`` protocol and the ``ValidatorAdapter`` seam
- rules: ``ComplianceRowValidator``, the default activity rules
"""

from .adapter import RowValidator, ValidatorAdapter, to_validator_input
from .rules import ComplianceRowValidator

__all__ = [
    "RowValidator",
    "ValidatorAdapter",
    "to_validator_input",
    "ComplianceRowValidator",
]
