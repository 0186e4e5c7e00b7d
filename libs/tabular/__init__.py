# =============================================================================
# Tabular Library
# =============================================================================
# Reading uploaded spreadsheets/CSVs and normalizing their rows.
# =============================================================================

"""
Tabular decoding and row normalization.

Modules:
- reader: bytes + file name → ordered row dicts (CSV, XLSX, XLS)
- normalizer: row dict → CanonicalRecord
"""

from .normalizer import (
    generate_folio,
    lookup,
    normalize_bool,
    normalize_date,
    normalize_number,
    normalize_row,
)
from .reader import TabularFormat, detect_format, file_row_number, read_rows

__all__ = [
    "TabularFormat",
    "detect_format",
    "file_row_number",
    "read_rows",
    "generate_folio",
    "lookup",
    "normalize_bool",
    "normalize_date",
    "normalize_number",
    "normalize_row",
]
