# =============================================================================
# Batch Ingestion Shared Libraries
# =============================================================================
# This package contains shared libraries for the batch ingestion pipeline.
# See individual sub-packages for detailed documentation.
# =============================================================================

"""
Batch ingestion shared libraries.

Sub-packages:
- models: Pydantic data models and settings
- tabular: spreadsheet/CSV decoding and row normalization
- validation: validator seam and default compliance rules

Modules:
- errors: error taxonomy
- upload_paths: landing-zone key parsing
"""

__version__ = "0.1.0"
