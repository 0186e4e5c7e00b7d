"""Batch ingestion status webapp."""

__version__ = "0.1.0"
